# mcwlaser

Control a laser driver that speaks the OsTech serial protocol, from Python
or from an interactive console.

The link runs at 9600 baud, 8N1. On connecting, the package performs an
escape-character handshake, takes the device under external control
(`GX R`) and switches it to binary reply mode (`GMS8`). Every command line
is sent in upper case, terminated by a carriage return, and its echo is
checked; a failed echo is retried once after cancelling buffered commands.
Replies are decoded from the binary formats:

* bool: one byte, `0xAA` for on and `0x55` for off
* word: two big-endian bytes and a checksum byte
* float: four big-endian IEEE-754 bytes and a checksum byte

Each checksum is `0x55` plus the data bytes, modulo 256.

## Installing

```
pip install .
```

This needs `pyserial`.

## The console

```
mcwlaser COM5
```

The port name is optional and defaults to `COM5`. Any name that pyserial
accepts works, such as `/dev/ttyUSB0`. Once connected, the console reads
the states of the main and pilot lasers. It then polls the temperature
(`1TA`) once a second in the background and shows this menu:

```
Laser Controller Menu
1) Toggle Main Laser (L)
2) Toggle Pilot Laser (PL)
...
9) Quit (safe shutdown)
```

Choose 9 to quit. Quitting switches both lasers off, leaves binary mode
and closes the port.

## From Python

```python
from mcwlaser.protocol import ValueType, connect_to_device

with connect_to_device("COM5") as device:
    main_on = device.send_command("L", ValueType.BOOL)
    temperature = device.send_command("1TA", ValueType.FLOAT)
    device.send_command("PL", ValueType.BOOL, ValueType.BOOL, True)
```

Leaving the `with` block disconnects safely. Failures raise
`mcwlaser.protocol.ProtocolError` or `mcwlaser.serialport.SerialPortError`.

The helpers `format_command_value`, `parse_bool_reply`,
`parse_word_reply` and `parse_float_reply` in `mcwlaser.protocol` work on
plain bytes and strings. You can use them without a device.

## Running the tests

```
pip install .[test]
pytest
```