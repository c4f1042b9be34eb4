import pytest

from mcwlaser.serialport import SerialPort, SerialPortError


class FakeTransport:
    def __init__(self, rx=b"", short_write=False, fail=False):
        self.rx = bytearray(rx)
        self.written = bytearray()
        self.short_write = short_write
        self.fail = fail
        self.close_count = 0
        self.input_resets = 0

    def write(self, data):
        if self.fail:
            raise OSError("line down")
        self.written += data
        return len(data) - 1 if self.short_write else len(data)

    def read(self, size):
        if self.fail:
            raise OSError("line down")
        out = bytes(self.rx[:size])
        del self.rx[:size]
        return out

    def reset_input_buffer(self):
        self.input_resets += 1
        self.rx.clear()

    def reset_output_buffer(self):
        pass

    def close(self):
        self.close_count += 1


def test_open_purges_and_marks_open():
    transport = FakeTransport(rx=b"stale")
    port = SerialPort("COM5", transport=transport)
    port.open()
    assert port.is_open
    assert transport.rx == bytearray()
    assert transport.input_resets == 1


def test_write_and_read_roundtrip():
    transport = FakeTransport()
    port = SerialPort("COM5", transport=transport).open()
    port.write(b"abc")
    assert bytes(transport.written) == b"abc"
    transport.rx += b"xyz"
    assert port.read(2) == b"xy"
    assert port.read(5) == b"z"
    assert port.read(1) == b""


def test_write_on_closed_port_raises():
    port = SerialPort("COM5", transport=FakeTransport())
    with pytest.raises(SerialPortError):
        port.write(b"a")


def test_read_on_closed_port_raises():
    port = SerialPort("COM5", transport=FakeTransport())
    with pytest.raises(SerialPortError):
        port.read(1)


def test_short_write_raises():
    port = SerialPort("COM5", transport=FakeTransport(short_write=True)).open()
    with pytest.raises(SerialPortError):
        port.write(b"abcd")


def test_transport_errors_become_serial_port_errors():
    transport = FakeTransport()
    port = SerialPort("COM5", transport=transport).open()
    transport.fail = True
    with pytest.raises(SerialPortError):
        port.read(1)
    with pytest.raises(SerialPortError):
        port.write(b"a")


def test_flush_input_discards_pending_bytes():
    transport = FakeTransport()
    port = SerialPort("COM5", transport=transport).open()
    transport.rx += b"pending"
    port.flush_input()
    assert port.read(10) == b""


def test_flush_input_on_closed_port_leaves_transport_alone():
    transport = FakeTransport()
    port = SerialPort("COM5", transport=transport)
    transport.rx += b"pending"
    port.flush_input()
    assert bytes(transport.rx) == b"pending"


def test_close_is_idempotent():
    transport = FakeTransport()
    port = SerialPort("COM5", transport=transport).open()
    port.close()
    port.close()
    assert transport.close_count == 1
    assert not port.is_open


def test_context_manager_opens_and_closes():
    transport = FakeTransport()
    with SerialPort("COM5", transport=transport) as port:
        assert port.is_open
    assert transport.close_count == 1
    assert not port.is_open


def test_defaults_match_device_settings():
    port = SerialPort("COM5")
    assert port.baud_rate == 9600
    assert port.read_timeout_ms == 1000
    assert port.write_timeout_ms == 1000
    assert not port.is_open


def test_opening_missing_device_raises():
    port = SerialPort("/nonexistent/mcwlaser-test-port")
    with pytest.raises(SerialPortError):
        port.open()
    assert not port.is_open