"""Line-echo command protocol with binary replies for the laser controller."""

from __future__ import annotations

import enum
import logging
import struct
import time
from typing import Optional, Union

from .serialport import SerialPort, SerialPortError

logger = logging.getLogger(__name__)

ESCAPE = b"\x1b"
CARRIAGE_RETURN = b"\r"
MAX_LINE_BYTES = 128
BOOL_TRUE = 0xAA
BOOL_FALSE = 0x55
CHECKSUM_SEED = 0x55
MAX_FLOAT_CHARS = 9

_ASCII_UPPER = str.maketrans("abcdefghijklmnopqrstuvwxyz", "ABCDEFGHIJKLMNOPQRSTUVWXYZ")


class ProtocolError(Exception):
    """Raised when the device does not answer as the protocol requires."""


class ValueType(enum.Enum):
    BOOL = "bool"
    WORD = "word"
    INT = "int"
    FLOAT = "float"
    STR = "str"


Reply = Union[bool, int, float]


def to_command_case(text: str) -> str:
    """Upper-case the ASCII letters of a command line."""
    return text.translate(_ASCII_UPPER)


def format_command_value(value_type, value) -> str:
    """Render a command argument the way the device expects it."""
    kind = ValueType(value_type)
    if value is None:
        value = 0
    if kind is ValueType.BOOL:
        return "R" if value else "S"
    if kind in (ValueType.WORD, ValueType.INT):
        return str(min(max(int(value), 0), 0xFFFF))
    if kind is ValueType.FLOAT:
        number = float(value)
        for precision in range(9, -1, -1):
            text = "%.*g" % (precision, number)
            if len(text) <= MAX_FLOAT_CHARS:
                return text
        return "%.3g" % number
    return ""


def _checksum(payload: bytes) -> int:
    return (CHECKSUM_SEED + sum(payload)) & 0xFF


def _checked_payload(data: bytes, size: int, what: str) -> bytes:
    if len(data) != size:
        raise ProtocolError(f"{what} reply needs {size} bytes, got {len(data)}")
    payload, check = data[:-1], data[-1]
    if _checksum(payload) != check:
        raise ProtocolError(f"{what} reply checksum mismatch: {data.hex(' ').upper()}")
    return payload


def parse_bool_reply(data: bytes) -> bool:
    """Decode a one-byte boolean reply (0xAA true, 0x55 false)."""
    if len(data) != 1:
        raise ProtocolError(f"bool reply needs 1 byte, got {len(data)}")
    if data[0] == BOOL_TRUE:
        return True
    if data[0] == BOOL_FALSE:
        return False
    raise ProtocolError(f"invalid bool reply byte 0x{data[0]:02X}")


def parse_word_reply(data: bytes) -> int:
    """Decode a big-endian 16-bit reply followed by its checksum byte."""
    payload = _checked_payload(data, 3, "word")
    return int.from_bytes(payload, "big")


def parse_float_reply(data: bytes) -> float:
    """Decode a big-endian IEEE 754 single followed by its checksum byte."""
    payload = _checked_payload(data, 5, "float")
    return struct.unpack(">f", payload)[0]


class Device:
    """The laser controller on the other end of a serial port."""

    def __init__(self, port: SerialPort) -> None:
        self.port = port
        self.connected = False

    @property
    def port_name(self) -> str:
        return self.port.port_name

    def read_line(self, max_bytes: int = MAX_LINE_BYTES) -> bytes:
        """Read up to a carriage return, a timeout, or ``max_bytes - 1`` bytes."""
        line = bytearray()
        while len(line) + 1 < max_bytes:
            byte = self.port.read(1)
            if not byte:
                break
            line += byte
            if byte == CARRIAGE_RETURN:
                break
        return bytes(line)

    def handshake(self, timeout_ms: int = 1000) -> None:
        """Send ESC until the device echoes it back, or raise after the timeout."""
        self.port.flush_input()
        deadline = time.monotonic() + timeout_ms / 1000
        while time.monotonic() < deadline:
            try:
                self.port.write(ESCAPE)
                reply = self.port.read(1)
            except SerialPortError:
                reply = b""
            if reply == ESCAPE:
                self.port.flush_input()
                return
            time.sleep(0.05)
        self.port.flush_input()
        raise ProtocolError(f"no handshake echo within {timeout_ms} ms")

    def send_line_and_verify_echo(self, line: str) -> None:
        """Send ``line`` with a carriage return and require the same line echoed."""
        if len(line) + 1 >= MAX_LINE_BYTES:
            raise ProtocolError(f"line too long to send: {line}")
        try:
            expected = (line + "\r").encode("ascii")
        except UnicodeEncodeError as exc:
            raise ProtocolError(f"line is not ASCII: {line!r}") from exc
        try:
            self.port.flush_input()
            self.port.write(expected)
        except SerialPortError as exc:
            raise ProtocolError(f"failed to write command line {line}") from exc
        try:
            received = self.read_line(MAX_LINE_BYTES)
        except SerialPortError as exc:
            raise ProtocolError(f"failed to read echo for line {line}") from exc
        if not received:
            raise ProtocolError(f"failed to read echo for line {line}")
        if received != expected:
            raise ProtocolError(
                f"echo mismatch: sent {expected!r} [{expected.hex(' ').upper()}], "
                f"got {received!r} [{received.hex(' ').upper()}]"
            )

    def _read_exact(self, size: int) -> bytes:
        try:
            return self.port.read(size)
        except SerialPortError as exc:
            raise ProtocolError(f"failed to read {size}-byte reply") from exc

    def read_bool_reply(self) -> bool:
        return parse_bool_reply(self._read_exact(1))

    def read_word_reply(self) -> int:
        return parse_word_reply(self._read_exact(3))

    def read_float_reply(self) -> float:
        return parse_float_reply(self._read_exact(5))

    def send_command(
        self,
        name: str,
        reply_type="bool",
        value_type=None,
        value=None,
    ) -> Reply:
        """Send a command, retrying once after ESC, and return the decoded reply."""
        line = name if value_type is None else name + format_command_value(value_type, value)
        line = to_command_case(line)

        try:
            self.send_line_and_verify_echo(line)
        except ProtocolError as first:
            logger.debug("retrying %s after: %s", line, first)
            time.sleep(0.1)
            try:
                self.port.write(ESCAPE)
            except SerialPortError:
                pass
            time.sleep(0.1)
            try:
                self.send_line_and_verify_echo(line)
            except ProtocolError as exc:
                raise ProtocolError(f"failed to send command {line}") from exc

        readers = {
            ValueType.BOOL: self.read_bool_reply,
            ValueType.WORD: self.read_word_reply,
            ValueType.FLOAT: self.read_float_reply,
        }
        try:
            kind: Optional[ValueType] = ValueType(reply_type)
        except ValueError:
            kind = None
        reader = readers.get(kind) if kind is not None else None
        if reader is None:
            raise ProtocolError(f"unknown reply type {reply_type} for command {line}")
        try:
            reply = reader()
        except ProtocolError as exc:
            raise ProtocolError(f"failed to read {kind.value} reply for command {line}") from exc
        self.port.flush_input()
        return reply

    def set_binary_mode(self, enabled: bool) -> None:
        self.send_line_and_verify_echo("GMS8" if enabled else "GMC8")

    def connect(self) -> None:
        """Open the port, handshake, take external control and enable binary mode."""
        self.connected = False
        try:
            self.port.open()
        except SerialPortError as exc:
            raise ProtocolError(f"failed to open serial port {self.port_name}") from exc
        try:
            try:
                self.handshake(1000)
            except ProtocolError as exc:
                raise ProtocolError(
                    f"failed to handshake with device on port {self.port_name}"
                ) from exc
            try:
                self.send_line_and_verify_echo("GX R")
            except ProtocolError as exc:
                raise ProtocolError("failed to enter external control") from exc
            try:
                self.set_binary_mode(True)
            except ProtocolError as exc:
                raise ProtocolError("failed to enable binary mode") from exc
        except ProtocolError:
            self.port.close()
            raise
        self.connected = True

    def disconnect(self) -> None:
        """Switch both lasers off, leave binary mode and close the port."""
        if not self.connected:
            return
        for command in ("L", "PL"):
            try:
                self.send_command(command, "bool", "bool", False)
            except ProtocolError as exc:
                logger.warning("could not switch off %s: %s", command, exc)
        try:
            self.set_binary_mode(False)
        except ProtocolError as exc:
            logger.warning("could not leave binary mode: %s", exc)
        self.port.close()
        self.connected = False

    def __enter__(self) -> "Device":
        if not self.connected:
            self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()


def connect_to_device(port_name: str) -> Device:
    """Open ``port_name`` at 9600 baud and return a connected Device."""
    device = Device(SerialPort(port_name, 9600))
    device.connect()
    return device