"""Blocking serial port access with 8N1 framing and millisecond timeouts."""

from __future__ import annotations

from typing import Any, Optional

import serial

DEFAULT_BAUD_RATE = 9600
DEFAULT_TIMEOUT_MS = 1000


class SerialPortError(OSError):
    """Raised when the serial port cannot be opened, read or written."""


class SerialPort:
    """A serial line that reads and writes raw bytes.

    ``transport`` may be any object offering ``read``, ``write``,
    ``reset_input_buffer``, ``reset_output_buffer`` and ``close`` (a
    ``serial.Serial`` instance, for example). When it is omitted, ``open``
    creates a ``serial.Serial`` for ``port_name``.
    """

    def __init__(
        self,
        port_name: str,
        baud_rate: int = DEFAULT_BAUD_RATE,
        read_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        write_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        transport: Optional[Any] = None,
    ) -> None:
        self.port_name = port_name
        self.baud_rate = baud_rate
        self.read_timeout_ms = read_timeout_ms
        self.write_timeout_ms = write_timeout_ms
        self._transport = transport
        self._handle: Optional[Any] = None

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def open(self) -> "SerialPort":
        """Open the line and discard anything pending in either direction."""
        if self.is_open:
            return self
        if self._transport is not None:
            handle = self._transport
        else:
            try:
                handle = serial.Serial(
                    port=self.port_name,
                    baudrate=self.baud_rate,
                    bytesize=serial.EIGHTBITS,
                    parity=serial.PARITY_NONE,
                    stopbits=serial.STOPBITS_ONE,
                    timeout=self.read_timeout_ms / 1000,
                    inter_byte_timeout=self.read_timeout_ms / 1000,
                    write_timeout=self.write_timeout_ms / 1000,
                )
            except (OSError, ValueError) as exc:
                raise SerialPortError(f"failed to open {self.port_name}: {exc}") from exc
        try:
            handle.reset_input_buffer()
            handle.reset_output_buffer()
        except OSError as exc:
            handle.close()
            raise SerialPortError(f"failed to purge {self.port_name}: {exc}") from exc
        self._handle = handle
        return self

    def close(self) -> None:
        """Close the line; closing a closed port does nothing."""
        if self._handle is not None:
            handle, self._handle = self._handle, None
            handle.close()

    def _require_open(self) -> Any:
        if self._handle is None:
            raise SerialPortError(f"serial port {self.port_name} is not open")
        return self._handle

    def write(self, data: bytes) -> None:
        """Write all of ``data`` or raise SerialPortError."""
        handle = self._require_open()
        try:
            written = handle.write(data)
        except OSError as exc:
            raise SerialPortError(f"write to {self.port_name} failed: {exc}") from exc
        if written is not None and written != len(data):
            raise SerialPortError(
                f"short write to {self.port_name}: {written} of {len(data)} bytes"
            )

    def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes; fewer come back when the timeout expires."""
        handle = self._require_open()
        try:
            return bytes(handle.read(size))
        except OSError as exc:
            raise SerialPortError(f"read from {self.port_name} failed: {exc}") from exc

    def flush_input(self) -> None:
        """Discard unread input; does nothing when the port is closed."""
        if self._handle is not None:
            self._handle.reset_input_buffer()

    def __enter__(self) -> "SerialPort":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()