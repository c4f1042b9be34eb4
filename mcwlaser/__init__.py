"""Serial-line control of OsTech-protocol laser drivers."""

__version__ = "0.1.0"
__all__ = ["cli", "protocol", "serialport"]