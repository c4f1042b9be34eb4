"""Interactive console for the laser controller with background temperature polling."""

from __future__ import annotations

import argparse
import sys
import threading
from typing import Iterable, Optional, TextIO

from .protocol import Device, ProtocolError, connect_to_device

DEFAULT_PORT = "COM5"
POLL_INTERVAL_S = 1.0
POLL_START_DELAY_S = 0.1
TEMPERATURE_COMMAND = "1TA"

MENU = (
    "\nLaser Controller Menu\n"
    "1) Toggle Main Laser (L)\n"
    "2) Toggle Pilot Laser (PL)\n"
    "3) Set Laser Current Target (LCT)\n"
    "4) Timed Run (turn main ON for N seconds, then OFF)\n"
    "5) Set Pulse Width (LMW, microseconds)\n"
    "6) Set Pulse Period (LMP, microseconds)\n"
    "7) Set Number Of Pulses (LMDIC)\n"
    "8) Read Current LCT\n"
    "9) Quit (safe shutdown)\n"
    "Choose: "
)

QUIT_OPTION = 9


class TemperaturePoller:
    """Reads the device temperature at a fixed interval until stopped."""

    def __init__(
        self,
        device: Device,
        lock: threading.Lock,
        out: TextIO,
        err: TextIO,
        interval: float = POLL_INTERVAL_S,
    ) -> None:
        self.device = device
        self.lock = lock
        self.out = out
        self.err = err
        self.interval = interval
        self._stopped = threading.Event()

    def poll_once(self) -> Optional[float]:
        """Query the temperature once; print and return it, or None on failure."""
        try:
            with self.lock:
                celsius = self.device.send_command(TEMPERATURE_COMMAND, "float")
        except ProtocolError:
            print("FAILED TO GET TEMPERATURE", file=self.err, flush=True)
            return None
        print(f"Current Temperature: {celsius:.2f} degrees Celsius", file=self.out, flush=True)
        return celsius

    def run(self) -> None:
        """Poll until ``stop`` is called."""
        if self._stopped.wait(POLL_START_DELAY_S):
            return
        while not self._stopped.is_set():
            self.poll_once()
            self._stopped.wait(self.interval)

    def stop(self) -> None:
        self._stopped.set()


def print_menu(out: TextIO) -> None:
    out.write(MENU)
    out.flush()


class _LaserToggle:
    def __init__(self, command: str, label: str, state: bool) -> None:
        self.command = command
        self.label = label
        self.state = state

    def toggle(self, device: Device, lock: threading.Lock, out: TextIO, err: TextIO) -> None:
        print(f"{self.label} laser was {'ON' if self.state else 'OFF'}", file=out)
        desired = not self.state
        try:
            with lock:
                self.state = bool(device.send_command(self.command, "bool", "bool", desired))
        except ProtocolError:
            print(f"FAILED TO TOGGLE {self.label.upper()} LASER STATE", file=err)
            return
        print(f"{self.label} Laser is now {'ON' if desired else 'OFF'}", file=out)


def _read_state(device: Device, lock: threading.Lock, command: str, label: str, err: TextIO) -> bool:
    try:
        with lock:
            return bool(device.send_command(command, "bool"))
    except ProtocolError:
        print(f"FAILED TO READ {label.upper()} LASER STATE", file=err)
        return False


def run_console(
    device: Device,
    lines: Iterable[str],
    out: TextIO,
    err: TextIO,
    lock: Optional[threading.Lock] = None,
) -> None:
    """Read the laser states, then serve menu choices from ``lines`` until quit or EOF."""
    lock = lock if lock is not None else threading.Lock()
    toggles = {
        1: _LaserToggle("L", "Main", _read_state(device, lock, "L", "main", err)),
        2: _LaserToggle("PL", "Pilot", _read_state(device, lock, "PL", "pilot", err)),
    }

    print_menu(out)
    for line in lines:
        for token in line.split():
            try:
                option = int(token)
            except ValueError:
                print("Invalid input. Please enter a number.", file=err)
                print_menu(out)
                break  # the rest of the line is discarded
            if option == QUIT_OPTION:
                return
            toggle = toggles.get(option)
            if toggle is not None:
                toggle.toggle(device, lock, out, err)
            print_menu(out)


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(prog="mcwlaser", description="Laser controller console.")
    parser.add_argument("port", nargs="?", default=DEFAULT_PORT, help="serial port name")
    args = parser.parse_args(argv)

    try:
        device = connect_to_device(args.port)
    except ProtocolError as exc:
        print(f"{exc}", file=sys.stderr)
        print(f"Failed to connect to device on port {args.port}", file=sys.stderr)
        return 1

    print(f"Connected to device on port {device.port_name}")

    # Every exchange with the device holds the lock, so polling never interleaves
    # with the console's commands on the wire.
    lock = threading.Lock()
    poller = TemperaturePoller(device, lock, sys.stdout, sys.stderr)
    thread = threading.Thread(target=poller.run, name="temperature-poller", daemon=True)
    thread.start()
    try:
        run_console(device, sys.stdin, sys.stdout, sys.stderr, lock)
    except KeyboardInterrupt:
        print(file=sys.stdout)
    finally:
        poller.stop()
        thread.join()
        with lock:
            device.disconnect()
    return 0