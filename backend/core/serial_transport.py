"""
Serial Transport - Single responsibility: serial communication with the cell bus

Thread-safe: Uses lock so a request and its reply are never interleaved
with another request.
"""

import serial
import serial.tools.list_ports
import time
import threading
from typing import Optional
from dataclasses import dataclass

from .logger import log_bus, log_critical
from .transport import TransportError


BAUD_RATE = 115200
DEFAULT_TIMEOUT = 2

# Final status words of a reply
REPLY_TERMINATORS = ("ok", "fail", "missing")


@dataclass
class SerialConfig:
    baud_rate: int = BAUD_RATE
    timeout: float = DEFAULT_TIMEOUT
    connect_delay: float = 2.0
    reply_timeout: float = 10.0


class SerialTransport:
    """
    Handles raw serial communication with the service bus.

    Thread-safe: All send/read operations are protected by a lock.
    """

    def __init__(self, config: Optional[SerialConfig] = None):
        self.config = config or SerialConfig()
        self._serial: Optional[serial.Serial] = None
        self._connected = False
        self._lock = threading.Lock()

    @staticmethod
    def list_ports() -> list[str]:
        """List available serial ports"""
        ports = serial.tools.list_ports.comports()
        return [port.device for port in ports]

    def connect(self, port: str) -> bool:
        """Connect to serial port"""
        try:
            self._serial = serial.Serial(
                port,
                self.config.baud_rate,
                timeout=self.config.timeout
            )
        except serial.SerialException as e:
            self._connected = False
            raise ConnectionError(f"Failed to connect: {e}") from e
        time.sleep(self.config.connect_delay)
        self._connected = True
        return True

    def disconnect(self) -> None:
        """Disconnect from serial port"""
        if self._serial:
            self._serial.close()
            self._serial = None
        self._connected = False

    def send(self, request: str) -> str:
        """
        Send one request line and wait for its terminating status line.
        """
        if not self._serial or not self._connected:
            raise TransportError("Not connected")

        with self._lock:
            log_bus(">>>", request)
            try:
                self._serial.write(f"{request}\r".encode())
            except serial.SerialException as e:
                raise TransportError(f"Write failed: {e}") from e
            return self._wait_for_reply(self.config.reply_timeout)

    def _wait_for_reply(self, timeout: float) -> str:
        """
        Collect reply lines until a status line arrives.

        Returns all lines joined, so informational lines that precede the
        status word are kept for the caller.
        """
        start = time.time()
        lines = []
        while (time.time() - start) < timeout:
            response = self._serial.readline().decode(errors="replace").strip()
            if response:
                lines.append(response)
                log_bus("<<<", response)
                if response.split(" ", 1)[0].lower() in REPLY_TERMINATORS:
                    return '\n'.join(lines)
            else:
                time.sleep(0.05)
        self._serial.reset_input_buffer()
        log_critical(f"Timeout waiting for reply after {timeout}s")
        raise TransportError(f"Timeout waiting for reply after {timeout}s")

    def clear_buffer(self) -> None:
        """Clear input buffer"""
        if self._serial:
            self._serial.reset_input_buffer()

    @property
    def is_connected(self) -> bool:
        return self._connected
