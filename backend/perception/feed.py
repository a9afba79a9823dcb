"""
Sensor feed - frame sources and the consumer thread that drains them.

The consumer keeps draining its source for the whole run, including
while the controller is blocked in a gateway call or a timed hold, so
no backlog builds up in the source.
"""

from __future__ import annotations

import queue
import random
import threading
import time
from typing import Callable, Optional, Protocol, TYPE_CHECKING

import serial

from core.logger import log_critical, log_ok, log_warn

from .frames import CameraFrame, FeedFrame, FrameError, parse_frame
from .observer import PositionObserver

if TYPE_CHECKING:
    from core.transport import SimulatedBus


class FrameSource(Protocol):
    """Interface for anything that yields feed frames"""

    def read(self, timeout: float) -> Optional[FeedFrame]: ...
    def close(self) -> None: ...


class QueueFrameSource:
    """In-process frame source (tests, API injection)"""

    def __init__(self):
        self._queue: "queue.Queue[FeedFrame]" = queue.Queue()

    def push(self, frame: FeedFrame) -> None:
        self._queue.put(frame)

    def push_line(self, line: str) -> None:
        """Parse and enqueue one JSON feed line. Raises FrameError."""
        self._queue.put(parse_frame(line))

    def read(self, timeout: float) -> Optional[FeedFrame]:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    @property
    def backlog(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        pass


class SerialFrameSource:
    """
    Reads newline-delimited JSON frames from a dedicated serial port.

    Malformed lines are logged and skipped.
    """

    def __init__(self, port: str, baud_rate: int = 115200):
        try:
            self._serial = serial.Serial(port, baud_rate, timeout=0.1)
        except serial.SerialException as e:
            raise ConnectionError(f"Failed to open feed port: {e}") from e

    def read(self, timeout: float) -> Optional[FeedFrame]:
        self._serial.timeout = timeout
        line = self._serial.readline().decode(errors="replace").strip()
        if not line:
            return None
        try:
            return parse_frame(line)
        except FrameError as e:
            log_warn(f"Dropped feed line: {e}")
            return None

    def close(self) -> None:
        self._serial.close()


class SimulatedCamera:
    """
    Camera over a SimulatedBus conveyor.

    The object starts `start_z` upstream of the inspection point and moves
    toward (then past) it at `speed` units per second at full power. It is
    only visible within `view_range` of the point; outside that the camera
    reports empty frames.
    """

    def __init__(
        self,
        bus: "SimulatedBus",
        start_z: float = 0.5,
        speed: float = 0.2,
        view_range: float = 1.0,
        period: float = 0.02,
        noise: float = 0.0,
        seed: Optional[int] = None,
    ):
        self._bus = bus
        self.z = start_z
        self._speed = speed
        self._view_range = view_range
        self._period = period
        self._noise = noise
        self._rng = random.Random(seed)

    def read(self, timeout: float) -> Optional[FeedFrame]:
        dt = min(timeout, self._period)
        time.sleep(dt)
        self.z -= self._speed * (self._bus.conveyor_power / 100.0) * dt
        if abs(self.z) > self._view_range:
            return CameraFrame()
        reading = self.z + (self._rng.gauss(0.0, self._noise) if self._noise else 0.0)
        return CameraFrame.at(reading)

    def close(self) -> None:
        pass


FrameHandler = Callable[[FeedFrame], None]


class SensorFeedConsumer:
    """
    Drains a FrameSource on a background thread.

    Camera frames go to the PositionObserver; everything else goes to the
    optional diagnostics handler. Handler errors are logged and the
    consumer keeps going.
    """

    def __init__(
        self,
        source: FrameSource,
        observer: PositionObserver,
        diagnostics: Optional[FrameHandler] = None,
        read_timeout: float = 0.1,
    ):
        self.source = source
        self.observer = observer
        self.diagnostics = diagnostics
        self._read_timeout = read_timeout
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.frames_seen = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="sensor-feed", daemon=True)
        self._thread.start()
        log_ok("Sensor feed consumer started")

    def stop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None

    def handle_frame(self, frame: FeedFrame) -> None:
        """Route one frame (also usable synchronously, without the thread)."""
        self.frames_seen += 1
        if isinstance(frame, CameraFrame):
            self.observer.on_frame(frame)
        elif self.diagnostics:
            self.diagnostics(frame)

    def _run(self) -> None:
        while not self._stop.is_set():
            frame = self.source.read(self._read_timeout)
            if frame is None:
                continue
            try:
                self.handle_frame(frame)
            except Exception as e:
                log_critical(f"Feed handler error on {frame.topic}: {e}")
