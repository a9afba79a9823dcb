"""
Position Observer - Single responsibility: classify object position readings

The observer runs on the feed consumer thread and is the only writer of
the DetectionSlot. The sequence controller is the only reader.
"""

import threading
from typing import Optional

from core.logger import LogLevel, log_sensor, log_throttled
from core.types import DetectionSignal, Observation

from .frames import CameraFrame


DEFAULT_TOLERANCE = 0.01


class DetectionSlot:
    """
    Single-writer / single-reader hand-off of the latest classification.

    `latest` is overwritten on every published observation. The first
    AT_POINT is also latched and signalled, so a detection followed by a
    noisy miss before the reader polls is not lost.
    """

    def __init__(self):
        self._latest: Optional[DetectionSignal] = None
        self._detection: Optional[Observation] = None
        self._detected = threading.Event()

    @property
    def latest(self) -> Optional[DetectionSignal]:
        return self._latest

    @property
    def detection(self) -> Optional[Observation]:
        """Observation that first confirmed the inspection point, if any."""
        return self._detection

    @property
    def is_detected(self) -> bool:
        return self._detected.is_set()

    def publish(self, signal: DetectionSignal, observation: Observation) -> None:
        """Writer side: store the newest classification."""
        self._latest = signal
        if signal is DetectionSignal.AT_POINT and not self._detected.is_set():
            self._detection = observation
            self._detected.set()

    def wait(self, timeout: float) -> bool:
        """Reader side: block up to `timeout` seconds for a detection."""
        return self._detected.wait(timeout)

    def clear(self) -> None:
        """Forget previous classifications (start of a run)."""
        self._latest = None
        self._detection = None
        self._detected.clear()


class PositionObserver:
    """
    Classifies along-axis coordinates against the inspection point.

    A coordinate c is AT_POINT iff |c| < tolerance. No filtering across
    observations: a single noisy reading inside the window is a detection.

    Publishing is gated by arm()/disarm(), which only the sequence
    controller calls while it has the conveyor commanded on. Readings taken
    while disarmed are counted but never published.
    """

    def __init__(self, slot: DetectionSlot, tolerance: float = DEFAULT_TOLERANCE):
        if tolerance <= 0:
            raise ValueError(f"Tolerance must be positive, got {tolerance}")
        self._tolerance = tolerance
        self._slot = slot
        self._armed = threading.Event()
        self._count = 0

    @property
    def tolerance(self) -> float:
        return self._tolerance

    @property
    def slot(self) -> DetectionSlot:
        return self._slot

    @property
    def is_armed(self) -> bool:
        return self._armed.is_set()

    @property
    def observation_count(self) -> int:
        """Observations seen since the last reset (empty frames excluded)."""
        return self._count

    def arm(self) -> None:
        self._armed.set()

    def disarm(self) -> None:
        self._armed.clear()

    def reset(self) -> None:
        """Start a new run: disarm, clear the slot and restart numbering."""
        self.disarm()
        self._count = 0
        self._slot.clear()

    def classify(self, coordinate: float) -> DetectionSignal:
        if abs(coordinate) < self._tolerance:
            return DetectionSignal.AT_POINT
        return DetectionSignal.NONE

    def on_observation(self, coordinate: float) -> DetectionSignal:
        """
        Handle one coordinate reading.

        Returns NONE while disarmed, whatever the coordinate.
        """
        self._count += 1
        if not self._armed.is_set():
            return DetectionSignal.NONE

        log_throttled("camera", 5.0, LogLevel.SENSOR, "Logical camera new message received.")
        signal = self.classify(coordinate)
        observation = Observation(coordinate=coordinate, sequence=self._count)
        self._slot.publish(signal, observation)
        if signal is DetectionSignal.AT_POINT:
            log_sensor(f"Object at inspection point (z={coordinate:.4f})",
                       {"observation": observation.sequence})
        return signal

    def on_frame(self, frame: CameraFrame) -> Optional[DetectionSignal]:
        """
        Handle one camera frame.

        Empty frames (no models visible) are skipped: returns None and
        publishes nothing. Otherwise only the first model is consulted.
        """
        if frame.is_empty:
            return None
        return self.on_observation(frame.models[0].pose.position.z)
