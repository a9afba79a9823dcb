"""
Cancellation - Single responsibility: interrupt blocking waits

Every blocking point in a run (reachability waits, detection wait, timed
holds, retry backoff) goes through a CancelToken so a run can be stopped
from another thread without killing the process.
"""

import threading
from typing import Optional


class SequenceCancelled(Exception):
    """Raised when a blocking wait is interrupted by cancel()"""
    pass


class CancelToken:
    """Thread-safe one-shot cancellation flag"""

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "Cancelled") -> None:
        """Request cancellation (idempotent, first reason wins)"""
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SequenceCancelled(self.reason or "Cancelled")

    def sleep(self, seconds: float) -> None:
        """
        Sleep for `seconds` of wall-clock time.

        Raises SequenceCancelled as soon as the token fires.
        """
        if seconds <= 0:
            self.raise_if_cancelled()
            return
        if self._event.wait(seconds):
            raise SequenceCancelled(self.reason or "Cancelled")
