"""
Inspection Station - Main facade for the system.

Wires the bus transport, gateways, sensor feed and diagnostics together
and runs one inspection sequence at a time.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from core.cancellation import CancelToken
from core.executor import CallExecutor, CallRecord
from core.logger import log_info, log_ok, log_warn
from core.settings_store import SequenceSettings
from diagnostics.monitor import DiagnosticsMonitor
from gateways.actuator import ActuatorGateway
from gateways.session import SessionGateway
from perception.feed import FrameSource, SensorFeedConsumer
from perception.observer import DetectionSlot, PositionObserver
from workflows.sequence import SequenceController
from workflows.states import RunResult

if TYPE_CHECKING:
    from core.transport import Transport


class InspectionStation:
    """
    Main controller for one conveyor inspection cell.

    Provides a small API for:
    - Running an inspection sequence (blocking)
    - Cancelling it from another thread
    - Status and call history reporting

    Each run gets fresh gateways, observer and controller built from the
    settings in force when the run starts; nothing carries over between
    runs except the call history.
    """

    def __init__(
        self,
        transport: "Transport",
        source: FrameSource,
        settings: Optional[SequenceSettings] = None,
    ):
        self._transport = transport
        self._source = source
        self._executor = CallExecutor()
        self._settings = settings or SequenceSettings()
        self.diagnostics = DiagnosticsMonitor()

        self._slot = DetectionSlot()
        self._observer = PositionObserver(self._slot, self._settings.tolerance)
        self.feed = SensorFeedConsumer(source, self._observer, self.diagnostics)

        self._lock = threading.Lock()
        self._sequence: Optional[SequenceController] = None
        self._last_result: Optional[RunResult] = None

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def settings(self) -> SequenceSettings:
        return self._settings

    @property
    def observer(self) -> PositionObserver:
        return self._observer

    @property
    def sequence(self) -> Optional[SequenceController]:
        """Controller of the current (or last) run."""
        return self._sequence

    @property
    def is_running(self) -> bool:
        seq = self._sequence
        return seq is not None and not seq.is_finished

    @property
    def last_result(self) -> Optional[RunResult]:
        return self._last_result

    def apply_settings(self, settings: SequenceSettings) -> None:
        """Use new settings from the next run on."""
        if self.is_running:
            raise RuntimeError("Cannot change settings while a sequence is running")
        self._settings = settings
        log_ok("Sequence settings updated")

    # =========================================================================
    # Operations
    # =========================================================================

    def run_sequence(self) -> RunResult:
        """
        Run one inspection sequence to completion.

        Raises RuntimeError if a run is already in progress.
        """
        with self._lock:
            if self.is_running:
                raise RuntimeError("Sequence already running")
            self._sequence = self._build_sequence()

        if not self.feed.is_running:
            self.feed.start()

        log_info("Starting inspection sequence", {"shipment": self._settings.shipment_id})
        result = self._sequence.run()
        self._last_result = result
        return result

    def cancel(self, reason: str = "Cancelled by operator") -> bool:
        """Cancel the running sequence. Returns False if nothing is running."""
        seq = self._sequence
        if seq is None or seq.is_finished:
            return False
        seq.cancel(reason)
        return True

    def shutdown(self) -> None:
        """Cancel any run and stop the feed."""
        if self.cancel("Station shutting down"):
            log_warn("Sequence cancelled by shutdown")
        self.feed.stop()
        self._source.close()

    def _build_sequence(self) -> SequenceController:
        settings = self._settings
        observer = PositionObserver(self._slot, settings.tolerance)
        # Feed thread picks up the new observer on its next frame
        self.feed.observer = observer
        self._observer = observer

        return SequenceController(
            session=SessionGateway(self._transport, self._executor, settings),
            actuator=ActuatorGateway(self._transport, self._executor, settings),
            observer=observer,
            settings=settings,
            cancel_token=CancelToken(),
        )

    # =========================================================================
    # Status & History
    # =========================================================================

    def get_status(self) -> Dict[str, Any]:
        """Get current station status."""
        seq = self._sequence
        return {
            "running": self.is_running,
            "state": seq.state.name if seq else None,
            "session_active": seq.session_active if seq else False,
            "conveyor_running": seq.conveyor_running if seq else False,
            "observer_armed": self._observer.is_armed,
            "observations": self._observer.observation_count,
            "last_result": self._last_result.to_dict() if self._last_result else None,
            "diagnostics": self.diagnostics.get_status(),
        }

    def get_call_history(self, limit: int | None = None) -> List[CallRecord]:
        """Get call execution history."""
        return self._executor.get_history(limit)

    def print_history(self, limit: int = 20) -> None:
        """Print recent call history."""
        self._executor.print_history(limit)
