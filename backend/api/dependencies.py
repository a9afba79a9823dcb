"""
API Dependencies - Dependency injection for FastAPI
"""

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
import sys
import os
import threading

# Add parent to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.logger import log_critical
from core.settings_store import SettingsStore
from core.serial_transport import SerialTransport
from core.transport import SimulatedBus
from perception.feed import QueueFrameSource, SerialFrameSource, SimulatedCamera
from controller import InspectionStation


@dataclass
class AppState:
    """
    Application state container.

    Ports:
    - "mock": simulated bus, frames injected through the API
    - "sim":  simulated bus with a simulated camera driven by belt power
    - anything else: serial bus on `port`, JSON frames on `feed_port`
    """
    settings: SettingsStore = field(default_factory=SettingsStore)
    station: Optional[InspectionStation] = None
    _transport: Optional[Any] = None
    _run_thread: Optional[threading.Thread] = None

    @property
    def is_connected(self) -> bool:
        return self._transport is not None and self._transport.is_connected

    @property
    def frame_queue(self) -> Optional[QueueFrameSource]:
        """In-process frame source, when connected to 'mock'."""
        if self.station and isinstance(self.station.feed.source, QueueFrameSource):
            return self.station.feed.source
        return None

    def connect(self, port: str, feed_port: Optional[str] = None) -> bool:
        """Connect to the bus and build the station."""
        try:
            if port == "mock":
                self._transport = SimulatedBus()
                source = QueueFrameSource()
            elif port == "sim":
                self._transport = SimulatedBus()
                source = SimulatedCamera(self._transport)
            else:
                if not feed_port:
                    raise ValueError("feed_port is required for a serial bus")
                self._transport = SerialTransport()
                if not self._transport.connect(port):
                    return False
                source = SerialFrameSource(feed_port)

            self.station = InspectionStation(
                transport=self._transport,
                source=source,
                settings=self.settings.get(),
            )
            self.station.feed.start()
            return True
        except (ConnectionError, ValueError) as e:
            log_critical(f"Connection error: {e}")
            if hasattr(self._transport, "disconnect"):
                self._transport.disconnect()
            self._transport = None
            self.station = None
            return False

    def disconnect(self) -> None:
        """Disconnect from the bus."""
        if self.station:
            self.station.shutdown()
        if self._run_thread:
            self._run_thread.join(timeout=5.0)
            self._run_thread = None
        if hasattr(self._transport, 'disconnect'):
            self._transport.disconnect()
        self._transport = None
        self.station = None

    def start_run(self) -> None:
        """
        Run one sequence on a background thread.

        Raises RuntimeError if the previous run thread is still alive.
        """
        if self._run_thread and self._run_thread.is_alive():
            raise RuntimeError("Sequence already running")
        station = self.station
        station.apply_settings(self.settings.get())
        self._run_thread = threading.Thread(
            target=station.run_sequence, name="inspection-run", daemon=True
        )
        self._run_thread.start()

    def get_status(self) -> Dict[str, Any]:
        """Get current status for API."""
        if self.station:
            status = self.station.get_status()
            status["connected"] = self.is_connected
            return status
        return {
            "connected": False,
            "running": False,
            "state": None,
            "session_active": False,
            "conveyor_running": False,
            "observer_armed": False,
            "observations": 0,
            "last_result": None,
            "diagnostics": None,
        }

    def get_call_history(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Get recent call history."""
        if not self.station:
            return []

        history = self.station.get_call_history(limit)
        return [
            {
                "request": r.request,
                "reply": r.reply,
                "success": r.success,
                "message": r.result.message,
                "timestamp": r.timestamp.isoformat(),
            }
            for r in history
        ]


# Global instance
_app_state: Optional[AppState] = None


def get_app_state() -> AppState:
    """Get the global app state instance."""
    global _app_state
    if _app_state is None:
        _app_state = AppState()
    return _app_state


def require_connection() -> InspectionStation:
    """Get station, raising error if not connected."""
    from fastapi import HTTPException

    state = get_app_state()
    if not state.is_connected or state.station is None:
        raise HTTPException(status_code=400, detail="Not connected to bus")
    return state.station


def require_idle() -> InspectionStation:
    """Get station, raising error if not connected or a run is in progress."""
    from fastapi import HTTPException

    station = require_connection()
    if station.is_running:
        raise HTTPException(status_code=409, detail="Sequence already running")
    return station
