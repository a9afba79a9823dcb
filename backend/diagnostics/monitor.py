"""
Diagnostics Monitor - passive feed consumers that only log

Nothing here influences the sequence; it only reports what the cell
is doing alongside it.
"""

import math
from typing import List, Optional

from core.logger import LogLevel, log_diag, log_throttled
from perception.frames import (
    BreakBeamFrame,
    CompetitionStateFrame,
    DroneFrame,
    FeedFrame,
    JointStateFrame,
    LaserScanFrame,
    OrderFrame,
    RangeFrame,
    ScoreFrame,
)


PROXIMITY_MARGIN = 0.01


class DiagnosticsMonitor:
    """Logs score, competition state, orders and auxiliary sensor activity"""

    def __init__(self):
        self.current_score: float = 0.0
        self.competition_state: Optional[str] = None
        self.received_orders: List[OrderFrame] = []
        self.last_joint_state: Optional[JointStateFrame] = None
        self.frames_ignored = 0

    def __call__(self, frame: FeedFrame) -> None:
        self.handle(frame)

    def handle(self, frame: FeedFrame) -> None:
        if isinstance(frame, ScoreFrame):
            self._on_score(frame)
        elif isinstance(frame, CompetitionStateFrame):
            self._on_competition_state(frame)
        elif isinstance(frame, OrderFrame):
            self._on_order(frame)
        elif isinstance(frame, JointStateFrame):
            self._on_joint_state(frame)
        elif isinstance(frame, BreakBeamFrame):
            if frame.object_detected:
                log_diag("Break beam triggered.")
        elif isinstance(frame, RangeFrame):
            if (frame.max_range - frame.range) > PROXIMITY_MARGIN:
                log_throttled("proximity", 1.0, LogLevel.DIAG, "Proximity sensor sees something.")
        elif isinstance(frame, LaserScanFrame):
            if self.valid_ranges(frame) > 0:
                log_throttled("laser", 1.0, LogLevel.DIAG, "Laser profiler sees something.")
        elif isinstance(frame, DroneFrame):
            log_throttled("drone", 5.0, LogLevel.DIAG, "New drone message received.", {"data": frame.data})
        else:
            self.frames_ignored += 1

    @staticmethod
    def valid_ranges(frame: LaserScanFrame) -> int:
        """Number of beams with a finite return."""
        return sum(1 for r in frame.ranges if r is not None and math.isfinite(r))

    def _on_score(self, frame: ScoreFrame) -> None:
        if frame.data != self.current_score:
            log_diag(f"Score: {frame.data}")
        self.current_score = frame.data

    def _on_competition_state(self, frame: CompetitionStateFrame) -> None:
        if frame.data == "done" and self.competition_state != "done":
            log_diag("Competition ended.")
        self.competition_state = frame.data

    def _on_order(self, frame: OrderFrame) -> None:
        log_diag(f"Received order: {frame.order_id}", {"shipments": len(frame.shipments)})
        self.received_orders.append(frame)

    def _on_joint_state(self, frame: JointStateFrame) -> None:
        self.last_joint_state = frame
        log_throttled(
            "joint_states", 10.0, LogLevel.DIAG,
            "Joint States (throttled to 0.1 Hz)",
            dict(zip(frame.name, frame.position)),
        )

    def get_status(self) -> dict:
        return {
            "score": self.current_score,
            "competition_state": self.competition_state,
            "orders": [o.order_id for o in self.received_orders],
        }
