"""
Sequence states, allowed transitions and run outcomes
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, FrozenSet, Optional


class InvalidTransitionError(Exception):
    """Raised when the controller attempts a transition not in TRANSITIONS"""
    pass


class DetectionTimeoutError(Exception):
    """Raised when no detection arrives within the configured timeout"""
    pass


class SequenceState(Enum):
    """States of one inspection run, in forward order."""
    INIT = auto()
    SESSION_STARTING = auto()
    SESSION_FAILED = auto()
    CONVEYOR_RUNNING_TO_POINT = auto()
    AT_INSPECTION_POINT = auto()
    CONVEYOR_STOPPED = auto()
    HOLDING = auto()
    CONVEYOR_RESUMING = auto()
    AWAITING_ARRIVAL = auto()
    DISPATCHING = auto()
    DONE = auto()
    DISPATCH_FAILED = auto()


S = SequenceState

# Strictly forward; the detection wait is the only self-loop
TRANSITIONS: Dict[SequenceState, FrozenSet[SequenceState]] = {
    S.INIT: frozenset({S.SESSION_STARTING, S.SESSION_FAILED}),
    S.SESSION_STARTING: frozenset({S.CONVEYOR_RUNNING_TO_POINT, S.SESSION_FAILED}),
    S.CONVEYOR_RUNNING_TO_POINT: frozenset({S.CONVEYOR_RUNNING_TO_POINT, S.AT_INSPECTION_POINT}),
    S.AT_INSPECTION_POINT: frozenset({S.CONVEYOR_STOPPED}),
    S.CONVEYOR_STOPPED: frozenset({S.HOLDING}),
    S.HOLDING: frozenset({S.CONVEYOR_RESUMING}),
    S.CONVEYOR_RESUMING: frozenset({S.AWAITING_ARRIVAL}),
    S.AWAITING_ARRIVAL: frozenset({S.DISPATCHING}),
    S.DISPATCHING: frozenset({S.DONE, S.DISPATCH_FAILED}),
    S.DONE: frozenset(),
    S.SESSION_FAILED: frozenset(),
    S.DISPATCH_FAILED: frozenset(),
}

TERMINAL_STATES = frozenset({S.DONE, S.SESSION_FAILED, S.DISPATCH_FAILED})


def is_allowed(old: SequenceState, new: SequenceState) -> bool:
    return new in TRANSITIONS[old]


class RunOutcome(Enum):
    """Why a run stopped."""
    COMPLETED = auto()
    SESSION_REJECTED = auto()
    CALL_REJECTED = auto()
    DISPATCH_REJECTED = auto()
    TIMED_OUT = auto()
    CANCELLED = auto()


EXIT_CODES: Dict[RunOutcome, int] = {
    RunOutcome.COMPLETED: 0,
    RunOutcome.SESSION_REJECTED: 1,
    RunOutcome.CALL_REJECTED: 1,
    RunOutcome.DISPATCH_REJECTED: 1,
    RunOutcome.TIMED_OUT: 2,
    RunOutcome.CANCELLED: 130,
}


@dataclass(frozen=True)
class RunResult:
    """Final report of one run."""
    state: SequenceState
    outcome: RunOutcome
    message: str = ""
    detection_sequence: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.outcome is RunOutcome.COMPLETED

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.outcome]

    def to_dict(self) -> dict:
        return {
            "state": self.state.name,
            "outcome": self.outcome.name,
            "message": self.message,
            "detection_sequence": self.detection_sequence,
            "success": self.success,
        }
