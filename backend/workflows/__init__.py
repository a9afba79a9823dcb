"""Workflow layer - inspection sequence orchestration"""

from .states import (
    SequenceState,
    RunOutcome,
    RunResult,
    InvalidTransitionError,
    DetectionTimeoutError,
    TRANSITIONS,
    TERMINAL_STATES,
)
from .sequence import SequenceController

__all__ = [
    'SequenceState', 'RunOutcome', 'RunResult',
    'InvalidTransitionError', 'DetectionTimeoutError',
    'TRANSITIONS', 'TERMINAL_STATES', 'SequenceController',
]
