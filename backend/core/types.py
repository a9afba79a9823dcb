"""
Core immutable types for the conveyor inspection sequencer.

All commands and results are frozen dataclasses: they are built right
before a gateway call, consumed once and never mutated. This keeps the
call sequence deterministic and easy to audit in tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Protocol


# =============================================================================
# Service names (defaults match the competition bus)
# =============================================================================

SESSION_SERVICE = "start_competition"
CONVEYOR_SERVICE = "conveyor/control"
DISPATCH_SERVICE = "drone"

POWER_MIN = 0.0
POWER_MAX = 100.0


# =============================================================================
# Sensor Types
# =============================================================================


class DetectionSignal(Enum):
    """Classification of a single position observation."""
    NONE = auto()
    AT_POINT = auto()


@dataclass(frozen=True)
class Observation:
    """
    One along-axis coordinate reading of the tracked object.

    `sequence` is the 1-based arrival order within a run; the feed has no
    reliable clock of its own so arrival order is the only timestamp.
    """
    coordinate: float
    sequence: int


# =============================================================================
# Command Protocol & Types
# =============================================================================


class Command(Protocol):
    """Protocol for all bus service calls."""

    service: str

    def to_request(self) -> str:
        """Convert to a single request line."""
        ...


@dataclass(frozen=True)
class SessionCommand:
    """Begin the timed session (no arguments)."""
    service: str = SESSION_SERVICE

    def to_request(self) -> str:
        return self.service


@dataclass(frozen=True)
class ActuatorCommand:
    """
    Set conveyor power.

    Power is a percentage in [0, 100]; 0 halts the belt.
    """
    power: float
    service: str = CONVEYOR_SERVICE

    def __post_init__(self):
        if not (POWER_MIN <= self.power <= POWER_MAX):
            raise ValueError(
                f"Power {self.power} out of range [{POWER_MIN}, {POWER_MAX}]"
            )

    @classmethod
    def stop(cls, service: str = CONVEYOR_SERVICE) -> ActuatorCommand:
        return cls(power=0.0, service=service)

    @property
    def is_stop(self) -> bool:
        return self.power == 0.0

    def to_request(self) -> str:
        return f"{self.service} power={self.power:.2f}"


@dataclass(frozen=True)
class DispatchCommand:
    """Ask the pickup agent to collect a shipment."""
    shipment_id: str
    service: str = DISPATCH_SERVICE

    def __post_init__(self):
        if not self.shipment_id or any(c.isspace() for c in self.shipment_id):
            raise ValueError(f"Invalid shipment id: {self.shipment_id!r}")

    def to_request(self) -> str:
        return f"{self.service} shipment_type={self.shipment_id}"


@dataclass(frozen=True)
class ProbeCommand:
    """Ask the bus whether a service is currently reachable."""
    service: str

    def to_request(self) -> str:
        return f"? {self.service}"


# =============================================================================
# Result Types
# =============================================================================


@dataclass(frozen=True)
class GatewayResult:
    """
    Outcome of one remote call.

    Returned synchronously, consumed once, never stored by the controller.
    """
    success: bool
    message: str = ""

    @classmethod
    def ok(cls, message: str = "") -> GatewayResult:
        return cls(True, message)

    @classmethod
    def fail(cls, message: str) -> GatewayResult:
        return cls(False, message)

    @classmethod
    def from_reply(cls, reply: str) -> GatewayResult:
        """
        Parse a bus reply.

        The last non-empty line carries the status word ('ok' or 'fail'),
        optionally followed by a free-text message.
        """
        lines = [line.strip() for line in reply.splitlines() if line.strip()]
        if not lines:
            return cls.fail("Empty reply")

        status, _, message = lines[-1].partition(" ")
        status = status.lower()
        if status == "ok":
            return cls.ok(message.strip())
        if status == "fail":
            return cls.fail(message.strip() or "Rejected")
        return cls.fail(f"Unexpected reply: {lines[-1]}")
