"""
Settings Store - Single responsibility: persist and load sequence settings
"""

import json
from pathlib import Path
from typing import Optional, Protocol
from dataclasses import dataclass, asdict, fields, replace

from .types import CONVEYOR_SERVICE, DISPATCH_SERVICE, SESSION_SERVICE


@dataclass(frozen=True)
class SequenceSettings:
    """
    Tunables for one inspection run.

    The two holds stand in for events the cell cannot observe (the object
    settling under the sensor, the pickup agent becoming ready). They are
    approximations to tune per cell, not guarantees.
    """
    tolerance: float = 0.01             # |z| below this is "at inspection point"
    conveyor_power: float = 100.0       # Power used whenever the belt runs
    pre_start_delay: float = 5.0        # Wait after session start before first belt command
    hold_duration: float = 5.0          # Belt stopped at the inspection point
    arrival_wait: float = 15.0          # Belt running toward the pickup zone
    post_dispatch_wait: float = 15.0    # Pickup agent collecting the shipment
    poll_interval: float = 0.05         # Detection wait slice
    detection_timeout: Optional[float] = None     # None = wait forever
    reachability_timeout: Optional[float] = None  # None = wait forever
    probe_interval: float = 0.5         # Reachability re-check period
    max_attempts: int = 1               # Per belt/dispatch call, 1 = no retry
    retry_backoff: float = 0.5          # First retry delay, doubled each attempt
    shipment_id: str = "order_0_shipment_0"
    session_service: str = SESSION_SERVICE
    conveyor_service: str = CONVEYOR_SERVICE
    dispatch_service: str = DISPATCH_SERVICE

    def __post_init__(self):
        if self.tolerance <= 0:
            raise ValueError(f"tolerance must be positive, got {self.tolerance}")
        if not (0.0 < self.conveyor_power <= 100.0):
            raise ValueError(f"conveyor_power must be in (0, 100], got {self.conveyor_power}")
        for name in ("pre_start_delay", "hold_duration", "arrival_wait",
                     "post_dispatch_wait", "retry_backoff"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if self.poll_interval <= 0 or self.probe_interval <= 0:
            raise ValueError("poll_interval and probe_interval must be positive")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        for name in ("detection_timeout", "reachability_timeout"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be positive or None, got {value}")
        if not self.shipment_id or any(c.isspace() for c in self.shipment_id):
            raise ValueError(f"shipment_id must be non-empty without whitespace, got {self.shipment_id!r}")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "SequenceSettings":
        """Build from a dict, ignoring keys this version does not know."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in d.items() if k in known})


class ISettingsStore(Protocol):
    """Interface for settings storage"""

    def get(self) -> SequenceSettings: ...
    def update(self, **changes) -> SequenceSettings: ...
    def reset(self) -> SequenceSettings: ...


class SettingsStore:
    """Persists sequence settings to JSON file"""

    def __init__(self, file_path: Optional[Path] = None):
        self.file_path = file_path or Path(__file__).parent.parent / "sequence_settings.json"
        self._settings = self._load()

    def _load(self) -> SequenceSettings:
        """Load settings from file, falling back to defaults"""
        if self.file_path.exists():
            try:
                with open(self.file_path, 'r') as f:
                    return SequenceSettings.from_dict(json.load(f))
            except (json.JSONDecodeError, TypeError, ValueError):
                pass
        return SequenceSettings()

    def _save(self) -> None:
        """Save settings to file"""
        with open(self.file_path, 'w') as f:
            json.dump(self._settings.to_dict(), f, indent=2)

    def get(self) -> SequenceSettings:
        """Get current settings"""
        return self._settings

    def update(self, **changes) -> SequenceSettings:
        """
        Apply changes and persist.

        Raises ValueError for unknown keys or invalid values; nothing is
        saved in that case.
        """
        known = {f.name for f in fields(SequenceSettings)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
        self._settings = replace(self._settings, **changes)
        self._save()
        return self._settings

    def reset(self) -> SequenceSettings:
        """Restore defaults"""
        self._settings = SequenceSettings()
        self._save()
        return self._settings

    def to_dict(self) -> dict:
        """Export settings as dict (for API)"""
        return self._settings.to_dict()
