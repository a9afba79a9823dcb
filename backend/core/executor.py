"""
Call execution layer.

Provides:
- CallExecutor: serial, auditable execution of bus calls
- CallRecord: execution result with timestamp
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import List, Union, TYPE_CHECKING

from .logger import log_warn
from .types import (
    ActuatorCommand,
    DispatchCommand,
    GatewayResult,
    ProbeCommand,
    SessionCommand,
)

if TYPE_CHECKING:
    from .transport import Transport


# Union of all call types for type checking
AnyCommand = Union[
    SessionCommand,
    ActuatorCommand,
    DispatchCommand,
]


@dataclass
class CallRecord:
    """
    Record of one executed call.

    Kept only for the audit trail; the controller consumes the result
    directly and never reads history back.
    """
    command: AnyCommand
    request: str
    reply: str
    timestamp: datetime
    result: GatewayResult

    @property
    def success(self) -> bool:
        return self.result.success

    def __str__(self) -> str:
        status = "✓" if self.success else "✗"
        return f"[{self.timestamp:%H:%M:%S}] {status} {self.request} → {self.reply}"


class CallExecutor:
    """
    Serial, auditable call executor.

    Features:
    - At most one call in flight (lock held across request and reply)
    - Link failures are reported as failed results, never raised
    - Full history for debugging/audit
    """

    def __init__(self):
        self._history: List[CallRecord] = []
        self._lock = threading.Lock()

    def execute(self, command: AnyCommand, transport: "Transport") -> CallRecord:
        """Execute a single call and record it in history."""
        request = command.to_request()
        with self._lock:
            timestamp = datetime.now()
            try:
                reply = transport.send(request)
                result = GatewayResult.from_reply(reply)
            except Exception as e:
                reply = f"ERROR: {e}"
                result = GatewayResult.fail(reply)

            record = CallRecord(
                command=command,
                request=request,
                reply=reply,
                timestamp=timestamp,
                result=result,
            )
            self._history.append(record)
        return record

    def probe(self, service: str, transport: "Transport") -> bool:
        """
        Check whether a service is reachable.

        Probes are not recorded in history. A link failure counts as
        unreachable.
        """
        with self._lock:
            try:
                reply = transport.send(ProbeCommand(service).to_request())
            except Exception as e:
                log_warn(f"Probe for {service} failed: {e}")
                return False
        lines = [line.strip().lower() for line in reply.splitlines() if line.strip()]
        return bool(lines) and lines[-1] == "ok"

    def get_history(self, limit: int | None = None) -> List[CallRecord]:
        """
        Get execution history.

        Args:
            limit: Optional max number of recent entries to return.
        """
        if limit is None:
            return list(self._history)
        return list(self._history[-limit:])

    def clear_history(self) -> None:
        """Clear execution history."""
        self._history.clear()

    def get_last_record(self) -> CallRecord | None:
        """Get most recent execution record."""
        return self._history[-1] if self._history else None

    def print_history(self, limit: int = 20) -> None:
        """Print recent history to console (for debugging)."""
        for record in self.get_history(limit):
            print(record)
