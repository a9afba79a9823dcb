"""
Transport layer - handles communication with the actuator/service bus.

Provides:
- Transport protocol (interface)
- SimulatedBus for testing and dry runs without a cell attached
- (SerialTransport in separate file for production)
"""

from __future__ import annotations

import re
from typing import Callable, Dict, List, Optional, Protocol, Set

from .types import CONVEYOR_SERVICE, DISPATCH_SERVICE, SESSION_SERVICE


class TransportError(Exception):
    """Raised when the bus link itself fails (not a rejected call)"""
    pass


class Transport(Protocol):
    """Protocol for bus communication."""

    def send(self, request: str) -> str:
        """
        Send one request line and return the raw reply.

        Replies end with 'ok [message]' or 'fail [message]';
        existence probes answer 'ok' or 'missing'.
        """
        ...

    @property
    def is_connected(self) -> bool:
        """Check if transport is connected."""
        ...


class SimulatedBus:
    """
    Simulated service bus for testing without hardware.

    Accepts session, conveyor and dispatch calls, tracks conveyor power
    and records every request. Services can be made unreachable for a
    number of probes or set to reject calls.
    """

    def __init__(self, services: Optional[List[str]] = None):
        self.sent_commands: List[str] = []
        self.conveyor_power: float = 0.0
        self.session_started: bool = False
        self.dispatched: List[str] = []
        self._connected: bool = True
        self._services: Set[str] = set(services or [SESSION_SERVICE, CONVEYOR_SERVICE, DISPATCH_SERVICE])
        self._offline_probes: Dict[str, int] = {}
        self._rejections: Dict[str, Optional[int]] = {}
        self._reject_messages: Dict[str, str] = {}

        # Called after each handled call with (service, request, reply)
        self.on_call: Optional[Callable[[str, str, str], None]] = None

    @property
    def command_count(self) -> int:
        """Number of requests sent (probes included)."""
        return len(self.sent_commands)

    @property
    def calls(self) -> List[str]:
        """Requests sent, existence probes excluded."""
        return [c for c in self.sent_commands if not c.startswith("?")]

    # === Scenario setup ===

    def set_offline(self, service: str, probes: int) -> None:
        """Report `service` missing for the next `probes` existence checks."""
        self._offline_probes[service] = probes

    def reject(self, service: str, times: Optional[int] = None, message: str = "Rejected") -> None:
        """Reject calls to `service` (forever if `times` is None)."""
        self._rejections[service] = times
        self._reject_messages[service] = message

    # === Transport ===

    def send(self, request: str) -> str:
        """
        Simulate sending a request.

        Tracks the request and simulates the side effects of each service.
        """
        if not self._connected:
            raise TransportError("Not connected")

        self.sent_commands.append(request)

        if request.startswith("?"):
            return self._probe(request[1:].strip())

        service, args = self._parse(request)
        if service not in self._services:
            return f"fail unknown service {service}"

        if self._should_reject(service):
            reply = f"fail {self._reject_messages.get(service, 'Rejected')}"
        else:
            reply = self._apply(service, args)

        if self.on_call:
            self.on_call(service, request, reply)
        return reply

    def _probe(self, service: str) -> str:
        remaining = self._offline_probes.get(service, 0)
        if remaining > 0:
            self._offline_probes[service] = remaining - 1
            return "missing"
        return "ok" if service in self._services else "missing"

    def _should_reject(self, service: str) -> bool:
        if service not in self._rejections:
            return False
        remaining = self._rejections[service]
        if remaining is None:
            return True
        if remaining <= 0:
            del self._rejections[service]
            return False
        self._rejections[service] = remaining - 1
        return True

    def _apply(self, service: str, args: Dict[str, str]) -> str:
        if service == SESSION_SERVICE:
            self.session_started = True
            return "ok competition started"

        if service == CONVEYOR_SERVICE:
            if not self.session_started:
                return "fail competition not started"
            self.conveyor_power = float(args.get("power", 0))
            return "ok"

        if service == DISPATCH_SERVICE:
            shipment = args.get("shipment_type", "")
            self.dispatched.append(shipment)
            return f"ok drone dispatched for {shipment}"

        # Default: accept unknown but registered services
        return "ok"

    @staticmethod
    def _parse(request: str):
        """Split 'service key=value ...' into (service, {key: value})."""
        parts = request.split()
        service = parts[0] if parts else ""
        args = {}
        for part in parts[1:]:
            match = re.match(r'([\w/]+)=(\S+)', part)
            if match:
                args[match.group(1)] = match.group(2)
        return service, args

    @property
    def is_connected(self) -> bool:
        return self._connected

    def disconnect(self) -> None:
        """Simulate disconnection (for testing error handling)."""
        self._connected = False

    def reconnect(self) -> None:
        """Simulate reconnection."""
        self._connected = True

    def clear_history(self) -> None:
        """Clear sent request history."""
        self.sent_commands.clear()
