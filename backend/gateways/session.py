"""
Session Gateway - Single responsibility: open the timed session
"""

from typing import Optional, Protocol, TYPE_CHECKING

from core.cancellation import CancelToken
from core.executor import CallExecutor
from core.logger import log_critical, log_info, log_ok
from core.settings_store import SequenceSettings
from core.types import GatewayResult, SessionCommand

from .base import ServiceClient

if TYPE_CHECKING:
    from core.transport import Transport


class ISessionGateway(Protocol):
    """Interface for session control"""

    def begin_session(self, cancel: Optional[CancelToken] = None) -> GatewayResult: ...


class SessionGateway:
    """
    Wraps the session/arbitration service.

    begin_session is never retried: the controller calls it exactly once
    per run and treats a failure as terminal.
    """

    def __init__(self, transport: "Transport", executor: CallExecutor,
                 settings: SequenceSettings = None):
        self.settings = settings or SequenceSettings()
        self.client = ServiceClient(
            self.settings.session_service,
            transport,
            executor,
            probe_interval=self.settings.probe_interval,
            reachability_timeout=self.settings.reachability_timeout,
        )

    def begin_session(self, cancel: Optional[CancelToken] = None) -> GatewayResult:
        """Start the session. Blocks until the service is reachable."""
        command = SessionCommand(service=self.settings.session_service)
        log_info("Requesting competition start...")
        result = self.client.call(command, cancel)
        if not result.success:
            log_critical(f"Failed to start the competition: {result.message}")
        else:
            log_ok("Competition started!")
        return result
