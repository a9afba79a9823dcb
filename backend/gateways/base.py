"""
Service Client - shared reachability and call contract for all gateways

Contract:
- If the service is not reachable, log once and block until it is
  (cancellable; bounded only if a reachability timeout is configured).
- Issue the call; a rejection or link failure comes back as a failed
  GatewayResult, never as an exception.
- Optionally retry failed calls with exponential backoff.
"""

import time
from typing import Optional, TYPE_CHECKING

from core.cancellation import CancelToken
from core.executor import AnyCommand, CallExecutor
from core.logger import log_ok, log_wait, log_warn
from core.types import GatewayResult

if TYPE_CHECKING:
    from core.transport import Transport


class ServiceUnavailableError(Exception):
    """Raised when a service stays unreachable past the reachability timeout"""
    pass


class ServiceClient:
    """Calls one named service on the bus"""

    def __init__(
        self,
        service: str,
        transport: "Transport",
        executor: CallExecutor,
        probe_interval: float = 0.5,
        reachability_timeout: Optional[float] = None,
    ):
        self.service = service
        self.transport = transport
        self.executor = executor
        self.probe_interval = probe_interval
        self.reachability_timeout = reachability_timeout

    def exists(self) -> bool:
        return self.executor.probe(self.service, self.transport)

    def wait_for_existence(self, cancel: CancelToken) -> None:
        """
        Block until the service is reachable.

        Raises SequenceCancelled or ServiceUnavailableError.
        """
        cancel.raise_if_cancelled()
        if self.exists():
            return

        log_wait(f"Waiting for {self.service} to be ready...")
        start = time.monotonic()
        while True:
            cancel.sleep(self.probe_interval)
            if self.exists():
                log_ok(f"{self.service} is now ready.")
                return
            waited = time.monotonic() - start
            if self.reachability_timeout is not None and waited >= self.reachability_timeout:
                raise ServiceUnavailableError(
                    f"{self.service} unreachable after {waited:.1f}s"
                )

    def call(
        self,
        command: AnyCommand,
        cancel: Optional[CancelToken] = None,
        max_attempts: int = 1,
        retry_backoff: float = 0.5,
    ) -> GatewayResult:
        """
        Wait for the service, then issue the call.

        Failed calls are retried up to `max_attempts` in total, sleeping
        retry_backoff, 2 * retry_backoff, ... between attempts.
        """
        cancel = cancel or CancelToken()
        self.wait_for_existence(cancel)

        result = GatewayResult.fail("Not attempted")
        for attempt in range(1, max_attempts + 1):
            cancel.raise_if_cancelled()
            result = self.executor.execute(command, self.transport).result
            if result.success:
                return result
            if attempt < max_attempts:
                delay = retry_backoff * (2 ** (attempt - 1))
                log_warn(
                    f"{self.service} rejected ({result.message}), retrying in {delay:.1f}s",
                    {"attempt": attempt, "max_attempts": max_attempts},
                )
                cancel.sleep(delay)
        return result
