"""
Actuator Gateway - Single responsibility: conveyor power and pickup dispatch

Calls are idempotent at the protocol level (setting the same power twice
is safe) but nothing here de-duplicates them.
"""

from typing import Optional, Protocol, TYPE_CHECKING

from core.cancellation import CancelToken
from core.executor import CallExecutor
from core.logger import log_belt, log_critical, log_info, log_ok
from core.settings_store import SequenceSettings
from core.types import ActuatorCommand, DispatchCommand, GatewayResult

from .base import ServiceClient

if TYPE_CHECKING:
    from core.transport import Transport


class IActuatorGateway(Protocol):
    """Interface for actuator control"""

    def set_conveyor_power(self, power: float, cancel: Optional[CancelToken] = None) -> GatewayResult: ...
    def dispatch_pickup(self, shipment_id: str, cancel: Optional[CancelToken] = None) -> GatewayResult: ...


class ActuatorGateway:
    """Wraps the conveyor control and pickup dispatch services"""

    def __init__(self, transport: "Transport", executor: CallExecutor,
                 settings: SequenceSettings = None):
        self.settings = settings or SequenceSettings()
        self.conveyor = ServiceClient(
            self.settings.conveyor_service,
            transport,
            executor,
            probe_interval=self.settings.probe_interval,
            reachability_timeout=self.settings.reachability_timeout,
        )
        self.dispatcher = ServiceClient(
            self.settings.dispatch_service,
            transport,
            executor,
            probe_interval=self.settings.probe_interval,
            reachability_timeout=self.settings.reachability_timeout,
        )

    def set_conveyor_power(self, power: float, cancel: Optional[CancelToken] = None) -> GatewayResult:
        """
        Set belt power (0 stops it).

        Raises ValueError if power is outside [0, 100].
        """
        command = ActuatorCommand(power=power, service=self.settings.conveyor_service)
        action = "stop" if command.is_stop else f"power {power:.0f}%"
        log_belt(f"Requesting conveyor belt {action}...")

        result = self.conveyor.call(
            command,
            cancel,
            max_attempts=self.settings.max_attempts,
            retry_backoff=self.settings.retry_backoff,
        )
        if not result.success:
            log_critical(f"Failed to set conveyor belt to {action}: {result.message}")
        elif command.is_stop:
            log_ok("Conveyor belt stopped!")
        else:
            log_ok("Conveyor belt started!")
        return result

    def dispatch_pickup(self, shipment_id: str, cancel: Optional[CancelToken] = None) -> GatewayResult:
        """
        Send the pickup agent for `shipment_id`.

        An id the bus cannot carry comes back as a failed result; nothing
        is sent.
        """
        try:
            command = DispatchCommand(shipment_id=shipment_id, service=self.settings.dispatch_service)
        except ValueError as e:
            log_critical(f"Failed to start the drone: {e}")
            return GatewayResult.fail(str(e))
        log_info(f"Requesting drone for {shipment_id}...")

        result = self.dispatcher.call(
            command,
            cancel,
            max_attempts=self.settings.max_attempts,
            retry_backoff=self.settings.retry_backoff,
        )
        if not result.success:
            log_critical(f"Failed to start the drone: {result.message}")
        else:
            log_ok("Drone started!")
        return result
