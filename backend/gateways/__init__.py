"""Gateway layer - session, conveyor and dispatch services"""

from .base import ServiceClient, ServiceUnavailableError
from .session import SessionGateway
from .actuator import ActuatorGateway

__all__ = [
    'ServiceClient', 'ServiceUnavailableError',
    'SessionGateway', 'ActuatorGateway',
]
