"""Core infrastructure layer - bus transports, call execution, settings"""

from .transport import SimulatedBus, TransportError
from .serial_transport import SerialTransport, SerialConfig
from .executor import CallExecutor, CallRecord
from .settings_store import SettingsStore, SequenceSettings
from .cancellation import CancelToken, SequenceCancelled

__all__ = [
    'SimulatedBus', 'TransportError', 'SerialTransport', 'SerialConfig',
    'CallExecutor', 'CallRecord', 'SettingsStore', 'SequenceSettings',
    'CancelToken', 'SequenceCancelled',
]
