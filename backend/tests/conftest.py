"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
import serial

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.executor import CallExecutor
from core.logger import reset_throttle
from core.settings_store import SequenceSettings
from core.transport import SimulatedBus
from core.types import CONVEYOR_SERVICE
from gateways.actuator import ActuatorGateway
from gateways.session import SessionGateway
from perception.feed import QueueFrameSource, SensorFeedConsumer
from perception.observer import DetectionSlot, PositionObserver
from workflows.sequence import SequenceController


@pytest.fixture(autouse=True)
def _clear_log_throttle():
    """Throttle marks are module-global; start every test clean."""
    reset_throttle()
    yield
    reset_throttle()


@pytest.fixture
def fast_settings() -> SequenceSettings:
    """Settings with every hold at zero so runs finish immediately."""
    return SequenceSettings(
        pre_start_delay=0.0,
        hold_duration=0.0,
        arrival_wait=0.0,
        post_dispatch_wait=0.0,
        poll_interval=0.01,
        probe_interval=0.01,
        retry_backoff=0.0,
    )


class FakePorts:
    """Replaces serial.Serial; ports in `refuse` fail to open."""

    def __init__(self):
        self.opened = []
        self.refuse = set()

    def __call__(self, port, baud_rate, timeout=None):
        if port in self.refuse:
            raise serial.SerialException(f"could not open port {port}")
        handle = SimpleNamespace(port=port, closed=False)
        handle.close = lambda: setattr(handle, "closed", True)
        self.opened.append(handle)
        return handle


@pytest.fixture
def fake_ports(monkeypatch) -> FakePorts:
    ports = FakePorts()
    monkeypatch.setattr(serial, "Serial", ports)
    return ports


@pytest.fixture
def bus() -> SimulatedBus:
    return SimulatedBus()


class Rig(SimpleNamespace):
    """Everything one controller needs, wired to a SimulatedBus."""

    def controller(self, settings=None) -> SequenceController:
        settings = settings or self.settings
        return SequenceController(
            session=SessionGateway(self.bus, self.executor, settings),
            actuator=ActuatorGateway(self.bus, self.executor, settings),
            observer=self.observer,
            settings=settings,
        )

    def feed_when_belt_starts(self, *frames) -> None:
        """
        Deliver `frames` synchronously right after the first accepted
        belt-on call, the way the camera would once the belt moves.
        """
        fired = []

        def on_call(service, request, reply):
            if fired or service != CONVEYOR_SERVICE or not reply.startswith("ok"):
                return
            if self.bus.conveyor_power > 0:
                fired.append(True)
                for frame in frames:
                    self.consumer.handle_frame(frame)

        self.bus.on_call = on_call


@pytest.fixture
def rig(bus, fast_settings) -> Rig:
    slot = DetectionSlot()
    observer = PositionObserver(slot, fast_settings.tolerance)
    return Rig(
        bus=bus,
        settings=fast_settings,
        executor=CallExecutor(),
        slot=slot,
        observer=observer,
        consumer=SensorFeedConsumer(QueueFrameSource(), observer),
    )
