"""
Property-Based Tests for Detection and Sequencing Invariants.

These tests verify that classification, command validation and the
call ordering of a run hold for ANY valid input, not just hand-picked
examples.
"""

import pytest
from hypothesis import given, settings, strategies as st

from core.executor import CallExecutor
from core.settings_store import SequenceSettings
from core.transport import SimulatedBus
from core.types import ActuatorCommand, CONVEYOR_SERVICE, DetectionSignal, SESSION_SERVICE
from gateways.actuator import ActuatorGateway
from gateways.session import SessionGateway
from perception.frames import CameraFrame
from perception.observer import DetectionSlot, PositionObserver
from workflows.sequence import SequenceController
from workflows.states import SequenceState, TRANSITIONS


# =============================================================================
# Hypothesis Strategies
# =============================================================================

coordinates = st.floats(min_value=-5.0, max_value=5.0, allow_nan=False)
tolerances = st.floats(min_value=1e-6, max_value=1.0, allow_nan=False)


@st.composite
def camera_feed(draw: st.DrawFn):
    """Misses (possibly empty frames) followed by one at-point reading."""
    misses = draw(st.lists(
        st.one_of(
            st.just(None),
            st.tuples(st.floats(min_value=0.01, max_value=2.0), st.sampled_from([1, -1]))
            .map(lambda t: t[0] * t[1]),
        ),
        max_size=8,
    ))
    hit = draw(st.floats(min_value=-0.0099, max_value=0.0099))
    frames = [CameraFrame() if z is None else CameraFrame.at(z) for z in misses]
    return frames + [CameraFrame.at(hit)]


FAST = SequenceSettings(
    pre_start_delay=0.0,
    hold_duration=0.0,
    arrival_wait=0.0,
    post_dispatch_wait=0.0,
    poll_interval=0.005,
    retry_backoff=0.0,
)


# =============================================================================
# Classification
# =============================================================================


class TestClassificationProperties:

    @given(coordinate=coordinates, tolerance=tolerances)
    def test_at_point_iff_inside_window(self, coordinate, tolerance):
        observer = PositionObserver(DetectionSlot(), tolerance)
        expected = abs(coordinate) < tolerance
        assert (observer.classify(coordinate) is DetectionSignal.AT_POINT) == expected

    @given(coordinate=coordinates)
    def test_symmetric(self, coordinate):
        observer = PositionObserver(DetectionSlot())
        assert observer.classify(coordinate) is observer.classify(-coordinate)

    @given(readings=st.lists(coordinates, max_size=20))
    def test_first_hit_is_latched(self, readings):
        """The latched detection is always the first in-window reading."""
        slot = DetectionSlot()
        observer = PositionObserver(slot)
        observer.arm()
        for z in readings:
            observer.on_observation(z)

        hits = [i for i, z in enumerate(readings, start=1) if abs(z) < observer.tolerance]
        if hits:
            assert slot.detection.sequence == hits[0]
            assert slot.detection.coordinate == readings[hits[0] - 1]
        else:
            assert not slot.is_detected

    @given(readings=st.lists(coordinates, max_size=20))
    def test_nothing_published_while_disarmed(self, readings):
        slot = DetectionSlot()
        observer = PositionObserver(slot)
        for z in readings:
            assert observer.on_observation(z) is DetectionSignal.NONE
        assert slot.latest is None
        assert observer.observation_count == len(readings)


# =============================================================================
# Commands
# =============================================================================


class TestActuatorCommandProperties:

    @given(power=st.floats(min_value=0.0, max_value=100.0))
    def test_valid_power_accepted(self, power):
        cmd = ActuatorCommand(power=power)
        assert cmd.to_request().startswith(f"{CONVEYOR_SERVICE} power=")

    @given(power=st.one_of(
        st.floats(max_value=-1e-9, allow_nan=False),
        st.floats(min_value=100.000001, allow_nan=False),
    ))
    def test_invalid_power_rejected(self, power):
        with pytest.raises(ValueError):
            ActuatorCommand(power=power)


# =============================================================================
# Sequencing
# =============================================================================


def run_with_feed(frames):
    bus = SimulatedBus()
    executor = CallExecutor()
    slot = DetectionSlot()
    observer = PositionObserver(slot, FAST.tolerance)
    fired = []

    def on_call(service, request, reply):
        if service == CONVEYOR_SERVICE and bus.conveyor_power > 0 and not fired:
            fired.append(True)
            for frame in frames:
                observer.on_frame(frame)

    bus.on_call = on_call
    ctrl = SequenceController(
        session=SessionGateway(bus, executor, FAST),
        actuator=ActuatorGateway(bus, executor, FAST),
        observer=observer,
        settings=FAST,
    )
    edges = []
    ctrl.on_state_change = lambda old, new: edges.append((old, new))
    return bus, ctrl, ctrl.run(), edges


class TestSequenceProperties:

    @settings(max_examples=25, deadline=None)
    @given(frames=camera_feed())
    def test_call_order_independent_of_feed(self, frames):
        """However the object arrives, the bus sees the same five calls."""
        bus, _, result, _ = run_with_feed(frames)

        assert result.state == SequenceState.DONE
        assert bus.calls == [
            SESSION_SERVICE,
            f"{CONVEYOR_SERVICE} power=100.00",
            f"{CONVEYOR_SERVICE} power=0.00",
            f"{CONVEYOR_SERVICE} power=100.00",
            "drone shipment_type=order_0_shipment_0",
        ]

    @settings(max_examples=25, deadline=None)
    @given(frames=camera_feed())
    def test_detection_is_first_non_empty_hit(self, frames):
        _, _, result, _ = run_with_feed(frames)

        readings = [f.models[0].pose.position.z for f in frames if not f.is_empty]
        first_hit = next(i for i, z in enumerate(readings, start=1) if abs(z) < 0.01)
        assert result.detection_sequence == first_hit

    @settings(max_examples=25, deadline=None)
    @given(frames=camera_feed())
    def test_transitions_follow_table(self, frames):
        _, ctrl, _, edges = run_with_feed(frames)

        for old, new in edges:
            assert new in TRANSITIONS[old]
        assert len(set(ctrl.history)) == len(ctrl.history)
