"""
Inspection Sequence - the conveyor inspection state machine.

One run:
1. Begin the session
2. Start the conveyor
3. Wait for the object to reach the inspection point
4. Stop the conveyor
5. Hold (object settling)
6. Resume the conveyor
7. Wait for arrival at the pickup zone
8. Dispatch the pickup agent

A rejected call halts the run where it is: no retry beyond the
configured attempts, no rollback of earlier belt commands.
"""

from __future__ import annotations

import time
from typing import Callable, List, Optional, TYPE_CHECKING

from core.cancellation import CancelToken, SequenceCancelled
from core.logger import log_critical, log_ok, log_seq, log_wait
from core.settings_store import SequenceSettings
from gateways.base import ServiceUnavailableError

from .states import (
    DetectionTimeoutError,
    InvalidTransitionError,
    RunOutcome,
    RunResult,
    SequenceState,
    TERMINAL_STATES,
    is_allowed,
)

if TYPE_CHECKING:
    from gateways.actuator import IActuatorGateway
    from gateways.session import ISessionGateway
    from perception.observer import PositionObserver


class SequenceController:
    """
    State machine for one inspection run.

    Usage:
        ctrl = SequenceController(session, actuator, observer, settings)
        result = ctrl.run()  # Blocking, runs to a terminal or halted state

        # Or step-by-step:
        ctrl.start()
        while not ctrl.is_finished:
            ctrl.step()

    The controller is the only writer of its state fields; everything
    else reads them through properties. cancel() may be called from any
    thread and interrupts whatever the run is blocked on.
    """

    def __init__(
        self,
        session: "ISessionGateway",
        actuator: "IActuatorGateway",
        observer: "PositionObserver",
        settings: Optional[SequenceSettings] = None,
        cancel_token: Optional[CancelToken] = None,
    ):
        self._session = session
        self._actuator = actuator
        self._observer = observer
        self._settings = settings or SequenceSettings()
        self._cancel = cancel_token or CancelToken()

        self._state = SequenceState.INIT
        self._started = False
        self._session_active = False
        self._conveyor_running = False
        self._halted = False
        self._outcome: Optional[RunOutcome] = None
        self._message = ""
        self._history: List[SequenceState] = [SequenceState.INIT]
        self._detection_wait_started: Optional[float] = None
        self._polls = 0

        # Callbacks
        self.on_state_change: Optional[Callable[[SequenceState, SequenceState], None]] = None
        self.on_complete: Optional[Callable[[RunResult], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def state(self) -> SequenceState:
        """Current sequence state."""
        return self._state

    @property
    def session_active(self) -> bool:
        return self._session_active

    @property
    def conveyor_running(self) -> bool:
        """Whether the controller last commanded the belt on successfully."""
        return self._conveyor_running

    @property
    def is_halted(self) -> bool:
        return self._halted

    @property
    def is_finished(self) -> bool:
        return self._halted or self._state in TERMINAL_STATES

    @property
    def outcome(self) -> Optional[RunOutcome]:
        return self._outcome

    @property
    def message(self) -> str:
        return self._message

    @property
    def polls(self) -> int:
        """Detection polls that came back empty."""
        return self._polls

    @property
    def history(self) -> List[SequenceState]:
        """States entered, in order (the detection self-loop is not repeated)."""
        return list(self._history)

    @property
    def settings(self) -> SequenceSettings:
        return self._settings

    # =========================================================================
    # Control
    # =========================================================================

    def start(self) -> None:
        """
        Prepare a run.

        Raises ValueError if this controller has already been started.
        """
        if self._started or self._state is not SequenceState.INIT:
            raise ValueError("Cannot start: controller is not in INIT")
        self._started = True
        self._observer.reset()
        log_seq("Setup complete.")

    def cancel(self, reason: str = "Cancelled by operator") -> None:
        """Interrupt the run at its next blocking point."""
        self._cancel.cancel(reason)

    def step(self) -> SequenceState:
        """
        Execute one step of the sequence.

        Returns the state after the step. Never raises for remote
        failures; they halt the run instead.
        """
        if not self._started:
            raise ValueError("Cannot step: controller not started")
        if self.is_finished:
            return self._state

        handler = self._handlers()[self._state]
        try:
            handler()
        except SequenceCancelled as e:
            self._halt(RunOutcome.CANCELLED, str(e))
        except (ServiceUnavailableError, DetectionTimeoutError) as e:
            self._halt(RunOutcome.TIMED_OUT, str(e))
        except InvalidTransitionError:
            raise
        except Exception as e:
            log_critical(f"Unexpected error in {self._state.name}: {e}")
            self._halt(RunOutcome.CALL_REJECTED, str(e))

        return self._state

    def run(self) -> RunResult:
        """
        Run the complete sequence.

        Blocking call - returns when a terminal state is reached or the
        run halts.
        """
        self.start()

        while not self.is_finished:
            self.step()

        result = self.result()
        if result.success:
            log_ok("Success.")
            if self.on_complete:
                self.on_complete(result)
        return result

    def result(self) -> RunResult:
        """
        Final report of the run.

        Raises ValueError while the run is still in progress.
        """
        if not self.is_finished or self._outcome is None:
            raise ValueError("Run not finished")
        detection = self._observer.slot.detection
        return RunResult(
            state=self._state,
            outcome=self._outcome,
            message=self._message,
            detection_sequence=detection.sequence if detection else None,
        )

    # =========================================================================
    # Transitions
    # =========================================================================

    def _handlers(self):
        return {
            SequenceState.INIT: self._begin_session,
            SequenceState.SESSION_STARTING: self._start_conveyor,
            SequenceState.CONVEYOR_RUNNING_TO_POINT: self._poll_detection,
            SequenceState.AT_INSPECTION_POINT: self._stop_conveyor,
            SequenceState.CONVEYOR_STOPPED: self._begin_hold,
            SequenceState.HOLDING: self._hold,
            SequenceState.CONVEYOR_RESUMING: self._resume_conveyor,
            SequenceState.AWAITING_ARRIVAL: self._await_arrival,
            SequenceState.DISPATCHING: self._dispatch,
        }

    def _set_state(self, new_state: SequenceState) -> None:
        """Set state and fire callback. Rejects anything not in TRANSITIONS."""
        old_state = self._state
        if not is_allowed(old_state, new_state):
            raise InvalidTransitionError(f"{old_state.name} -> {new_state.name}")
        if old_state is new_state:
            return
        self._state = new_state
        self._history.append(new_state)
        log_seq(f"{old_state.name} → {new_state.name}")
        if self.on_state_change:
            self.on_state_change(old_state, new_state)

    def _halt(self, outcome: RunOutcome, message: str) -> None:
        """Stop further transitions, keeping the current state."""
        self._halted = True
        self._outcome = outcome
        self._message = message
        self._observer.disarm()
        log_critical(f"Sequence halted in {self._state.name}: {message}",
                     {"outcome": outcome.name})
        if self.on_error:
            self.on_error(message)

    def _set_conveyor(self, power: float):
        if not self._session_active:
            raise RuntimeError("Conveyor commanded without an active session")
        return self._actuator.set_conveyor_power(power, self._cancel)

    # =========================================================================
    # State handlers
    # =========================================================================

    def _begin_session(self) -> None:
        self._set_state(SequenceState.SESSION_STARTING)
        result = self._session.begin_session(self._cancel)
        if not result.success:
            self._set_state(SequenceState.SESSION_FAILED)
            self._outcome = RunOutcome.SESSION_REJECTED
            self._message = result.message or "Session rejected"
            if self.on_error:
                self.on_error(self._message)
            return
        self._session_active = True

    def _start_conveyor(self) -> None:
        delay = self._settings.pre_start_delay
        if delay > 0:
            log_wait(f"Waiting {delay:.1f}s before starting the conveyor belt...")
            self._cancel.sleep(delay)

        # Readings count from the moment the belt is commanded on
        self._observer.arm()
        result = self._set_conveyor(self._settings.conveyor_power)
        if not result.success:
            self._observer.disarm()
            self._halt(RunOutcome.CALL_REJECTED, f"Conveyor start rejected: {result.message}")
            return

        self._conveyor_running = True
        self._detection_wait_started = time.monotonic()
        self._set_state(SequenceState.CONVEYOR_RUNNING_TO_POINT)

    def _poll_detection(self) -> None:
        self._cancel.raise_if_cancelled()
        if self._observer.slot.wait(self._settings.poll_interval):
            self._observer.disarm()
            self._set_state(SequenceState.AT_INSPECTION_POINT)
            return

        self._polls += 1
        timeout = self._settings.detection_timeout
        if timeout is not None and self._detection_wait_started is not None:
            waited = time.monotonic() - self._detection_wait_started
            if waited >= timeout:
                raise DetectionTimeoutError(f"No detection after {waited:.1f}s")
        self._set_state(SequenceState.CONVEYOR_RUNNING_TO_POINT)

    def _stop_conveyor(self) -> None:
        log_seq("Stopping the conveyor belt...")
        result = self._set_conveyor(0.0)
        if not result.success:
            self._halt(RunOutcome.CALL_REJECTED, f"Conveyor stop rejected: {result.message}")
            return
        self._conveyor_running = False
        self._set_state(SequenceState.CONVEYOR_STOPPED)

    def _begin_hold(self) -> None:
        log_wait(f"Waiting {self._settings.hold_duration:.1f} seconds.")
        self._set_state(SequenceState.HOLDING)

    def _hold(self) -> None:
        self._cancel.sleep(self._settings.hold_duration)
        self._set_state(SequenceState.CONVEYOR_RESUMING)

    def _resume_conveyor(self) -> None:
        log_seq("Resuming conveyor belt until an order has arrived for drone.")
        result = self._set_conveyor(self._settings.conveyor_power)
        if not result.success:
            self._halt(RunOutcome.CALL_REJECTED, f"Conveyor resume rejected: {result.message}")
            return
        self._conveyor_running = True
        self._set_state(SequenceState.AWAITING_ARRIVAL)

    def _await_arrival(self) -> None:
        wait = self._settings.arrival_wait
        log_wait(f"Waiting for {wait:.1f} seconds for drone can pick up shipment.")
        self._cancel.sleep(wait)
        self._set_state(SequenceState.DISPATCHING)

    def _dispatch(self) -> None:
        log_seq("Sending drone to pick up shipment.")
        result = self._actuator.dispatch_pickup(self._settings.shipment_id, self._cancel)
        if not result.success:
            self._set_state(SequenceState.DISPATCH_FAILED)
            self._outcome = RunOutcome.DISPATCH_REJECTED
            self._message = result.message or "Dispatch rejected"
            if self.on_error:
                self.on_error(self._message)
            return

        wait = self._settings.post_dispatch_wait
        if wait > 0:
            log_wait("Waiting for drone to collect shipment.")
            self._cancel.sleep(wait)
        self._outcome = RunOutcome.COMPLETED
        self._message = result.message
        self._set_state(SequenceState.DONE)
