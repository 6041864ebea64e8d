#!/usr/bin/env python3
"""Tests for the power-state convergence engine."""

import pytest

from hvctrl.errors import ErrorKind, VmError
from hvctrl.models import VmPowerState


class Scripted:
    """Callable that replays a script of return values / exceptions."""

    def __init__(self, *steps):
        self.steps = list(steps)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        step = self.steps.pop(0) if len(self.steps) > 1 else self.steps[0]
        if isinstance(step, Exception):
            raise step
        return step


RUNNING = VmPowerState.RUNNING
STOPPED = VmPowerState.STOPPED


class TestConverge:
    def test_returns_once_target_observed(self, convergence, clock):
        transition = Scripted(None)
        observe = Scripted(RUNNING, RUNNING, STOPPED)
        convergence.converge("stop", transition, observe, targets=(STOPPED,), timeout=10)
        assert observe.calls == 3
        assert transition.calls == 3
        assert clock.sleeps == [1.0, 1.0]

    def test_already_in_target_state_is_success(self, convergence):
        """Re-issuing stop on a stopped VM is not an error."""
        transition = Scripted(VmError.invalid_state(STOPPED))
        observe = Scripted(STOPPED)
        convergence.converge("stop", transition, observe, targets=(STOPPED,))
        assert transition.calls == 1

    def test_wrong_state_before_success_is_fatal(self, convergence):
        transition = Scripted(VmError.invalid_state(VmPowerState.SUSPENDED))
        observe = Scripted(VmPowerState.SUSPENDED)
        with pytest.raises(VmError) as exc_info:
            convergence.converge("stop", transition, observe, targets=(STOPPED,))
        assert exc_info.value.get_invalid_state() is VmPowerState.SUSPENDED
        assert observe.calls == 0

    def test_wrong_state_after_success_keeps_waiting(self, convergence):
        """Once a transition went through, a transitional state report is tolerated."""
        transition = Scripted(None, VmError.invalid_state(VmPowerState.UNKNOWN))
        observe = Scripted(RUNNING, RUNNING, STOPPED)
        convergence.converge("stop", transition, observe, targets=(STOPPED,), timeout=10)
        assert observe.calls == 3

    def test_benign_states(self, convergence):
        transition = Scripted(VmError.invalid_state(VmPowerState.NOT_RUNNING))
        observe = Scripted(STOPPED)
        convergence.converge(
            "stop",
            transition,
            observe,
            targets=(STOPPED,),
            benign=(STOPPED, VmPowerState.NOT_RUNNING),
        )

    def test_other_errors_propagate(self, convergence):
        transition = Scripted(VmError(ErrorKind.VM_NOT_FOUND))
        with pytest.raises(VmError) as exc_info:
            convergence.converge("stop", transition, Scripted(STOPPED), targets=(STOPPED,))
        assert exc_info.value.kind is ErrorKind.VM_NOT_FOUND

    def test_timeout(self, convergence, clock):
        transition = Scripted(None)
        with pytest.raises(VmError) as exc_info:
            convergence.converge("stop", transition, Scripted(RUNNING), targets=(STOPPED,), timeout=3)
        assert exc_info.value.kind is ErrorKind.TIMEOUT
        assert clock.now >= 3
        assert transition.calls >= 2

    def test_benign_rejection_in_other_resting_state_is_fatal(self, convergence, clock):
        """A saved VM answers "not running" to a stop; waiting cannot help."""
        transition = Scripted(VmError.invalid_state(VmPowerState.NOT_RUNNING))
        observe = Scripted(VmPowerState.SUSPENDED)
        with pytest.raises(VmError) as exc_info:
            convergence.converge(
                "stop", transition, observe, targets=(STOPPED, VmPowerState.NOT_RUNNING)
            )
        assert exc_info.value == VmError.invalid_state(VmPowerState.SUSPENDED)
        assert transition.calls == 1
        assert clock.sleeps == []

    def test_benign_rejection_while_in_flight_keeps_waiting(self, convergence):
        transition = Scripted(VmError.invalid_state(STOPPED))
        observe = Scripted(VmPowerState.UNKNOWN, RUNNING, STOPPED)
        convergence.converge("stop", transition, observe, targets=(STOPPED,), timeout=10)
        assert observe.calls == 3

    def test_zero_timeout_makes_one_attempt(self, convergence, clock):
        transition = Scripted(None)
        with pytest.raises(VmError):
            convergence.converge("stop", transition, Scripted(RUNNING), targets=(STOPPED,), timeout=0)
        assert transition.calls == 1
        assert clock.sleeps == []

    def test_no_timeout_waits(self, convergence, clock):
        observe = Scripted(*([RUNNING] * 50 + [STOPPED]))
        convergence.converge("stop", Scripted(None), observe, targets=(STOPPED,))
        assert observe.calls == 51
        assert len(clock.sleeps) == 50


class TestRestart:
    def test_retries_while_still_running(self, convergence):
        start = Scripted(VmError.invalid_state(RUNNING), VmError.invalid_state(RUNNING), None)
        convergence.restart(start, timeout=10)
        assert start.calls == 3

    def test_other_errors_propagate(self, convergence):
        start = Scripted(VmError(ErrorKind.VM_NOT_FOUND))
        with pytest.raises(VmError) as exc_info:
            convergence.restart(start)
        assert exc_info.value.kind is ErrorKind.VM_NOT_FOUND

    def test_non_running_state_propagates(self, convergence):
        start = Scripted(VmError.invalid_state(VmPowerState.SUSPENDED))
        with pytest.raises(VmError):
            convergence.restart(start)

    def test_timeout(self, convergence):
        start = Scripted(VmError.invalid_state(RUNNING))
        with pytest.raises(VmError) as exc_info:
            convergence.restart(start, timeout=2)
        assert exc_info.value.kind is ErrorKind.TIMEOUT


class TestConfirm:
    def test_single_attempt(self, convergence, clock):
        transition = Scripted(None)
        observe = Scripted(STOPPED)
        convergence.confirm("hard_stop", transition, observe, targets=(STOPPED,))
        assert transition.calls == 1
        assert observe.calls == 1
        assert clock.sleeps == []

    def test_already_off(self, convergence):
        transition = Scripted(VmError.invalid_state(VmPowerState.NOT_RUNNING))
        convergence.confirm(
            "hard_stop",
            transition,
            Scripted(STOPPED),
            targets=(STOPPED, VmPowerState.NOT_RUNNING),
        )

    def test_not_off_afterwards(self, convergence, clock):
        transition = Scripted(None)
        with pytest.raises(VmError) as exc_info:
            convergence.confirm("hard_stop", transition, Scripted(RUNNING), targets=(STOPPED,))
        assert exc_info.value == VmError.invalid_state(RUNNING)
        assert transition.calls == 1
        assert clock.sleeps == []

    def test_already_rejected_in_other_state(self, convergence):
        transition = Scripted(VmError.invalid_state(VmPowerState.NOT_RUNNING))
        with pytest.raises(VmError) as exc_info:
            convergence.confirm(
                "hard_stop",
                transition,
                Scripted(VmPowerState.SUSPENDED),
                targets=(STOPPED, VmPowerState.NOT_RUNNING),
            )
        assert exc_info.value == VmError.invalid_state(VmPowerState.SUSPENDED)

    def test_non_benign_state_propagates(self, convergence):
        transition = Scripted(VmError.invalid_state(VmPowerState.SUSPENDED))
        observe = Scripted(STOPPED)
        with pytest.raises(VmError):
            convergence.confirm("hard_stop", transition, observe, targets=(STOPPED,))
        assert observe.calls == 0


class TestReboot:
    def test_stop_then_start(self, convergence):
        calls = []
        convergence.reboot(
            lambda timeout: calls.append(("stop", timeout)), lambda: calls.append("start"), 10
        )
        assert calls == [("stop", 10), "start"]

    def test_start_gets_time_left(self, convergence, clock):
        def stop(timeout):
            clock.sleep(7)

        start = Scripted(VmError.invalid_state(RUNNING))
        with pytest.raises(VmError) as exc_info:
            convergence.reboot(stop, start, timeout=10)
        assert exc_info.value.kind is ErrorKind.TIMEOUT
        assert clock.now == 10
        assert start.calls == 4

    def test_no_timeout(self, convergence):
        stops = []
        start = Scripted(VmError.invalid_state(RUNNING), None)
        convergence.reboot(stops.append, start)
        assert stops == [None]
        assert start.calls == 2
