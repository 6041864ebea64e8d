#!/usr/bin/env python3
"""
Power-state convergence.

Hypervisor power transitions are eventually consistent: a stop request
usually returns before the VM is off, and re-issuing it while the VM is
stopping is neither an error nor progress. The engine re-issues the
transition and polls the power state until the target state is observed
or the timeout elapses.
"""

import time
from typing import Callable, Iterable, Optional

import structlog

from hvctrl.errors import ErrorKind, VmError
from hvctrl.models import VmPowerState

log = structlog.get_logger(__name__)

DEFAULT_INTERVAL = 0.2

# States a VM passes through while a transition is still under way.
IN_FLIGHT = frozenset((VmPowerState.RUNNING, VmPowerState.UNKNOWN))


class PowerConvergence:
    """Blocking retry loop with an injectable clock and sleep."""

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        interval: float = DEFAULT_INTERVAL,
    ):
        self.clock = clock
        self.sleep = sleep
        self.interval = interval

    def _expired(self, started: float, timeout: Optional[float]) -> bool:
        return timeout is not None and self.clock() - started >= timeout

    def remaining(self, started: float, timeout: Optional[float]) -> Optional[float]:
        """Seconds left of ``timeout`` measured from ``started``; None stays None."""
        if timeout is None:
            return None
        return max(0.0, timeout - (self.clock() - started))

    def converge(
        self,
        operation: str,
        transition: Callable[[], None],
        observe: Callable[[], VmPowerState],
        targets: Iterable[VmPowerState],
        timeout: Optional[float] = None,
        benign: Optional[Iterable[VmPowerState]] = None,
    ) -> None:
        """
        Drive the VM into one of ``targets``.

        Args:
            operation: Name used in log events.
            transition: Issues the backend command (e.g. an ACPI shutdown).
            observe: Returns the current power state.
            targets: States that count as done.
            timeout: Seconds to keep trying; None waits indefinitely.
            benign: InvalidPowerState states that mean "already moving in
                this direction". Defaults to ``targets``.

        An InvalidPowerState outside ``benign`` is fatal only while no
        transition call has succeeded; after a success it means the VM
        already left the state the command applies to.

        A benign rejection while the VM is observed at rest in a state
        outside ``targets`` (e.g. saved when asked to stop) cannot make
        progress and raises ``InvalidPowerState(<observed>)``.
        """
        targets = frozenset(targets)
        benign = targets if benign is None else frozenset(benign)
        started = self.clock()
        had_success = False
        attempts = 0

        while True:
            attempts += 1
            rejected = None
            try:
                transition()
                had_success = True
            except VmError as e:
                state = e.get_invalid_state()
                if state is None:
                    raise
                if state not in benign and not had_success:
                    raise
                rejected = state
                log.debug(f"{operation}.converging", attempt=attempts, reported=state.name)

            observed = observe()
            if observed in targets:
                log.debug(f"{operation}.converged", attempts=attempts, state=observed.name)
                return

            if rejected is not None and observed not in IN_FLIGHT:
                log.warning(f"{operation}.wrong_state", reported=rejected.name, state=observed.name)
                raise VmError.invalid_state(observed)

            if self._expired(started, timeout):
                log.warning(f"{operation}.timeout", attempts=attempts, state=observed.name)
                raise VmError(ErrorKind.TIMEOUT)
            self.sleep(self.interval)

    def confirm(
        self,
        operation: str,
        transition: Callable[[], None],
        observe: Callable[[], VmPowerState],
        targets: Iterable[VmPowerState],
        benign: Optional[Iterable[VmPowerState]] = None,
    ) -> None:
        """
        Issue a synchronous transition once and check the result.

        Used for commands that return only after the VM changed state, such
        as a hard power-off. A benign InvalidPowerState still counts as
        done when the observed state is in ``targets``.
        """
        targets = frozenset(targets)
        benign = targets if benign is None else frozenset(benign)
        try:
            transition()
        except VmError as e:
            state = e.get_invalid_state()
            if state is None or state not in benign:
                raise
            log.debug(f"{operation}.already", reported=state.name)

        observed = observe()
        if observed not in targets:
            log.warning(f"{operation}.wrong_state", state=observed.name)
            raise VmError.invalid_state(observed)

    def restart(self, start: Callable[[], None], timeout: Optional[float] = None) -> None:
        """Call ``start`` until it succeeds, tolerating "already running" races."""
        started = self.clock()
        while True:
            try:
                start()
                return
            except VmError as e:
                if not e.is_invalid_state_running():
                    raise
            if self._expired(started, timeout):
                raise VmError(ErrorKind.TIMEOUT)
            self.sleep(self.interval)

    def reboot(
        self,
        stop: Callable[[Optional[float]], None],
        start: Callable[[], None],
        timeout: Optional[float] = None,
    ) -> None:
        """Run ``stop(timeout)`` then :meth:`restart` within a single deadline."""
        started = self.clock()
        stop(timeout)
        self.restart(start, self.remaining(started, timeout))
