"""
Session driver for the browser-backed stages.

    Idle -> Authenticating -> Settling -> Iterating -> Closed

One authenticated agent per run, identifiers processed strictly one after
the other with a randomized pause in between. The agent is closed on every
exit path, including a failed login.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from . import logging_bridge
from .agents.base import SourceAgent
from .errors import AuthenticationFailure
from .utils import random_delay

LOG = logging.getLogger(__name__)

T = TypeVar("T")


class SessionState(str, Enum):
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    SETTLING = "settling"
    ITERATING = "iterating"
    CLOSED = "closed"


class SessionDriver:
    """
    Owns the agent lifecycle. Use as a context manager:

        with SessionDriver(factory, creds, ...) as driver:
            for ident, result in driver.iterate(pending, handle):
                ...
    """

    def __init__(
        self,
        agent_factory: Callable[[], SourceAgent],
        credentials: tuple[str, str],
        *,
        settle_seconds: float = 30.0,
        min_delay: float = 5.0,
        max_delay: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._agent_factory = agent_factory
        self._credentials = credentials
        self.settle_seconds = float(settle_seconds)
        self.min_delay = float(min_delay)
        self.max_delay = float(max_delay)
        self._sleep = sleep
        self._rng = rng
        self.agent: SourceAgent | None = None
        self.state = SessionState.IDLE
        self.history: list[SessionState] = [SessionState.IDLE]

    def _enter(self, state: SessionState) -> None:
        self.state = state
        self.history.append(state)
        logging_bridge.activity({"component": "referral_scout.session", "op": "state", "state": state.value})

    # ---- lifecycle ----
    def open(self) -> SourceAgent:
        """Acquire the agent, log in, then wait out the settling window."""
        if self.state is not SessionState.IDLE:
            raise RuntimeError(f"Session cannot open from state {self.state.value!r}")

        self._enter(SessionState.AUTHENTICATING)
        try:
            self.agent = self._agent_factory()
            email, password = self._credentials
            LOG.info("Logging in...")
            self.agent.login(email, password)
        except BaseException as e:
            if isinstance(e, AuthenticationFailure):
                logging_bridge.error({"component": "referral_scout.session", "op": "login", "error": str(e)})
            self.close()
            raise

        # __exit__ never runs when __enter__ fails, so an interrupted settle closes here
        try:
            self._enter(SessionState.SETTLING)
            if self.settle_seconds > 0:
                LOG.info("Waiting %.0f seconds for potential CAPTCHA/2FA...", self.settle_seconds)
                self._sleep(self.settle_seconds)
        except BaseException:
            self.close()
            raise
        return self.agent

    def iterate(self, identifiers: Iterable[str], handle: Callable[[SourceAgent, str], T]) -> Iterator[tuple[str, T]]:
        """
        Run `handle(agent, identifier)` for each identifier, pausing a random
        [min_delay, max_delay] between items (not after the last one).
        """
        if self.agent is None or self.state not in (SessionState.SETTLING, SessionState.ITERATING):
            raise RuntimeError("Session is not open")
        self._enter(SessionState.ITERATING)

        items = list(identifiers)
        for idx, ident in enumerate(items):
            yield ident, handle(self.agent, ident)
            if idx < len(items) - 1:
                self.pace()

    def use(self, fn: Callable[[SourceAgent], T]) -> T:
        """Run one free-form unit of work (harvest, single probe) on the open agent."""
        if self.agent is None or self.state not in (SessionState.SETTLING, SessionState.ITERATING):
            raise RuntimeError("Session is not open")
        self._enter(SessionState.ITERATING)
        return fn(self.agent)

    def pace(self) -> float:
        delay = random_delay(self.min_delay, self.max_delay, self._rng)
        LOG.info("Waiting %.0fs...", delay)
        self._sleep(delay)
        return delay

    def close(self) -> None:
        if self.state is SessionState.CLOSED:
            return
        agent, self.agent = self.agent, None
        try:
            if agent is not None:
                agent.close()
                LOG.info("Browser closed")
        finally:
            self._enter(SessionState.CLOSED)

    def __enter__(self) -> SessionDriver:
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


# =============================================================================
# Harvest: bounded "reveal more until nothing new" loop
# =============================================================================
@dataclass(frozen=True)
class StagnationResult:
    count: int
    iterations: int
    stopped_by: str  # "stagnation" | "max_iterations"


def run_until_stagnant(
    step: Callable[[], int],
    *,
    stagnation_limit: int = 5,
    max_iterations: int = 500,
    on_progress: Callable[[int, int, int], None] | None = None,
) -> StagnationResult:
    """
    Call `step()` (reveal more, return the current count) until the count
    fails to grow `stagnation_limit` times in a row or `max_iterations` calls
    were made. Always terminates. `on_progress(iteration, count, stagnant)`
    is called after each step.
    """
    best = 0
    stagnant = 0
    iterations = 0
    while iterations < max_iterations and stagnant < stagnation_limit:
        iterations += 1
        current = int(step())
        if current > best:
            best = current
            stagnant = 0
        else:
            stagnant += 1
        if on_progress is not None:
            on_progress(iterations, best, stagnant)

    stopped_by = "stagnation" if stagnant >= stagnation_limit else "max_iterations"
    return StagnationResult(count=best, iterations=iterations, stopped_by=stopped_by)
