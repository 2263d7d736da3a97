"""Per-upstream circuit breaker.

States:
- closed: calls pass through, consecutive failures are counted
- open: calls fail fast with CircuitOpenError until the cooldown elapses
- half_open: exactly one trial call is admitted; its outcome closes or
  re-opens the breaker

The state is owned by the upstream client that created the breaker. It is only
mutated from the event loop, so no locking is needed.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from enum import Enum

from sportsfeed.errors import CircuitOpenError

logger = logging.getLogger(__name__)


class BreakerPhase(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class BreakerState:
    threshold: int
    reset_timeout: float
    phase: BreakerPhase = BreakerPhase.CLOSED
    failure_count: int = 0
    last_failure_time: float | None = None
    trial_in_flight: bool = False


class CircuitBreaker:
    def __init__(
        self,
        name: str,
        *,
        threshold: int,
        reset_timeout: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if threshold < 1:
            raise ValueError("breaker threshold must be >= 1")
        self.name = name
        self._clock = clock
        self._state = BreakerState(threshold=threshold, reset_timeout=reset_timeout)

    @property
    def phase(self) -> BreakerPhase:
        return self._state.phase

    @property
    def failure_count(self) -> int:
        return self._state.failure_count

    @property
    def is_open(self) -> bool:
        """Read-only view; does not run the cooldown transition."""
        return self._state.phase is not BreakerPhase.CLOSED

    def _cooldown_remaining(self) -> float:
        if self._state.last_failure_time is None:
            return 0.0
        elapsed = self._clock() - self._state.last_failure_time
        return max(self._state.reset_timeout - elapsed, 0.0)

    def before_call(self) -> None:
        """Gate an outbound call. Raises CircuitOpenError when it must not run."""
        state = self._state
        if state.phase is BreakerPhase.CLOSED:
            return

        if state.phase is BreakerPhase.OPEN:
            remaining = self._cooldown_remaining()
            if remaining > 0:
                raise CircuitOpenError(self.name, retry_after_seconds=remaining)
            state.phase = BreakerPhase.HALF_OPEN
            state.trial_in_flight = True
            logger.info("circuit breaker half-open, admitting trial call: upstream=%s", self.name)
            return

        # half-open: only the single trial call is allowed through
        if state.trial_in_flight:
            raise CircuitOpenError(self.name, retry_after_seconds=None)
        state.trial_in_flight = True

    def record_success(self) -> None:
        state = self._state
        state.failure_count = 0
        if state.phase is BreakerPhase.HALF_OPEN:
            state.phase = BreakerPhase.CLOSED
            state.trial_in_flight = False
            state.last_failure_time = None
            logger.info("circuit breaker closed after successful trial call: upstream=%s", self.name)

    def record_failure(self) -> None:
        state = self._state
        state.failure_count += 1
        state.last_failure_time = self._clock()

        if state.phase is BreakerPhase.HALF_OPEN:
            state.phase = BreakerPhase.OPEN
            state.trial_in_flight = False
            logger.warning(
                "circuit breaker re-opened after failed trial call: upstream=%s cooldown_seconds=%s",
                self.name,
                state.reset_timeout,
            )
            return

        if state.phase is BreakerPhase.CLOSED and state.failure_count >= state.threshold:
            state.phase = BreakerPhase.OPEN
            logger.warning(
                "circuit breaker opened: upstream=%s failures=%s threshold=%s cooldown_seconds=%s",
                self.name,
                state.failure_count,
                state.threshold,
                state.reset_timeout,
            )

    def abandon_trial(self) -> None:
        """Release the half-open slot when a trial call ended without an upstream verdict (e.g. cancellation)."""
        if self._state.phase is BreakerPhase.HALF_OPEN:
            self._state.trial_in_flight = False

    def snapshot(self) -> dict[str, str | int | float | bool | None]:
        data = asdict(self._state)
        data["phase"] = self._state.phase.value
        data["name"] = self.name
        data["cooldown_remaining"] = round(self._cooldown_remaining(), 3) if self.is_open else 0.0
        return data
