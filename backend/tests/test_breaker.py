import pytest

from sportsfeed.data_providers.breaker import BreakerPhase, CircuitBreaker
from sportsfeed.errors import CircuitOpenError


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _open_breaker(clock: FakeClock, threshold: int = 3, reset_timeout: float = 30.0) -> CircuitBreaker:
    breaker = CircuitBreaker("espn", threshold=threshold, reset_timeout=reset_timeout, clock=clock)
    for _ in range(threshold):
        breaker.before_call()
        breaker.record_failure()
    return breaker


def test_breaker_opens_at_threshold() -> None:
    clock = FakeClock()
    breaker = CircuitBreaker("espn", threshold=3, reset_timeout=30.0, clock=clock)

    breaker.record_failure()
    breaker.record_failure()
    assert breaker.phase is BreakerPhase.CLOSED
    assert breaker.is_open is False

    breaker.record_failure()
    assert breaker.phase is BreakerPhase.OPEN
    assert breaker.is_open is True
    assert breaker.failure_count == 3


def test_success_resets_consecutive_failures() -> None:
    breaker = CircuitBreaker("espn", threshold=3, reset_timeout=30.0, clock=FakeClock())
    breaker.record_failure()
    breaker.record_failure()
    breaker.record_success()
    breaker.record_failure()

    assert breaker.failure_count == 1
    assert breaker.phase is BreakerPhase.CLOSED


def test_open_breaker_rejects_until_cooldown_elapses() -> None:
    clock = FakeClock()
    breaker = _open_breaker(clock)

    clock.now += 29.9
    with pytest.raises(CircuitOpenError) as excinfo:
        breaker.before_call()
    assert excinfo.value.upstream == "espn"
    assert excinfo.value.retry_after_seconds == pytest.approx(0.1)


def test_half_open_admits_exactly_one_trial_call() -> None:
    clock = FakeClock()
    breaker = _open_breaker(clock)
    clock.now += 30.0

    breaker.before_call()
    assert breaker.phase is BreakerPhase.HALF_OPEN

    with pytest.raises(CircuitOpenError):
        breaker.before_call()


def test_successful_trial_call_closes_breaker() -> None:
    clock = FakeClock()
    breaker = _open_breaker(clock)
    clock.now += 31.0

    breaker.before_call()
    breaker.record_success()

    assert breaker.phase is BreakerPhase.CLOSED
    assert breaker.failure_count == 0
    breaker.before_call()


def test_failed_trial_call_reopens_with_fresh_cooldown() -> None:
    clock = FakeClock()
    breaker = _open_breaker(clock)
    clock.now += 31.0

    breaker.before_call()
    breaker.record_failure()

    assert breaker.phase is BreakerPhase.OPEN
    assert breaker.failure_count == 4
    clock.now += 10.0
    with pytest.raises(CircuitOpenError):
        breaker.before_call()
    clock.now += 20.0
    breaker.before_call()
    assert breaker.phase is BreakerPhase.HALF_OPEN


def test_abandoned_trial_call_frees_the_slot() -> None:
    clock = FakeClock()
    breaker = _open_breaker(clock)
    clock.now += 31.0

    breaker.before_call()
    breaker.abandon_trial()

    breaker.before_call()
    assert breaker.phase is BreakerPhase.HALF_OPEN


def test_snapshot_is_plain_data() -> None:
    clock = FakeClock()
    breaker = _open_breaker(clock, threshold=1)
    clock.now += 5.0

    snapshot = breaker.snapshot()

    assert snapshot["name"] == "espn"
    assert snapshot["phase"] == "open"
    assert snapshot["failure_count"] == 1
    assert snapshot["cooldown_remaining"] == pytest.approx(25.0)


def test_threshold_must_be_positive() -> None:
    with pytest.raises(ValueError):
        CircuitBreaker("espn", threshold=0, reset_timeout=30.0)
