"""Tests for the per-agent circuit breaker."""

from conftest import ManualClock
from decision_core.domain.agent.circuit_breaker import BreakerState, CircuitBreaker


def _trip(breaker: CircuitBreaker) -> None:
    for _ in range(breaker.threshold):
        breaker.record_failure("timeout")


class TestTransitions:
    """CLOSED -> OPEN -> HALF_OPEN -> CLOSED/OPEN."""

    def test_trips_on_threshold_consecutive_failures(self):
        breaker = CircuitBreaker("a", threshold=5)
        tripped = [breaker.record_failure("timeout") for _ in range(5)]
        assert tripped == [False, False, False, False, True]
        assert breaker.state == BreakerState.OPEN
        assert not breaker.allow_request()
        assert breaker.trips == 1

    def test_success_clears_the_count(self):
        breaker = CircuitBreaker("a", threshold=3)
        breaker.record_failure("timeout")
        breaker.record_failure("timeout")
        breaker.record_success()
        breaker.record_failure("timeout")
        assert breaker.state == BreakerState.CLOSED
        assert breaker.consecutive_failures == 1

    def test_open_breaker_stays_open_without_cooldown(self):
        clock = ManualClock()
        breaker = CircuitBreaker("a", threshold=1, clock=clock)
        _trip(breaker)
        clock.advance_ms(3_600_000)
        assert not breaker.allow_request()

    def test_manual_reset_goes_half_open(self):
        breaker = CircuitBreaker("a", threshold=2)
        _trip(breaker)
        breaker.reset()
        assert breaker.state == BreakerState.HALF_OPEN
        assert breaker.allow_request()

    def test_half_open_probe_success_closes(self):
        breaker = CircuitBreaker("a", threshold=2)
        _trip(breaker)
        breaker.reset()
        breaker.record_success()
        assert breaker.state == BreakerState.CLOSED

    def test_half_open_probe_failure_reopens_immediately(self):
        breaker = CircuitBreaker("a", threshold=5)
        _trip(breaker)
        breaker.reset()
        assert breaker.record_failure("http_error") is True
        assert breaker.state == BreakerState.OPEN
        assert breaker.trips == 2


class TestCooldown:
    """Optional time-based half-open."""

    def test_cooldown_allows_probe_after_elapsed(self):
        clock = ManualClock()
        breaker = CircuitBreaker("a", threshold=1, cooldown_s=30.0, clock=clock)
        _trip(breaker)

        clock.advance_ms(29_000)
        assert not breaker.allow_request()
        clock.advance_ms(1_000)
        assert breaker.allow_request()
        assert breaker.state == BreakerState.HALF_OPEN

    def test_to_dict(self):
        breaker = CircuitBreaker("a", threshold=1)
        breaker.record_failure("malformed_output")
        assert breaker.to_dict() == {
            "name": "a",
            "state": "open",
            "consecutive_failures": 1,
            "trips": 1,
            "last_reason": "malformed_output",
        }
