"""Tests for session risk limits and the panic stop."""

import pytest

from decision_core.config import RiskLimits
from decision_core.domain.monitoring.alerts import HealthEventType, HealthMonitor
from decision_core.domain.risk.guard import RiskGuard, RiskState, check_limits
from decision_core.exceptions import RiskViolation


@pytest.fixture
def monitor() -> HealthMonitor:
    return HealthMonitor()


class TestCheckLimits:
    """check_limits is a pure function of state, limits and time."""

    def test_fresh_session_is_ok(self):
        assert check_limits(RiskState("s", started_at=0.0), RiskLimits(), now=0.0).ok

    def test_stop_loss_at_the_limit_is_ok(self):
        """Losing exactly the stop-loss is allowed; only going beyond it trips."""
        state = RiskState("s", started_at=0.0, bankroll_delta_bb=-300.0)
        assert check_limits(state, RiskLimits(stop_loss_bb=300.0), now=0.0).ok

    def test_stop_loss_beyond_the_limit(self):
        state = RiskState("s", started_at=0.0, bankroll_delta_bb=-300.5)
        result = check_limits(state, RiskLimits(stop_loss_bb=300.0), now=0.0)
        assert not result.ok
        assert result.reason.startswith("stop_loss")

    def test_trailing_drawdown(self):
        state = RiskState("s", started_at=0.0, bankroll_delta_bb=10.0, peak_bb=120.0)
        result = check_limits(state, RiskLimits(trailing_drawdown_bb=100.0), now=0.0)
        assert result.reason.startswith("trailing_drawdown")

    def test_hand_limit(self):
        state = RiskState("s", started_at=0.0, hands_played=10)
        assert check_limits(state, RiskLimits(max_hands=10), now=0.0).reason.startswith("hand_limit")

    def test_time_limit(self):
        state = RiskState("s", started_at=0.0)
        limits = RiskLimits(max_session_minutes=30.0)
        assert check_limits(state, limits, now=29 * 60.0).ok
        assert check_limits(state, limits, now=30 * 60.0).reason.startswith("time_limit")

    def test_disabled_limits(self):
        state = RiskState("s", started_at=0.0, hands_played=10**6)
        limits = RiskLimits(max_hands=None, max_session_minutes=None)
        assert check_limits(state, limits, now=10**9).ok


class TestRiskGuard:
    """RiskGuard owns the totals and the halt flag."""

    def test_record_outcome_updates_totals(self):
        guard = RiskGuard(session_id="s")
        guard.record_outcome("h1", 5.0)
        state = guard.record_outcome("h2", -8.0)
        assert state.bankroll_delta_bb == pytest.approx(-3.0)
        assert state.peak_bb == pytest.approx(5.0)
        assert state.drawdown_bb == pytest.approx(8.0)
        assert state.hands_played == 2
        assert state.losing_hands == 1

    def test_record_outcome_is_idempotent_per_hand(self):
        guard = RiskGuard(session_id="s")
        guard.record_outcome("h1", -10.0)
        state = guard.record_outcome("h1", -10.0)
        assert state.bankroll_delta_bb == pytest.approx(-10.0)
        assert state.hands_played == 1

    def test_check_never_mutates(self):
        guard = RiskGuard(limits=RiskLimits(stop_loss_bb=10.0), session_id="s")
        guard.record_outcome("h1", -20.0)
        before = guard.state
        assert not guard.check().ok
        assert guard.state is before
        assert not guard.halted

    def test_enforce_raises_with_reason(self):
        guard = RiskGuard(limits=RiskLimits(stop_loss_bb=10.0), session_id="s")
        guard.record_outcome("h1", -10.5)
        with pytest.raises(RiskViolation) as exc_info:
            guard.enforce()
        assert exc_info.value.reason.startswith("stop_loss")

    def test_enforce_uses_passed_limits(self):
        guard = RiskGuard(limits=RiskLimits(stop_loss_bb=10.0), session_id="s")
        guard.record_outcome("h1", -10.0)
        guard.enforce(RiskLimits(stop_loss_bb=50.0))

    def test_time_limit_with_clock(self, clock):
        guard = RiskGuard(limits=RiskLimits(max_session_minutes=1.0), session_id="s", clock=clock)
        assert guard.check().ok
        clock.advance_ms(60_000)
        assert guard.check().reason.startswith("time_limit")


class TestPanicStop:
    """Panic stop halts until manual reset and is reported once."""

    def test_panic_stop_halts_and_alerts(self, monitor):
        guard = RiskGuard(monitor=monitor, session_id="s")
        guard.panic_stop("stop_loss: -300.5bb < -300bb")
        assert guard.halted
        assert not guard.check().ok
        events = monitor.events_of(HealthEventType.PANIC_STOP)
        assert len(events) == 1
        assert events[0].source == "risk_guard"
        assert events[0].details["halted"] is True

    def test_second_panic_stop_is_noop(self, monitor):
        guard = RiskGuard(monitor=monitor, session_id="s")
        guard.panic_stop("first")
        guard.panic_stop("second")
        assert guard.state.halt_reason == "first"
        assert len(monitor.events_of(HealthEventType.PANIC_STOP)) == 1

    def test_reset_clears_halt_but_keeps_totals(self, monitor):
        guard = RiskGuard(limits=RiskLimits(stop_loss_bb=10.0), monitor=monitor, session_id="s")
        guard.record_outcome("h1", -12.0)
        guard.panic_stop("stop_loss")
        guard.reset()

        assert not guard.halted
        assert guard.state.bankroll_delta_bb == pytest.approx(-12.0)
        # Still over the limit: the next check fails again
        assert not guard.check().ok
        assert len(monitor.events_of(HealthEventType.RISK_RESET)) == 1

    def test_new_session_starts_clean(self):
        guard = RiskGuard(session_id="s1")
        guard.record_outcome("h1", -50.0)
        guard.panic_stop("x")
        guard.new_session("s2")
        assert guard.state.session_id == "s2"
        assert guard.state.hands_played == 0
        assert not guard.halted
