"""
Risk Guard - session limit enforcement.

`check()` is a pure read of the session totals against the configured
limits and is consulted once per decision right before finalization.
`record_outcome()` is the only way the totals change. A violation turns
into a panic stop: every later decision is a SafeAction until someone
calls `reset()`.
"""
import threading
import time
from dataclasses import dataclass, field, replace

from decision_core.config import RiskLimits
from decision_core.domain.monitoring.alerts import HealthEvent, HealthEventType, HealthMonitor
from decision_core.domain.timing.budget import Clock
from decision_core.exceptions import RiskViolation
from decision_core.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RiskState:
    """Session running totals. Replaced, never mutated in place."""

    session_id: str
    started_at: float  # monotonic seconds
    bankroll_delta_bb: float = 0.0
    peak_bb: float = 0.0
    hands_played: int = 0
    losing_hands: int = 0
    halted: bool = False
    halt_reason: str = ""
    recorded_hands: frozenset[str] = field(default_factory=frozenset)

    @property
    def drawdown_bb(self) -> float:
        """Distance below the session high-water mark."""
        return self.peak_bb - self.bankroll_delta_bb

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "bankroll_delta_bb": round(self.bankroll_delta_bb, 4),
            "peak_bb": round(self.peak_bb, 4),
            "hands_played": self.hands_played,
            "losing_hands": self.losing_hands,
            "halted": self.halted,
            "halt_reason": self.halt_reason,
        }


@dataclass(frozen=True)
class RiskCheck:
    ok: bool
    reason: str = ""


def check_limits(state: RiskState, limits: RiskLimits, now: float) -> RiskCheck:
    """
    Compare session totals with the limits.

    Args:
        state: Current session totals
        limits: Configured limits
        now: Monotonic seconds (same clock as state.started_at)

    Returns:
        RiskCheck(ok=True) or RiskCheck(ok=False, reason=...)
    """
    if state.halted:
        return RiskCheck(False, state.halt_reason or "halted")
    if state.bankroll_delta_bb < -limits.stop_loss_bb:
        return RiskCheck(
            False, f"stop_loss: {state.bankroll_delta_bb:.1f}bb < -{limits.stop_loss_bb:g}bb"
        )
    if limits.trailing_drawdown_bb is not None and state.drawdown_bb > limits.trailing_drawdown_bb:
        return RiskCheck(
            False, f"trailing_drawdown: {state.drawdown_bb:.1f}bb > {limits.trailing_drawdown_bb:g}bb"
        )
    if limits.max_hands is not None and state.hands_played >= limits.max_hands:
        return RiskCheck(False, f"hand_limit: {state.hands_played} >= {limits.max_hands}")
    if limits.max_session_minutes is not None:
        minutes = (now - state.started_at) / 60.0
        if minutes >= limits.max_session_minutes:
            return RiskCheck(False, f"time_limit: {minutes:.1f}min >= {limits.max_session_minutes:g}min")
    return RiskCheck(True)


class RiskGuard:
    """Owns one session's RiskState."""

    def __init__(
        self,
        limits: RiskLimits | None = None,
        monitor: HealthMonitor | None = None,
        session_id: str = "",
        clock: Clock = time.monotonic,
    ):
        self.limits = limits or RiskLimits()
        self.monitor = monitor or HealthMonitor()
        self._clock = clock
        self._lock = threading.Lock()
        self._state = RiskState(session_id=session_id, started_at=clock())

    @property
    def state(self) -> RiskState:
        return self._state

    @property
    def halted(self) -> bool:
        return self._state.halted

    def check(self, limits: RiskLimits | None = None) -> RiskCheck:
        """Check the current totals. Never mutates state."""
        return check_limits(self._state, limits or self.limits, self._clock())

    def enforce(self, limits: RiskLimits | None = None) -> None:
        """
        Raises:
            RiskViolation: a limit is breached or the session is halted
        """
        result = self.check(limits)
        if not result.ok:
            raise RiskViolation(result.reason)

    def record_outcome(self, hand_id: str, delta_bb: float) -> RiskState:
        """
        Apply one finished hand's result. Recording the same hand twice is a no-op.

        Args:
            hand_id: Hand identifier
            delta_bb: Hero's net result for the hand in big blinds

        Returns:
            The updated RiskState
        """
        with self._lock:
            current = self._state
            if hand_id in current.recorded_hands:
                logger.debug(f"Outcome for hand {hand_id} already recorded")
                return current
            bankroll = current.bankroll_delta_bb + delta_bb
            self._state = replace(
                current,
                bankroll_delta_bb=bankroll,
                peak_bb=max(current.peak_bb, bankroll),
                hands_played=current.hands_played + 1,
                losing_hands=current.losing_hands + (1 if delta_bb < 0 else 0),
                recorded_hands=current.recorded_hands | {hand_id},
            )
            return self._state

    def panic_stop(self, reason: str) -> None:
        """Halt automated decisions until manual reset."""
        with self._lock:
            if self._state.halted:
                return
            self._state = replace(self._state, halted=True, halt_reason=reason)
        logger.error(f"PANIC STOP for session {self._state.session_id}: {reason}")
        self.monitor.emit(
            HealthEvent(
                HealthEventType.PANIC_STOP,
                "risk_guard",
                reason,
                session_id=self._state.session_id,
                details=self._state.to_dict(),
            )
        )

    def reset(self) -> None:
        """Manual reset: clear the halt, keep the session totals."""
        with self._lock:
            previous = self._state.halt_reason
            self._state = replace(self._state, halted=False, halt_reason="")
        self.monitor.emit(
            HealthEvent(
                HealthEventType.RISK_RESET,
                "risk_guard",
                f"manual reset (was: {previous or 'not halted'})",
                session_id=self._state.session_id,
            )
        )

    def new_session(self, session_id: str) -> None:
        """Fresh totals at a session boundary."""
        with self._lock:
            self._state = RiskState(session_id=session_id, started_at=self._clock())
        logger.info(f"Risk state reset for session {session_id}")
