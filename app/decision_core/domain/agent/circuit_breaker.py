"""
Per-agent circuit breaker.

CLOSED --(threshold consecutive failures)--> OPEN
OPEN --(manual reset, or optional cooldown)--> HALF_OPEN
HALF_OPEN --success--> CLOSED, --failure--> OPEN

Transitions are driven by consecutive outcomes. Time only matters when a
cooldown is configured (None by default: manual reset only).
"""
import time
from dataclasses import dataclass, field
from enum import Enum

from decision_core.domain.timing.budget import Clock


class BreakerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """Consecutive-failure breaker for one reasoner."""

    name: str
    threshold: int = 5
    cooldown_s: float | None = None
    clock: Clock = field(default=time.monotonic, repr=False)
    state: BreakerState = BreakerState.CLOSED
    consecutive_failures: int = 0
    trips: int = 0
    opened_at: float | None = None
    last_reason: str = ""

    @property
    def is_open(self) -> bool:
        return self.state == BreakerState.OPEN

    def allow_request(self) -> bool:
        """True if the agent may be queried for this decision."""
        if self.state != BreakerState.OPEN:
            return True
        if self.cooldown_s is not None and self.opened_at is not None:
            if self.clock() - self.opened_at >= self.cooldown_s:
                self.state = BreakerState.HALF_OPEN
                return True
        return False

    def record_success(self) -> None:
        self.consecutive_failures = 0
        self.state = BreakerState.CLOSED

    def record_failure(self, reason: str) -> bool:
        """Count a failure. Returns True if this failure tripped the breaker."""
        self.consecutive_failures += 1
        self.last_reason = reason
        if self.state == BreakerState.HALF_OPEN or (
            self.state == BreakerState.CLOSED and self.consecutive_failures >= self.threshold
        ):
            self.state = BreakerState.OPEN
            self.opened_at = self.clock()
            self.trips += 1
            return True
        return False

    def reset(self) -> None:
        """Manual reset: allow one probe decision."""
        self.state = BreakerState.HALF_OPEN
        self.consecutive_failures = 0
        self.opened_at = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "state": self.state.value,
            "consecutive_failures": self.consecutive_failures,
            "trips": self.trips,
            "last_reason": self.last_reason,
        }
