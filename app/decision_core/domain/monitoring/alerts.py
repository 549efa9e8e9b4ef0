"""
Health events for the alerting collaborator.

Circuit-breaker trips, the all-agents-down condition, panic stops and
manual resets are logged and fanned out to registered sinks.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from decision_core.logging_config import get_logger, log_health_event

logger = get_logger(__name__)


class HealthEventType(str, Enum):
    BREAKER_TRIPPED = "breaker_tripped"
    BREAKER_RESET = "breaker_reset"
    ALL_AGENTS_DOWN = "all_agents_down"
    PANIC_STOP = "panic_stop"
    RISK_RESET = "risk_reset"


@dataclass(frozen=True)
class HealthEvent:
    """One alert-worthy occurrence."""

    event_type: HealthEventType
    source: str  # agent name, "risk_guard", ...
    reason: str
    session_id: str | None = None
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "source": self.source,
            "reason": self.reason,
            "session_id": self.session_id,
            "timestamp": self.timestamp,
            "details": self.details,
        }


HealthSink = Callable[[HealthEvent], None]


class HealthMonitor:
    """Logs health events and forwards them to sinks."""

    def __init__(self, sinks: list[HealthSink] | None = None):
        self._sinks: list[HealthSink] = list(sinks or [])
        self.events: list[HealthEvent] = []

    def add_sink(self, sink: HealthSink) -> None:
        self._sinks.append(sink)

    def emit(self, event: HealthEvent) -> None:
        self.events.append(event)
        log_health_event(
            logger,
            event_type=event.event_type.value,
            source=event.source,
            reason=event.reason,
            session_id=event.session_id,
        )
        for sink in self._sinks:
            try:
                sink(event)
            except Exception as e:
                # Sink failures are logged, never raised
                logger.error(f"Health sink {sink!r} failed on {event.event_type.value}: {e}")

    def events_of(self, event_type: HealthEventType) -> list[HealthEvent]:
        return [e for e in self.events if e.event_type == event_type]
