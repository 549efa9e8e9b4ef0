"""
Logging configuration for the decision core with structured logging support.
"""
import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

# Fields copied from `extra={...}` into collected/JSON entries.
STRUCTURED_FIELDS = [
    # Core identifiers
    "event_type", "session_id", "hand_id", "decision_id", "agent_id",
    # Game state
    "street", "position", "fingerprint",
    # Decision details
    "action", "amount", "alpha", "divergence", "seed", "source", "fallback",
    # Diagnostics
    "reason", "timings", "distributions", "models", "state", "favored",
]


def _record_entry(record: logging.LogRecord, fields: list[str]) -> dict[str, Any]:
    entry = {
        "timestamp": datetime.fromtimestamp(record.created).isoformat(),
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
    }
    for key in fields:
        if hasattr(record, key):
            entry[key] = getattr(record, key)
    return entry


@dataclass
class LogCollector:
    """
    In-memory copy of structured log entries.

    Decision, exclusion, divergence and health events carry their context
    in `extra=`; the collector keeps those fields so a session's audit
    trail can be exported next to its decision traces.
    """

    entries: list[dict[str, Any]] = field(default_factory=list)
    enabled: bool = True

    def add(self, record: logging.LogRecord) -> None:
        if self.enabled:
            self.entries.append(_record_entry(record, STRUCTURED_FIELDS))

    def for_session(self, session_id: str) -> list[dict[str, Any]]:
        return [e for e in self.entries if e.get("session_id") == session_id]

    def for_hand(self, hand_id: str) -> list[dict[str, Any]]:
        return [e for e in self.entries if e.get("hand_id") == hand_id]

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [e for e in self.entries if e.get("event_type") == event_type]

    def clear(self) -> None:
        self.entries = []

    def to_dict(self, session_id: str | None = None) -> dict:
        """Export (optionally one session's entries) for JSON serialization."""
        entries = self.entries if session_id is None else self.for_session(session_id)
        counts: dict[str, int] = {}
        for e in entries:
            if "event_type" in e:
                counts[e["event_type"]] = counts.get(e["event_type"], 0) + 1
        return {
            "total_entries": len(entries),
            "event_counts": counts,
            "entries": entries,
        }


# Global log collector instance
log_collector = LogCollector()


class CollectorHandler(logging.Handler):
    """Forwards records to the global collector."""

    def emit(self, record: logging.LogRecord) -> None:
        log_collector.add(record)


class StructuredFormatter(logging.Formatter):
    """One JSON object per line on the console."""

    CONSOLE_FIELDS = ["event_type", "session_id", "hand_id", "decision_id", "agent_id", "action", "amount", "reason"]

    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(_record_entry(record, self.CONSOLE_FIELDS), default=str)


class HumanReadableFormatter(logging.Formatter):
    """`time | level | logger | [decision] [agent] message` on the console."""

    def format(self, record: logging.LogRecord) -> str:
        context = getattr(record, "decision_id", None) or getattr(record, "hand_id", None)
        prefix = f"{context} " if context else ""
        if hasattr(record, "agent_id"):
            prefix += f"[{record.agent_id}] "
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        return f"{timestamp} | {record.levelname:<8} | {record.name} | {prefix}{record.getMessage()}"


def setup_logging(
    level: str = "INFO",
    collect_logs: bool = True,
    json_console: bool = False,
) -> None:
    """Set up logging configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        collect_logs: Whether to collect logs for JSON export
        json_console: If True, output JSON to console; otherwise human-readable
    """
    console_handler = logging.StreamHandler(sys.stdout)
    if json_console:
        console_handler.setFormatter(StructuredFormatter())
    else:
        console_handler.setFormatter(HumanReadableFormatter())

    handlers: list[logging.Handler] = [console_handler]

    if collect_logs:
        log_collector.enabled = True
        log_collector.clear()
        handlers.append(CollectorHandler())

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers.clear()
    for handler in handlers:
        root_logger.addHandler(handler)

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.ERROR)
    logging.getLogger("openai.agents").setLevel(logging.ERROR)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)


# Convenience functions for structured logging
def log_decision(
    logger: logging.Logger,
    session_id: str,
    hand_id: str,
    decision_id: str,
    action: str,
    amount: float | None,
    alpha: float,
    divergence: float,
    seed: int,
    fallback: bool,
    timings: dict[str, float],
    street: str | None = None,
    reason: str | None = None,
) -> None:
    """Log a finalized decision with structured data."""
    extra: dict[str, Any] = {
        "event_type": "decision",
        "session_id": session_id,
        "hand_id": hand_id,
        "decision_id": decision_id,
        "action": action,
        "alpha": alpha,
        "divergence": divergence,
        "seed": seed,
        "fallback": fallback,
        "timings": timings,
    }
    if amount is not None:
        extra["amount"] = amount
    if street:
        extra["street"] = street
    if reason:
        extra["reason"] = reason

    msg = f"=> {action}"
    if amount:
        msg += f" {amount:g}"
    msg += f" (alpha={alpha:.2f}, tv={divergence:.2f})"
    if fallback:
        msg += f" [fallback: {reason}]"

    logger.info(msg, extra=extra)


def log_agent_exclusion(
    logger: logging.Logger,
    agent_id: str,
    hand_id: str,
    reason: str,
    detail: str = "",
    session_id: str | None = None,
) -> None:
    """Log that a reasoner's output was excluded from aggregation."""
    extra: dict[str, Any] = {
        "event_type": "agent_excluded",
        "agent_id": agent_id,
        "hand_id": hand_id,
        "reason": reason,
    }
    if session_id:
        extra["session_id"] = session_id
    suffix = f": {detail}" if detail else ""
    logger.info(f"Excluded ({reason}){suffix}", extra=extra)


def log_divergence(
    logger: logging.Logger,
    session_id: str,
    hand_id: str,
    decision_id: str,
    divergence: float,
    seed: int,
    state: dict[str, Any],
    distributions: dict[str, dict[str, float]],
    models: dict[str, str],
    favored: tuple[str, str] | None = None,
) -> None:
    """Emit the full diagnostic trace for a GTO/agent divergence audit.

    `favored` is the (GTO, agents) most likely action pair, ties broken in
    canonical action order.
    """
    extra = {
        "event_type": "divergence",
        "session_id": session_id,
        "hand_id": hand_id,
        "decision_id": decision_id,
        "divergence": divergence,
        "seed": seed,
        "state": state,
        "distributions": distributions,
        "models": models,
    }
    msg = f"GTO/agent divergence {divergence:.2f} exceeds threshold (seed={seed})"
    if favored:
        extra["favored"] = {"gto": favored[0], "agents": favored[1]}
        msg += f": GTO favors {favored[0]}, agents favor {favored[1]}"
    logger.warning(msg, extra=extra)


def log_health_event(
    logger: logging.Logger,
    event_type: str,
    source: str,
    reason: str,
    session_id: str | None = None,
) -> None:
    """Log a health/alerting event (breaker trips, panic stops)."""
    extra: dict[str, Any] = {
        "event_type": event_type,
        "agent_id": source,
        "reason": reason,
    }
    if session_id:
        extra["session_id"] = session_id
    logger.warning(f"{event_type}: {source} - {reason}", extra=extra)
