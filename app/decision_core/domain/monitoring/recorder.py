"""
Decision Recorder - keeps the full trace of every decision.

Traces are grouped per session and flushed to JSON files for the
hand-history logger and replay tooling. Fallback and SafeAction outcomes
are recorded exactly like normal decisions.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from decision_core.domain.utils.file_lock import read_json_locked, write_json_atomic
from decision_core.logging_config import get_logger

if TYPE_CHECKING:
    from decision_core.domain.strategy.models import DecisionTrace

logger = get_logger(__name__)

FORMAT_VERSION = 1


@dataclass
class SessionRecord:
    """All decision traces of one session."""

    session_id: str
    started_at: str
    decisions: list[dict[str, Any]] = field(default_factory=list)

    def to_summary_dict(self) -> dict[str, Any]:
        """Counts the logger collaborator shows per session."""
        fallbacks = [d for d in self.decisions if d["decision"].get("fallback")]
        reasons: dict[str, int] = {}
        for d in fallbacks:
            reason = d["decision"].get("fallback_reason") or "unknown"
            reasons[reason] = reasons.get(reason, 0) + 1
        return {
            "decisions": len(self.decisions),
            "hands": len({d["decision"]["hand_id"] for d in self.decisions}),
            "fallbacks": len(fallbacks),
            "fallback_reasons": reasons,
            "divergence_flags": sum(1 for d in self.decisions if d.get("divergence_flagged")),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "started_at": self.started_at,
            "format_version": FORMAT_VERSION,
            "decisions": self.decisions,
            "summary": self.to_summary_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionRecord":
        return cls(
            session_id=data["session_id"],
            started_at=data["started_at"],
            decisions=list(data.get("decisions", [])),
        )


class DecisionRecorder:
    """In-memory trace store with per-session JSON export."""

    def __init__(self, output_dir: str | Path | None = None):
        self._output_dir = Path(output_dir) if output_dir else None
        self._sessions: dict[str, SessionRecord] = {}
        self._lock = threading.Lock()

    def record(self, trace: "DecisionTrace") -> None:
        """Append a finished decision trace to its session."""
        entry = trace.to_dict()
        session_id = trace.decision.session_id
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = SessionRecord(session_id=session_id, started_at=datetime.now().isoformat())
                self._sessions[session_id] = session
            session.decisions.append(entry)

    def session(self, session_id: str) -> SessionRecord | None:
        return self._sessions.get(session_id)

    def traces_for_hand(self, session_id: str, hand_id: str) -> list[dict[str, Any]]:
        session = self._sessions.get(session_id)
        if session is None:
            return []
        return [d for d in session.decisions if d["decision"]["hand_id"] == hand_id]

    def flush(self, session_id: str) -> Path | None:
        """Write a session's traces to `<output_dir>/session_<id>.json`."""
        session = self._sessions.get(session_id)
        if session is None or self._output_dir is None:
            return None

        with self._lock:
            payload = session.to_dict()
        path = write_json_atomic(self._output_dir / f"session_{session_id}.json", payload)

        logger.info(f"Saved {len(payload['decisions'])} decision traces to {path}")
        return path

    @staticmethod
    def load(path: str | Path) -> SessionRecord:
        return SessionRecord.from_dict(read_json_locked(path))
