"""
Strategy models - the decision handed to the executor and its full trace.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from decision_core.domain.game.models import ActionType


class EngineState(str, Enum):
    """Synthesis state machine stages."""

    AWAITING_INPUTS = "awaiting_inputs"
    BLENDING = "blending"
    SELECTING = "selecting"
    RISK_CHECKING = "risk_checking"
    FINALIZED = "finalized"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class StrategyDecision:
    """
    Final output for one hand-action.

    Immutable once created. Carries everything needed to reproduce the
    selection: the alpha used, the seed and the per-stage timings.
    """

    session_id: str
    hand_id: str
    decision_id: str
    action: ActionType
    amount: float | None
    alpha: float
    divergence: float
    seed: int
    timings: dict[str, float]
    size_option: float | None = None
    seed_version: int = 1
    fallback: bool = False
    fallback_reason: str | None = None
    reasoning: tuple[str, ...] = ()

    @property
    def is_safe_action(self) -> bool:
        return self.fallback and self.action in (ActionType.CHECK, ActionType.FOLD)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "hand_id": self.hand_id,
            "decision_id": self.decision_id,
            "action": self.action.value,
            "amount": self.amount,
            "size_option": self.size_option,
            "alpha": self.alpha,
            "divergence": round(self.divergence, 6),
            "seed": self.seed,
            "seed_version": self.seed_version,
            "fallback": self.fallback,
            "fallback_reason": self.fallback_reason,
            "timings": dict(self.timings),
            "reasoning": list(self.reasoning),
        }


@dataclass
class DecisionTrace:
    """Everything that went into one decision, for the logger and replay."""

    decision: StrategyDecision
    state: dict[str, Any]
    fingerprint: str = ""
    gto: dict[str, Any] | None = None
    agents: dict[str, Any] | None = None
    blended: dict[str, float] = field(default_factory=dict)
    transitions: list[str] = field(default_factory=list)
    divergence_flagged: bool = False
    risk: dict[str, Any] | None = None
    config_alpha: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "decision": self.decision.to_dict(),
            "state": self.state,
            "fingerprint": self.fingerprint,
            "gto": self.gto,
            "agents": self.agents,
            "blended": self.blended,
            "transitions": list(self.transitions),
            "divergence_flagged": self.divergence_flagged,
            "risk": self.risk,
            "config_alpha": self.config_alpha,
        }
