"""
Models for external-reasoner output.

AgentRecommendation is the JSON contract every reasoner must answer with.
A malformed `sizing` never sinks an otherwise valid answer: it is treated
as absent. Everything else failing validation discards the output.
"""
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from decision_core.domain.game.distribution import Distribution, to_jsonable
from decision_core.domain.game.models import ActionType, GameState, Street


class BetSizing(BaseModel):
    """
    Flexible bet sizing that can be expressed in multiple ways.

    Use ONE of these fields:
    - absolute: Raise-to chip amount (e.g., 150)
    - bb_multiple: Big blind multiplier (e.g., 3 means 3x BB)
    - pot_fraction: Fraction of pot (e.g., 0.75 means 75% pot)
    """

    absolute: float | None = Field(default=None, gt=0, description="Raise-to chip amount (e.g., 150)")
    bb_multiple: float | None = Field(default=None, gt=0, description="Big blind multiplier (e.g., 3.0 means 3x BB)")
    pot_fraction: float | None = Field(default=None, gt=0, description="Fraction of pot (e.g., 0.75 means 75% pot)")

    def resolve(self, state: GameState, action: ActionType) -> float | None:
        """Raise-to chip amount implied by this sizing."""
        if self.absolute is not None:
            return self.absolute
        if self.bb_multiple is not None:
            return self.bb_multiple * state.big_blind
        if self.pot_fraction is not None:
            if action == ActionType.RAISE:
                return state.current_bet + self.pot_fraction * (state.pot + state.to_call)
            return self.pot_fraction * state.pot
        return None

    def to_size_units(self, state: GameState, action: ActionType) -> float | None:
        """
        Express the sizing in bet-size-set units: a raise-to multiple of the
        current bet preflop, a pot fraction postflop.
        """
        if state.street != Street.PREFLOP and self.pot_fraction is not None:
            return self.pot_fraction
        chips = self.resolve(state, action)
        if chips is None:
            return None
        if state.street == Street.PREFLOP:
            return chips / max(state.current_bet, state.big_blind)
        if action == ActionType.RAISE:
            base = state.pot + state.to_call
            return (chips - state.current_bet) / base if base > 0 else None
        return chips / state.pot if state.pot > 0 else None


class AgentRecommendation(BaseModel):
    """
    Structured answer from one reasoner.

    Example:
        {"action_type": "raise", "sizing": {"bb_multiple": 3},
         "confidence": 0.8, "rationale": "AKo is a standard open on the button."}
    """

    action_type: Literal["fold", "check", "call", "bet", "raise", "all_in"] = Field(
        description="The poker action to take"
    )
    sizing: BetSizing | None = Field(
        default=None,
        description="Bet/raise sizing. Use ONE of: absolute, bb_multiple, pot_fraction. Null otherwise.",
    )
    confidence: float = Field(ge=0.0, le=1.0, description="Confidence level from 0.0 to 1.0")
    rationale: str = Field(default="", description="Short free-text reasoning")

    @field_validator("sizing", mode="wrap")
    @classmethod
    def _lenient_sizing(cls, value: Any, handler) -> BetSizing | None:
        try:
            sizing = handler(value)
        except ValidationError:
            return None
        if sizing is not None and sizing.absolute is None and sizing.bb_multiple is None and sizing.pot_fraction is None:
            return None
        return sizing

    @property
    def action(self) -> ActionType:
        return ActionType(self.action_type)


@dataclass(frozen=True)
class AgentOutput:
    """Validated result of one reasoner for one decision."""

    agent: str
    model: str
    action: ActionType
    confidence: float
    rationale: str
    size_units: float | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    latency_ms: float = 0.0
    attempts: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent": self.agent,
            "model": self.model,
            "action": self.action.value,
            "confidence": self.confidence,
            "rationale": self.rationale,
            "size_units": self.size_units,
            "tokens": self.input_tokens + self.output_tokens,
            "cost": round(self.cost, 6),
            "latency_ms": round(self.latency_ms, 3),
            "attempts": self.attempts,
        }


@dataclass(frozen=True)
class AggregatedAgentOutput:
    """Weighted combination of the surviving agent outputs."""

    distribution: Distribution
    dispersion: float  # normalized entropy: 0 = unanimous, 1 = maximally split
    outputs: tuple[AgentOutput, ...] = ()
    exclusions: dict[str, str] = field(default_factory=dict)
    sizes: dict[ActionType, float] = field(default_factory=dict)
    all_breakers_open: bool = False

    @property
    def consensus(self) -> float:
        """1 - normalized entropy: 1 = unanimous, 0 = maximally split."""
        return 1.0 - self.dispersion

    @property
    def no_agent(self) -> bool:
        """No usable output: blending must go GTO-only."""
        return not self.distribution

    @property
    def models(self) -> dict[str, str]:
        return {o.agent: o.model for o in self.outputs}

    @classmethod
    def empty(cls, exclusions: dict[str, str], all_breakers_open: bool = False) -> "AggregatedAgentOutput":
        return cls(distribution={}, dispersion=0.0, exclusions=dict(exclusions), all_breakers_open=all_breakers_open)

    def to_dict(self) -> dict[str, Any]:
        return {
            "distribution": to_jsonable(self.distribution),
            "consensus": round(self.consensus, 6),
            "dispersion": round(self.dispersion, 6),
            "no_agent": self.no_agent,
            "all_breakers_open": self.all_breakers_open,
            "exclusions": dict(self.exclusions),
            "sizes": {a.value: s for a, s in self.sizes.items()},
            "outputs": [o.to_dict() for o in self.outputs],
        }
