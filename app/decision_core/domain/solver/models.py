"""
Solver models - equilibrium-oriented action frequencies for one state.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from decision_core.domain.game.distribution import Distribution, normalize
from decision_core.domain.game.models import ActionType, GameState, safe_action


class SolutionSource(str, Enum):
    """Where a solution came from."""

    CACHE = "cache"
    HEURISTIC = "heuristic"
    SUBGAME = "subgame"


@dataclass(frozen=True)
class ActionStat:
    """Frequency and expected value of one action.

    `size` is the implied bet size: a raise-to multiple of the current bet
    preflop, a pot fraction postflop. None for passive actions.
    """

    frequency: float
    ev: float = 0.0
    size: float | None = None


# Table/heuristic actions that map onto a different legal action when the
# original is not offered (e.g. "raise" when nobody has bet yet).
_SUBSTITUTES: dict[ActionType, tuple[ActionType, ...]] = {
    ActionType.RAISE: (ActionType.BET, ActionType.ALL_IN),
    ActionType.BET: (ActionType.RAISE, ActionType.ALL_IN),
    ActionType.CALL: (ActionType.CHECK, ActionType.ALL_IN),
    ActionType.CHECK: (ActionType.CALL,),
    ActionType.ALL_IN: (ActionType.RAISE, ActionType.BET, ActionType.CALL),
    ActionType.FOLD: (ActionType.CHECK,),
}


@dataclass(frozen=True)
class GTOSolution:
    """Baseline action-frequency distribution for a game state."""

    actions: dict[ActionType, ActionStat]
    source: SolutionSource
    compute_time_ms: float = 0.0
    fingerprint: str = ""
    notes: tuple[str, ...] = field(default_factory=tuple)

    def distribution(self) -> Distribution:
        return {a: s.frequency for a, s in self.actions.items() if s.frequency > 0}

    def implied_size(self, action: ActionType) -> float | None:
        stat = self.actions.get(action)
        return stat.size if stat else None

    def restricted_to(self, state: GameState) -> "GTOSolution":
        """Map actions onto the state's legal set and renormalize.

        Mass on an illegal action moves to its first legal substitute (a
        table "raise" becomes a "bet" when nobody has bet, a "call" becomes
        a "check" when there is nothing to call). If nothing survives, the
        solution collapses onto the safe action.
        """
        merged: dict[ActionType, list[float]] = {}
        sizes: dict[ActionType, float | None] = {}
        for action in ActionType:
            stat = self.actions.get(action)
            if stat is None or stat.frequency <= 0:
                continue
            target = action
            if not state.is_legal(action):
                target = next((s for s in _SUBSTITUTES[action] if state.is_legal(s)), None)
                if target is None:
                    continue
            freq_ev = merged.setdefault(target, [0.0, 0.0])
            freq_ev[0] += stat.frequency
            freq_ev[1] += stat.frequency * stat.ev
            if sizes.get(target) is None:
                sizes[target] = stat.size

        dist = normalize({a: fe[0] for a, fe in merged.items()})
        if not dist:
            fallback = safe_action(state)
            return replace(self, actions={fallback: ActionStat(1.0)}, notes=self.notes + ("no_legal_overlap",))

        actions = {
            a: ActionStat(
                frequency=p,
                ev=merged[a][1] / merged[a][0] if merged[a][0] else 0.0,
                size=sizes.get(a),
            )
            for a, p in dist.items()
        }
        return replace(self, actions=actions)

    def with_source(self, source: SolutionSource, compute_time_ms: float) -> "GTOSolution":
        return replace(self, source=source, compute_time_ms=compute_time_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source.value,
            "compute_time_ms": round(self.compute_time_ms, 3),
            "fingerprint": self.fingerprint,
            "actions": {
                a.value: {"frequency": round(s.frequency, 6), "ev": round(s.ev, 4), "size": s.size}
                for a, s in self.actions.items()
            },
            "notes": list(self.notes),
        }

    @classmethod
    def from_frequencies(
        cls,
        frequencies: dict[ActionType, float],
        source: SolutionSource,
        sizes: dict[ActionType, float] | None = None,
        evs: dict[ActionType, float] | None = None,
        fingerprint: str = "",
    ) -> "GTOSolution":
        dist = normalize(frequencies)
        sizes = sizes or {}
        evs = evs or {}
        return cls(
            actions={a: ActionStat(p, evs.get(a, 0.0), sizes.get(a)) for a, p in dist.items()},
            source=source,
            fingerprint=fingerprint,
        )


def default_policy(state: GameState) -> GTOSolution:
    """Check/fold policy used when nothing better is available in time."""
    return GTOSolution(
        actions={safe_action(state): ActionStat(1.0)},
        source=SolutionSource.CACHE,
        notes=("default_policy",),
    )
