"""
Preflop range table.

Equilibrium-style preflop charts keyed by (position, scenario, stack
bucket, hand class). The default table is generated from a ranked list of
the 169 starting hands: hands well inside a position's range play a pure
strategy, hands near the boundary get mixed frequencies. A solver export
can replace it via `PreflopRangeTable.load()`.

Sizes are raise-to multiples of the current bet.
"""
import json
from pathlib import Path
from typing import Any, Iterator

from decision_core.domain.game.models import PREFLOP_ORDER, RANKS, ActionType
from decision_core.domain.solver.fingerprint import PREFLOP_SCENARIOS, STACK_BUCKETS, nearest_stack_bucket
from decision_core.domain.solver.models import ActionStat
from decision_core.exceptions import SolverError
from decision_core.logging_config import get_logger

logger = get_logger(__name__)

TABLE_VERSION = 1

# Share of all 1326 combos each position opens (100bb, folded to)
OPEN_PERCENT = {"UTG": 15.0, "HJ": 19.0, "CO": 27.0, "BTN": 45.0, "SB": 40.0, "BB": 0.0}

# Versus a single raise: (3-bet %, flat %)
VS_RAISE_PERCENT = {
    "UTG": (3.0, 4.0),
    "HJ": (4.0, 5.0),
    "CO": (5.0, 7.0),
    "BTN": (6.0, 10.0),
    "SB": (6.5, 4.0),
    "BB": (7.0, 24.0),
}

# Isolation raise / overlimp versus limpers
ISO_PERCENT = 12.0
OVERLIMP_PERCENT = 10.0

# (re-raise %, call %) when facing a 3-bet / 4-bet
VS_3BET_PERCENT = (2.5, 5.0)
VS_4BET_PERCENT = (1.8, 1.2)

# Width (in combo %) of the mixed-frequency band around each threshold
MIXED_BAND = 2.0

# Stacks at or below this play push/fold
PUSH_FOLD_MAX_BB = 15

# Nominal pot (bb) when the hero faces each scenario, used when preloading
SCENARIO_POT_BB = {"open": 1.5, "limp": 2.5, "vs_raise": 4.0, "vs_3bet": 11.5, "vs_4bet": 25.0}

_CHEN_HIGH = {"A": 10.0, "K": 8.0, "Q": 7.0, "J": 6.0}


def _chen_score(hand: str) -> float:
    """Bill Chen's starting-hand score (unrounded)."""
    hi, lo = hand[0], hand[1]
    base = _CHEN_HIGH.get(hi, (RANKS.index(hi) + 2) / 2.0)
    if hi == lo:
        return max(5.0, base * 2)
    score = base + (2.0 if hand.endswith("s") else 0.0)
    gap = RANKS.index(hi) - RANKS.index(lo) - 1
    score -= {0: 0.0, 1: 1.0, 2: 2.0, 3: 4.0}.get(gap, 5.0)
    if gap <= 1 and RANKS.index(hi) < RANKS.index("Q"):
        score += 1.0
    return score


def all_hand_classes() -> list[str]:
    """The 169 hand classes: pairs, suited and offsuit."""
    hands = []
    for i in range(len(RANKS) - 1, -1, -1):
        for j in range(i, -1, -1):
            hi, lo = RANKS[i], RANKS[j]
            if i == j:
                hands.append(hi + lo)
            else:
                hands.append(f"{hi}{lo}s")
                hands.append(f"{hi}{lo}o")
    return hands


def combos(hand: str) -> int:
    if len(hand) == 2:
        return 6
    return 4 if hand.endswith("s") else 12


def ranked_hands() -> list[tuple[str, float]]:
    """Hands strongest first, with the cumulative combo % at which each starts."""
    order = sorted(
        all_hand_classes(),
        key=lambda h: (
            _chen_score(h),
            len(h) == 2,
            h.endswith("s"),
            RANKS.index(h[0]),
            RANKS.index(h[1]),
        ),
        reverse=True,
    )
    ranked = []
    cumulative = 0.0
    for hand in order:
        ranked.append((hand, cumulative))
        cumulative += combos(hand) * 100.0 / 1326.0
    return ranked


def _band_frequency(start_pct: float, threshold: float) -> float:
    """1.0 well inside the range, 0.0 well outside, linear in the band."""
    if threshold <= 0:
        return 0.0
    low = threshold - MIXED_BAND / 2
    high = threshold + MIXED_BAND / 2
    if start_pct <= low:
        return 1.0
    if start_pct >= high:
        return 0.0
    return round((high - start_pct) / MIXED_BAND, 3)


def _stack_scale(stack_bb: int) -> float:
    """Ranges tighten a little at 20-40bb and widen slightly when deep."""
    if stack_bb <= 40:
        return 0.85
    if stack_bb >= 150:
        return 1.05
    return 1.0


def _strategy(
    start_pct: float,
    aggressive_pct: float,
    passive_pct: float,
    aggressive: ActionType,
    passive: ActionType,
    size: float | None,
    default: ActionType = ActionType.FOLD,
) -> dict[ActionType, ActionStat]:
    """Three-way split: aggressive band, then passive band, then default."""
    agg_freq = _band_frequency(start_pct, aggressive_pct)
    pas_freq = 0.0
    if passive_pct > 0:
        pas_freq = (1.0 - agg_freq) * _band_frequency(start_pct, aggressive_pct + passive_pct)
    rest = max(0.0, 1.0 - agg_freq - pas_freq)
    strength = max(0.0, 1.0 - start_pct / 100.0)

    actions: dict[ActionType, ActionStat] = {}
    if agg_freq > 0:
        actions[aggressive] = ActionStat(agg_freq, round(strength - 0.3, 3), size)
    if pas_freq > 0:
        actions[passive] = ActionStat(round(pas_freq, 3), round(strength - 0.5, 3))
    if rest > 1e-9:
        actions[default] = ActionStat(round(rest, 3), 0.0)
    total = sum(s.frequency for s in actions.values())
    return {a: ActionStat(s.frequency / total, s.ev, s.size) for a, s in actions.items()}


def _entry(position: str, scenario: str, stack_bb: int, start_pct: float) -> dict[ActionType, ActionStat]:
    scale = _stack_scale(stack_bb)
    push_fold = stack_bb <= PUSH_FOLD_MAX_BB
    in_blinds = position in ("SB", "BB")

    if scenario == "open":
        pct = OPEN_PERCENT[position] * scale
        if position == "BB":
            # Walk: nothing to open, take the free check
            return {ActionType.CHECK: ActionStat(1.0)}
        if push_fold:
            return _strategy(start_pct, pct * 0.8, 0.0, ActionType.ALL_IN, ActionType.CALL, None)
        size = 3.0 if position == "SB" else 2.5
        return _strategy(start_pct, pct, 0.0, ActionType.RAISE, ActionType.CALL, size)

    if scenario == "limp":
        default = ActionType.CHECK if position == "BB" else ActionType.FOLD
        passive = ActionType.CHECK if position == "BB" else ActionType.CALL
        if push_fold:
            return _strategy(start_pct, ISO_PERCENT, 0.0, ActionType.ALL_IN, passive, None, default)
        return _strategy(start_pct, ISO_PERCENT * scale, OVERLIMP_PERCENT, ActionType.RAISE, passive, 4.0, default)

    if scenario == "vs_raise":
        three_bet, flat = VS_RAISE_PERCENT[position]
        if push_fold:
            return _strategy(start_pct, three_bet + flat / 2, 0.0, ActionType.ALL_IN, ActionType.CALL, None)
        size = 4.0 if in_blinds else 3.0
        return _strategy(start_pct, three_bet * scale, flat * scale, ActionType.RAISE, ActionType.CALL, size)

    if scenario == "vs_3bet":
        four_bet, flat = VS_3BET_PERCENT
        if stack_bb <= 40:
            return _strategy(start_pct, four_bet + flat / 2, 0.0, ActionType.ALL_IN, ActionType.CALL, None)
        return _strategy(start_pct, four_bet, flat, ActionType.RAISE, ActionType.CALL, 2.5)

    shove, flat = VS_4BET_PERCENT
    return _strategy(start_pct, shove, flat, ActionType.ALL_IN, ActionType.CALL, None)


class PreflopRangeTable:
    """Preflop strategy lookup by position, scenario, stack bucket and hand."""

    def __init__(self, entries: dict[tuple[str, str, int, str], dict[ActionType, ActionStat]]):
        self._entries = entries

    def __len__(self) -> int:
        return len(self._entries)

    @classmethod
    def generate(cls) -> "PreflopRangeTable":
        """Build the default table for every position, scenario and stack bucket."""
        ranked = ranked_hands()
        entries = {}
        for position in PREFLOP_ORDER:
            for scenario in PREFLOP_SCENARIOS:
                for stack in STACK_BUCKETS:
                    for hand, start_pct in ranked:
                        entries[(position, scenario, stack, hand)] = _entry(position, scenario, stack, start_pct)
        logger.debug(f"Generated preflop table with {len(entries)} entries")
        return cls(entries)

    def lookup(
        self, position: str, scenario: str, stack_bb: float, hand: str
    ) -> dict[ActionType, ActionStat] | None:
        """Strategy for a spot, snapping the stack to the nearest bucket."""
        return self._entries.get((position, scenario, nearest_stack_bucket(stack_bb), hand))

    def entries(self) -> Iterator[tuple[str, str, int, str, dict[ActionType, ActionStat]]]:
        for (position, scenario, stack, hand), actions in self._entries.items():
            yield position, scenario, stack, hand, actions

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": TABLE_VERSION,
            "entries": [
                {
                    "position": position,
                    "scenario": scenario,
                    "stack_bb": stack,
                    "hand": hand,
                    "actions": {
                        a.value: {"frequency": s.frequency, "ev": s.ev, "size": s.size}
                        for a, s in actions.items()
                    },
                }
                for position, scenario, stack, hand, actions in self.entries()
            ],
        }

    def save(self, path: str | Path) -> None:
        """Export the table as JSON."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f)
        logger.info(f"Saved preflop table ({len(self)} entries) to {path}")

    @classmethod
    def load(cls, path: str | Path) -> "PreflopRangeTable":
        """Import a table from JSON (as written by `save` or a solver export)."""
        try:
            with open(path) as f:
                data = json.load(f)
            entries = {}
            for e in data["entries"]:
                actions = {
                    ActionType(name): ActionStat(
                        frequency=float(stat["frequency"]),
                        ev=float(stat.get("ev", 0.0)),
                        size=stat.get("size"),
                    )
                    for name, stat in e["actions"].items()
                }
                entries[(e["position"], e["scenario"], int(e["stack_bb"]), e["hand"])] = actions
        except (OSError, json.JSONDecodeError, KeyError, ValueError, TypeError) as exc:
            raise SolverError("bad_range_table", f"Cannot load preflop table {path}: {exc}") from exc
        logger.info(f"Loaded preflop table ({len(entries)} entries) from {path}")
        return cls(entries)
