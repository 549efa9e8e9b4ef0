"""
State fingerprinting for the solution cache.

A fingerprint keeps only what matters strategically: street, position,
hand class, bucketed stack and pot depth, the canonical board and a
discretized action history. Sub-bucket precision (a stack of 99.6bb vs
100.2bb) never changes the key.
"""
import hashlib
from dataclasses import dataclass

from decision_core.domain.game.models import (
    AGGRESSIVE_ACTIONS,
    RANKS,
    ActionType,
    Card,
    GameState,
    Street,
    normalize_position,
)

FINGERPRINT_VERSION = 1

# Effective stack depths (bb) the preflop table is generated at
STACK_BUCKETS = [10, 15, 20, 25, 30, 40, 50, 75, 100, 150, 200]

# Pot sizes (bb)
POT_BUCKETS = [1.5, 2.5, 4, 6, 8, 11.5, 15, 20, 25, 35, 50, 75, 100, 150, 200, 300, 400]

# Preflop scenarios, by number of voluntary raises before the hero acts
PREFLOP_SCENARIOS = ("open", "limp", "vs_raise", "vs_3bet", "vs_4bet")

_ACTION_TOKENS = {
    ActionType.FOLD: "f",
    ActionType.CHECK: "x",
    ActionType.CALL: "c",
    ActionType.BET: "b",
    ActionType.RAISE: "r",
    ActionType.ALL_IN: "a",
}


def nearest_bucket_index(value: float, buckets: list[float] | list[int]) -> int:
    """Index of the bucket closest to value (ties go to the smaller bucket)."""
    best = 0
    best_dist = abs(value - buckets[0])
    for i, b in enumerate(buckets[1:], start=1):
        d = abs(value - b)
        if d < best_dist:
            best = i
            best_dist = d
    return best


def nearest_stack_bucket(stack_bb: float) -> int:
    """Snap a stack depth to the nearest bucket.

    >>> nearest_stack_bucket(47.0)
    50
    >>> nearest_stack_bucket(12.0)
    10
    """
    return STACK_BUCKETS[nearest_bucket_index(stack_bb, STACK_BUCKETS)]


def hand_class(hole_cards: tuple[Card, ...]) -> str:
    """169-class notation: 'AA', 'AKs', 'AKo'. '??' if unknown."""
    if len(hole_cards) != 2:
        return "??"
    a, b = sorted(hole_cards, key=lambda c: RANKS.index(c.rank), reverse=True)
    if a.rank == b.rank:
        return f"{a.rank}{b.rank}"
    return f"{a.rank}{b.rank}{'s' if a.suit == b.suit else 'o'}"


def canonical_cards(cards: tuple[Card, ...]) -> str:
    """Order-independent card string (rank desc, then suit)."""
    ordered = sorted(cards, key=lambda c: (RANKS.index(c.rank), c.suit), reverse=True)
    return "".join(str(c) for c in ordered)


def preflop_scenario(state: GameState) -> str:
    """Classify the preflop action facing the hero."""
    raises = 0
    limpers = 0
    for entry in state.action_history:
        if entry.street != Street.PREFLOP:
            continue
        if entry.action in AGGRESSIVE_ACTIONS:
            raises += 1
        elif entry.action == ActionType.CALL and raises == 0:
            limpers += 1
    if raises == 0:
        return "limp" if limpers else "open"
    return PREFLOP_SCENARIOS[min(raises + 1, len(PREFLOP_SCENARIOS) - 1)]


def discretize_history(state: GameState) -> str:
    """Discretized action history: preflop scenario, then per-street action tokens."""
    if state.street == Street.PREFLOP:
        return preflop_scenario(state)

    parts = []
    for street in (Street.PREFLOP, Street.FLOP, Street.TURN, Street.RIVER):
        if street == state.street:
            break
        tokens = "".join(
            _ACTION_TOKENS[h.action]
            for h in state.action_history
            if h.street == street and h.action != ActionType.FOLD
        )
        parts.append(tokens)
    current = "".join(
        _ACTION_TOKENS[h.action]
        for h in state.action_history
        if h.street == state.street and h.action != ActionType.FOLD
    )
    parts.append(current)
    aggressor = preflop_aggressor(state)
    return f"{aggressor or '-'}:{'/'.join(parts)}"


def preflop_aggressor(state: GameState) -> str | None:
    """Position label of the last preflop raiser, if any."""
    aggressor = None
    for h in state.action_history:
        if h.street == Street.PREFLOP and h.action in AGGRESSIVE_ACTIONS:
            aggressor = normalize_position(h.position)
    return aggressor


@dataclass(frozen=True)
class StateFingerprint:
    """Deterministic digest of a GameState used as the cache key."""

    street: Street
    position: str
    hand: str
    stack_bucket: int  # index into STACK_BUCKETS
    pot_bucket: int  # index into POT_BUCKETS
    board: str
    history: str
    version: int = FINGERPRINT_VERSION

    @property
    def coarse(self) -> str:
        """Key without the stack/pot buckets (for nearest-bucket matching)."""
        return "|".join(
            [str(self.version), self.street.value, self.position, self.hand, self.board, self.history]
        )

    @property
    def key(self) -> str:
        raw = f"{self.coarse}|{self.stack_bucket}|{self.pot_bucket}"
        return hashlib.blake2b(raw.encode("utf-8"), digest_size=16).hexdigest()

    @property
    def stack_bb(self) -> int:
        return STACK_BUCKETS[self.stack_bucket]

    @property
    def pot_bb(self) -> float:
        return POT_BUCKETS[self.pot_bucket]

    def distance(self, other: "StateFingerprint") -> int:
        """Bucket distance between two fingerprints sharing a coarse key."""
        return abs(self.stack_bucket - other.stack_bucket) + abs(self.pot_bucket - other.pot_bucket)

    def __str__(self) -> str:
        return f"{self.coarse}|{self.stack_bb}bb|{self.pot_bb}bb"


def fingerprint(state: GameState) -> StateFingerprint:
    """Compute the fingerprint of a game state."""
    if state.street == Street.PREFLOP:
        hand = hand_class(state.hole_cards)
    else:
        hand = canonical_cards(state.hole_cards) or "??"
    return StateFingerprint(
        street=state.street,
        position=state.position,
        hand=hand,
        stack_bucket=nearest_bucket_index(state.effective_stack_bb, STACK_BUCKETS),
        pot_bucket=nearest_bucket_index(state.pot_bb, POT_BUCKETS),
        board=canonical_cards(state.board),
        history=discretize_history(state),
    )


def make_fingerprint(
    street: Street,
    position: str,
    hand: str,
    stack_bb: float,
    pot_bb: float,
    history: str,
    board: str = "",
) -> StateFingerprint:
    """Build a fingerprint directly (used when preloading tables)."""
    return StateFingerprint(
        street=street,
        position=position,
        hand=hand,
        stack_bucket=nearest_bucket_index(stack_bb, STACK_BUCKETS),
        pot_bucket=nearest_bucket_index(pot_bb, POT_BUCKETS),
        board=board,
        history=history,
    )
