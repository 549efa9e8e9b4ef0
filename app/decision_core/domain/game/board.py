"""
Board texture classification.

Reduces flops/turns/rivers into a handful of strategically relevant
texture classes. The heuristic solver keys c-bet frequency and preferred
bet size off these classes.
"""
from collections import Counter
from dataclasses import dataclass
from enum import Enum

from decision_core.domain.game.models import Card


class Texture(str, Enum):
    """Board texture class."""

    DRY = "dry"
    PAIRED = "paired"
    TWO_TONE = "two_tone"
    CONNECTED = "connected"
    MONOTONE = "monotone"
    DYNAMIC = "dynamic"


# Flop c-bet frequency for the preflop aggressor, by texture
CBET_FREQUENCY: dict[Texture, float] = {
    Texture.DRY: 0.75,
    Texture.PAIRED: 0.70,
    Texture.TWO_TONE: 0.55,
    Texture.CONNECTED: 0.50,
    Texture.MONOTONE: 0.35,
    Texture.DYNAMIC: 0.40,
}

# Preferred bet size (pot fraction) by texture: small on static boards,
# bigger where draws need to be charged.
PREFERRED_SIZE: dict[Texture, float] = {
    Texture.DRY: 0.33,
    Texture.PAIRED: 0.33,
    Texture.TWO_TONE: 0.66,
    Texture.CONNECTED: 0.66,
    Texture.MONOTONE: 0.75,
    Texture.DYNAMIC: 0.75,
}


@dataclass(frozen=True)
class BoardTexture:
    """Features of a board."""

    high_card: int
    is_paired: bool
    max_suit_count: int
    is_connected: bool
    texture: Texture

    @property
    def is_wet(self) -> bool:
        return self.texture in (Texture.CONNECTED, Texture.TWO_TONE, Texture.DYNAMIC, Texture.MONOTONE)


def _is_connected(values: list[int]) -> bool:
    """Three cards within a five-rank window (straight draws possible)."""
    distinct = sorted(set(values))
    # Ace plays low for wheel draws
    if 14 in distinct:
        distinct = [1] + distinct
    for i in range(len(distinct) - 2):
        if distinct[i + 2] - distinct[i] <= 4:
            return True
    return False


def analyze_board(board: tuple[Card, ...] | list[Card]) -> BoardTexture:
    """Classify a board into a texture bucket.

    Args:
        board: Community cards (3-5 cards). An empty board is classed DRY.

    Returns:
        BoardTexture with the raw features and the bucket.
    """
    if not board:
        return BoardTexture(0, False, 0, False, Texture.DRY)

    values = [c.value for c in board]
    suit_counts = Counter(c.suit for c in board)
    max_suit = max(suit_counts.values())
    paired = len(set(values)) < len(values)
    connected = _is_connected(values)

    if max_suit >= 3:
        texture = Texture.MONOTONE
    elif paired:
        texture = Texture.PAIRED
    elif connected and max_suit == 2:
        texture = Texture.DYNAMIC
    elif connected:
        texture = Texture.CONNECTED
    elif max_suit == 2:
        texture = Texture.TWO_TONE
    else:
        texture = Texture.DRY

    return BoardTexture(
        high_card=max(values),
        is_paired=paired,
        max_suit_count=max_suit,
        is_connected=connected,
        texture=texture,
    )


def has_flush_draw(hole_cards: tuple[Card, ...], board: tuple[Card, ...]) -> bool:
    """Four to a flush using at least one hole card, with cards to come."""
    if len(board) >= 5:
        return False
    counts = Counter(c.suit for c in board)
    return any(counts[c.suit] + sum(1 for h in hole_cards if h.suit == c.suit) == 4 for c in hole_cards)


def has_straight_draw(hole_cards: tuple[Card, ...], board: tuple[Card, ...]) -> bool:
    """Open-ended or gutshot: four distinct ranks inside a five-rank window."""
    if len(board) >= 5:
        return False
    values = {c.value for c in (*hole_cards, *board)}
    if 14 in values:
        values.add(1)
    hole_values = {c.value for c in hole_cards} | ({1} if any(c.value == 14 for c in hole_cards) else set())
    for low in range(1, 11):
        window = set(range(low, low + 5))
        hits = values & window
        if len(hits) == 4 and hits & hole_values:
            return True
    return False
