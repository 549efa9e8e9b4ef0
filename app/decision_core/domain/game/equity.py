"""
Equity calculation utilities for the heuristic solver.

Monte Carlo equity of the hero's hand against random opponent holdings,
evaluated with PokerKit. The sampling loop polls a preemption callback so
the solver can stop cooperatively when its sub-budget runs out.
"""
import random
from dataclasses import dataclass
from itertools import combinations
from typing import Callable

from pokerkit import Card as PKCard
from pokerkit import Deck, StandardHighHand

from decision_core.domain.game.models import Card
from decision_core.logging_config import get_logger

logger = get_logger(__name__)

# How many samples between preemption polls
POLL_INTERVAL = 16


@dataclass(frozen=True)
class EquityEstimate:
    """Result of an equity run."""

    equity: float  # 0.0 to 1.0
    samples: int
    preempted: bool


def cards_to_pokerkit(cards: tuple[Card, ...] | list[Card]) -> list[PKCard]:
    """Convert our Card objects to PokerKit Card objects."""
    result = []
    for card in cards:
        result.extend(PKCard.parse(f"{card.rank}{card.suit}"))
    return result


def estimate_equity(
    hole_cards: tuple[Card, ...],
    board: tuple[Card, ...],
    num_opponents: int = 1,
    sample_count: int = 300,
    preempt: Callable[[], bool] | None = None,
    rng: random.Random | None = None,
) -> EquityEstimate:
    """
    Estimate hero's equity against random opponent hands.

    Args:
        hole_cards: Hero's hole cards (2 cards)
        board: Community cards (0-5 cards)
        num_opponents: Number of opponents still in the hand (1+)
        sample_count: Maximum Monte Carlo samples
        preempt: Polled every POLL_INTERVAL samples; True stops the run
        rng: Random source (seeded by the caller for reproducibility)

    Returns:
        EquityEstimate with the samples actually taken
    """
    rng = rng or random.Random()
    num_opponents = max(1, num_opponents)
    hero_pk = cards_to_pokerkit(hole_cards)
    board_pk = cards_to_pokerkit(board)
    dead = set(hero_pk + board_pk)
    remaining_deck = [c for c in Deck.STANDARD if c not in dead]
    cards_needed = 5 - len(board_pk)

    wins = 0.0
    taken = 0
    for i in range(sample_count):
        if preempt is not None and i % POLL_INTERVAL == 0 and preempt():
            return EquityEstimate(
                equity=wins / taken if taken else 0.5,
                samples=taken,
                preempted=True,
            )

        drawn = rng.sample(remaining_deck, cards_needed + 2 * num_opponents)
        full_board = board_pk + drawn[:cards_needed]
        opponents = [
            drawn[cards_needed + 2 * j : cards_needed + 2 * j + 2] for j in range(num_opponents)
        ]

        hero_hand = StandardHighHand.from_game(hero_pk, full_board)
        opponent_hands = [StandardHighHand.from_game(opp, full_board) for opp in opponents]
        best_opponent = max(opponent_hands)

        if hero_hand > best_opponent:
            wins += 1
        elif hero_hand == best_opponent:
            tie_count = sum(1 for h in opponent_hands if h == hero_hand) + 1
            wins += 1.0 / tie_count
        taken += 1

    return EquityEstimate(equity=wins / taken if taken else 0.5, samples=taken, preempted=False)


def enumerate_river_equity(
    hole_cards: tuple[Card, ...],
    board: tuple[Card, ...],
    preempt: Callable[[], bool] | None = None,
) -> EquityEstimate:
    """
    Exact heads-up equity on a complete board against every opponent holding.

    Args:
        hole_cards: Hero's hole cards (2 cards)
        board: All five community cards
        preempt: Polled every POLL_INTERVAL holdings; True stops the run

    Returns:
        EquityEstimate over the holdings evaluated (all 990 unless preempted)
    """
    if len(board) != 5:
        raise ValueError(f"River enumeration needs 5 board cards, got {len(board)}")
    hero_pk = cards_to_pokerkit(hole_cards)
    board_pk = cards_to_pokerkit(board)
    dead = set(hero_pk + board_pk)
    remaining_deck = [c for c in Deck.STANDARD if c not in dead]
    hero_hand = StandardHighHand.from_game(hero_pk, board_pk)

    wins = 0.0
    taken = 0
    for i, opponent in enumerate(combinations(remaining_deck, 2)):
        if preempt is not None and i % POLL_INTERVAL == 0 and preempt():
            return EquityEstimate(equity=wins / taken if taken else 0.5, samples=taken, preempted=True)
        opponent_hand = StandardHighHand.from_game(list(opponent), board_pk)
        if hero_hand > opponent_hand:
            wins += 1
        elif hero_hand == opponent_hand:
            wins += 0.5
        taken += 1

    return EquityEstimate(equity=wins / taken if taken else 0.5, samples=taken, preempted=False)
