"""
Bet sizing - from a continuous implied size to a legal chip amount.

Size units follow the configured size sets: preflop sizes are raise-to
multiples of the current bet (at least one big blind), postflop sizes are
pot fractions (of the pot after calling, for raises). The chosen option is
always a member of the street's size set; the chip amount is rounded to
the venue increment and clamped into [min_raise, max_raise].
"""
from dataclasses import dataclass

from decision_core.config import DecisionConfig
from decision_core.domain.game.models import ActionType, GameState, Street
from decision_core.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SizedAction:
    """Concrete action with its amount.

    `amount` is the hero's total commitment on this street after acting
    (raise-to for bets and raises, the current bet for a call). None for
    fold and check.
    """

    action: ActionType
    amount: float | None = None
    size_option: float | None = None
    clamped: bool = False


def _bounds(state: GameState) -> tuple[float, float]:
    hi = state.max_raise if state.max_raise > 0 else state.hero.stack + state.hero.current_bet
    if state.min_raise > 0:
        lo = state.min_raise
    else:
        lo = state.current_bet + max(state.big_blind, state.current_bet - state.hero.current_bet)
    return lo, hi


def option_to_chips(state: GameState, action: ActionType, option: float) -> float:
    """Raise-to chips for one size-set option."""
    if state.street == Street.PREFLOP:
        return option * max(state.current_bet, state.big_blind)
    if action == ActionType.RAISE:
        return state.current_bet + option * (state.pot + state.to_call)
    return state.hero.current_bet + option * state.pot


def round_to_increment(chips: float, increment: float) -> float:
    return round(round(chips / increment) * increment, 6)


def nearest_option(sizes: list[float], implied: float) -> float:
    """Closest size; ties go to the smaller size."""
    return min(sizes, key=lambda s: (abs(s - implied), s))


def default_size(sizes: list[float], street: Street) -> float:
    """Size used when neither the solver nor the agents implied one."""
    if street == Street.PREFLOP:
        return nearest_option(sizes, 2.5)
    return nearest_option(sizes, 0.5)


def size_action(
    state: GameState,
    action: ActionType,
    implied: float | None,
    config: DecisionConfig,
) -> SizedAction:
    """
    Turn an action plus implied size into a legal SizedAction.

    Args:
        state: Game state the action is for
        action: Selected (legal) action
        implied: Continuous implied size in size-set units, or None
        config: Decision snapshot (size sets, chip increment)

    Returns:
        SizedAction whose amount lies within the state's legal range
    """
    if action in (ActionType.FOLD, ActionType.CHECK):
        return SizedAction(action)

    lo, hi = _bounds(state)
    if action == ActionType.CALL:
        return SizedAction(action, amount=min(state.current_bet, hi))
    if action == ActionType.ALL_IN:
        return SizedAction(action, amount=hi)

    sizes = config.size_set(state.street, state.effective_stack_bb)
    target = implied if implied is not None and implied > 0 else default_size(sizes, state.street)

    if lo >= hi:
        # Any raise is all-in
        return SizedAction(action, amount=hi, size_option=nearest_option(sizes, target), clamped=True)

    def legal_amount(option: float) -> float:
        return round_to_increment(option_to_chips(state, action, option), config.min_chip_increment)

    ranked = sorted(sizes, key=lambda s: (abs(s - target), s))
    for option in ranked:
        amount = legal_amount(option)
        if lo <= amount <= hi:
            return SizedAction(action, amount=amount, size_option=option)

    # No option fits: re-clamp the nearest one
    option = ranked[0]
    raw = legal_amount(option)
    amount = min(max(raw, lo), hi)
    logger.debug(
        f"Size {option:g} ({raw:g} chips) outside [{lo:g}, {hi:g}] for hand {state.hand_id}; clamped to {amount:g}"
    )
    return SizedAction(action, amount=amount, size_option=option, clamped=True)
