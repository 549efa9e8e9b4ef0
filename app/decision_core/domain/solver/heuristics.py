"""
Postflop heuristic policy.

Turns hand equity plus board texture into an action-frequency
distribution:
- value-bet / check thresholds keyed to equity
- c-bet frequency keyed to board texture for the preflop aggressor
- draw continuation gated by pot odds
- in-position aggression scaled up, out-of-position scaled down
"""
import random
from typing import Callable

from decision_core.config import DecisionConfig
from decision_core.domain.game.board import CBET_FREQUENCY, PREFERRED_SIZE, analyze_board, has_flush_draw, has_straight_draw
from decision_core.domain.game.equity import EquityEstimate, enumerate_river_equity, estimate_equity
from decision_core.domain.game.models import AGGRESSIVE_ACTIONS, ActionType, GameState, Street
from decision_core.domain.solver.fingerprint import preflop_aggressor
from decision_core.domain.solver.models import ActionStat
from decision_core.logging_config import get_logger

logger = get_logger(__name__)

# Equity thresholds
VALUE_EQUITY = 0.65
NUTTED_EQUITY = 0.80
RAISE_EQUITY = 0.75
BLUFF_EQUITY = 0.35

# Aggression multipliers
IN_POSITION = 1.15
OUT_OF_POSITION = 0.85

# Below this stack-to-pot ratio aggressive mass goes all-in
SHOVE_SPR = 1.0


class HeuristicAborted(Exception):
    """Equity sampling was preempted before a usable estimate existed."""


def _nearest(value: float, options: list[float]) -> float:
    return min(options, key=lambda o: (abs(o - value), o))


def _hand_equity(
    state: GameState,
    config: DecisionConfig,
    preempt: Callable[[], bool] | None,
    rng: random.Random,
) -> tuple[EquityEstimate, bool]:
    """Equity of the hero's hand; exact on heads-up rivers. Second value is True when exact."""
    opponents = max(1, len(state.opponents))
    if state.street == Street.RIVER and opponents == 1:
        exact = enumerate_river_equity(state.hole_cards, state.board, preempt=preempt)
        if not exact.preempted:
            return exact, True
        if exact.samples >= config.min_equity_samples:
            return exact, False
        raise HeuristicAborted(f"river enumeration stopped after {exact.samples} holdings")

    estimate = estimate_equity(
        state.hole_cards,
        state.board,
        num_opponents=opponents,
        sample_count=config.equity_samples,
        preempt=preempt,
        rng=rng,
    )
    if estimate.preempted and estimate.samples < config.min_equity_samples:
        raise HeuristicAborted(f"equity sampling stopped after {estimate.samples} samples")
    return estimate, False


def postflop_policy(
    state: GameState,
    config: DecisionConfig,
    preempt: Callable[[], bool] | None = None,
    rng: random.Random | None = None,
) -> tuple[dict[ActionType, ActionStat], bool]:
    """
    Heuristic frequencies for a postflop spot.

    Args:
        state: Current game state (postflop, hole cards known)
        config: Decision snapshot (bet-size sets, sample counts)
        preempt: Cooperative cancellation callback
        rng: Random source for equity sampling

    Returns:
        (action stats, exact) where exact is True when equity came from
        full enumeration rather than sampling.

    Raises:
        HeuristicAborted: preempted before enough equity samples
    """
    rng = rng or random.Random()
    estimate, exact = _hand_equity(state, config, preempt, rng)
    equity = estimate.equity

    texture = analyze_board(state.board)
    drawing = has_flush_draw(state.hole_cards, state.board) or has_straight_draw(state.hole_cards, state.board)
    multiplier = IN_POSITION if state.is_in_position else OUT_OF_POSITION

    # Deep stacks widen the size abstraction before frequencies are computed
    sizes = config.size_set(state.street, state.effective_stack_bb)
    deep = state.effective_stack_bb > config.deep_stack_threshold_bb
    preferred = _nearest(PREFERRED_SIZE[texture.texture], sizes)
    value_size = max(sizes) if deep and equity >= NUTTED_EQUITY else preferred

    pot_bb = state.pot_bb
    stack_behind_bb = state.hero.stack / state.big_blind
    spr = stack_behind_bb / pot_bb if pot_bb > 0 else float("inf")

    freq: dict[ActionType, float] = {}
    size_for: dict[ActionType, float] = {}
    ev: dict[ActionType, float] = {}

    if state.to_call > 0:
        to_call_bb = state.to_call / state.big_blind
        pot_odds = state.pot_odds
        call_ev = equity * (pot_bb + to_call_bb) - to_call_bb
        if equity >= RAISE_EQUITY:
            raise_freq = min(0.9, 0.6 * multiplier)
            freq = {ActionType.RAISE: raise_freq, ActionType.CALL: 1.0 - raise_freq}
            size_for[ActionType.RAISE] = value_size
        elif equity >= pot_odds + 0.05:
            freq = {ActionType.CALL: 0.85, ActionType.RAISE: 0.05 * multiplier, ActionType.FOLD: 0.10}
            size_for[ActionType.RAISE] = preferred
        elif drawing and equity >= pot_odds:
            freq = {ActionType.CALL: 0.8, ActionType.FOLD: 0.2}
        elif equity >= pot_odds * 0.8:
            freq = {ActionType.CALL: 0.25, ActionType.FOLD: 0.75}
        else:
            freq = {ActionType.FOLD: 1.0}
        ev = {ActionType.CALL: round(call_ev, 3), ActionType.FOLD: 0.0}
    else:
        if equity >= VALUE_EQUITY:
            bet = 0.85
        elif drawing:
            bet = 0.45
        elif equity < BLUFF_EQUITY:
            bet = 0.15 if state.is_in_position else 0.05
        else:
            bet = 0.25

        if state.street == Street.FLOP and _is_cbet_spot(state):
            cbet = CBET_FREQUENCY[texture.texture]
            bet = max(bet, cbet) if equity >= 0.5 else (bet + cbet) / 2

        bet = min(1.0, bet * multiplier)
        freq = {ActionType.BET: bet, ActionType.CHECK: 1.0 - bet}
        size_for[ActionType.BET] = value_size if equity >= VALUE_EQUITY else preferred
        ev = {ActionType.CHECK: round(equity * pot_bb, 3)}

    aggressive = ActionType.RAISE if state.to_call > 0 else ActionType.BET
    if aggressive in freq:
        bet_bb = size_for[aggressive] * pot_bb
        ev[aggressive] = round(equity * (pot_bb + 2 * bet_bb) - bet_bb, 3)
        if spr <= SHOVE_SPR and equity >= VALUE_EQUITY:
            freq[ActionType.ALL_IN] = freq.pop(aggressive)
            ev[ActionType.ALL_IN] = ev.pop(aggressive)
            size_for.pop(aggressive)

    logger.debug(
        f"Heuristic {state.street.value}: equity={equity:.3f} ({estimate.samples} samples), "
        f"texture={texture.texture.value}, ip={state.is_in_position}, spr={spr:.2f}"
    )

    total = sum(freq.values())
    stats = {
        a: ActionStat(frequency=p / total, ev=ev.get(a, 0.0), size=size_for.get(a))
        for a, p in freq.items()
        if p > 0
    }
    return stats, exact


def _is_cbet_spot(state: GameState) -> bool:
    """Hero raised last preflop and nobody has bet the flop yet."""
    if preflop_aggressor(state) != state.position:
        return False
    return not any(
        h.street == Street.FLOP and h.action in AGGRESSIVE_ACTIONS for h in state.action_history
    )
