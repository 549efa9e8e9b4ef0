"""
Function tools available to the reasoners (OpenAI Agents SDK).

The tools reuse the solver's own equity and board-texture code, so a
reasoner and the GTO heuristics reason from the same numbers. Each tool
is a plain function (tested directly) wrapped with `function_tool`.
"""

from agents import function_tool

from decision_core.domain.game.board import CBET_FREQUENCY, PREFERRED_SIZE, analyze_board, has_flush_draw, has_straight_draw
from decision_core.domain.game.equity import estimate_equity
from decision_core.domain.game.models import parse_cards
from decision_core.logging_config import get_logger

logger = get_logger(__name__)

TOOL_EQUITY_SAMPLES = 300


def pot_odds(pot_size: float, amount_to_call: float) -> str:
    """
    Required equity to call profitably.

    Args:
        pot_size: Current pot in chips (before calling)
        amount_to_call: Chips needed to continue

    Returns:
        Break-even equity as text
    """
    if amount_to_call <= 0:
        return "Nothing to call: checking is free."
    required = amount_to_call / (pot_size + amount_to_call) * 100
    return f"Pot odds: {required:.1f}% equity needed to call {amount_to_call:g} into {pot_size:g}"


def hand_equity(hole_cards: str, board: str = "", num_opponents: int = 1) -> str:
    """
    Monte Carlo equity of the hero's hand against random holdings.

    Args:
        hole_cards: Hero's cards, e.g. "AsKh"
        board: Community cards, e.g. "Js7s2c" ("" preflop)
        num_opponents: Opponents still in the hand (1-4)

    Returns:
        Equity as text, plus draw flags postflop
    """
    try:
        hole = parse_cards(hole_cards)
        community = parse_cards(board)
    except ValueError as e:
        logger.error(f"Equity tool got bad cards: {e}")
        return f"Could not read cards '{hole_cards}' / '{board}'. Use the format 'AsKh' and 'Js7s2c'."

    opponents = max(1, min(num_opponents, 4))
    estimate = estimate_equity(hole, community, num_opponents=opponents, sample_count=TOOL_EQUITY_SAMPLES)
    where = f"on {board}" if board else "preflop"
    text = f"Equity: {estimate.equity * 100:.1f}% ({hole_cards} {where} vs {opponents} opponent(s))"

    draws = []
    if community and has_flush_draw(hole, community):
        draws.append("flush draw")
    if community and has_straight_draw(hole, community):
        draws.append("straight draw")
    if draws:
        text += f"; draws: {', '.join(draws)}"
    return text


def board_texture(board: str) -> str:
    """
    Texture class of a board with the baseline c-bet frequency and size.

    Args:
        board: Community cards, e.g. "Kc7d2h"

    Returns:
        Texture summary as text
    """
    try:
        cards = parse_cards(board)
    except ValueError:
        return f"Could not read board '{board}'."
    if not cards:
        return "No board yet (preflop)."

    texture = analyze_board(cards)
    cls = texture.texture
    return (
        f"Board {board}: {cls.value}"
        f" (paired={texture.is_paired}, connected={texture.is_connected}, max suit={texture.max_suit_count});"
        f" baseline c-bet {CBET_FREQUENCY[cls] * 100:.0f}% at {PREFERRED_SIZE[cls]:.2f} pot"
    )


REASONER_TOOLS = [function_tool(pot_odds), function_tool(hand_equity), function_tool(board_texture)]
