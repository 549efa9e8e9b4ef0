"""
Reasoner personas and the game-state prompt.

Every persona answers with the same JSON contract (AgentRecommendation),
so the coordinator can validate and aggregate them uniformly.
"""

from decision_core.domain.game.models import GameState, Street

# =============================================================================
# Response Format (Shared)
# =============================================================================

RESPONSE_FORMAT = """
## Response Format (JSON only, no prose around it)
{
  "action_type": "fold|check|call|bet|raise|all_in",
  "sizing": {"pot_fraction": 0.75} or {"bb_multiple": 3} or {"absolute": 150} or null,
  "confidence": 0.0-1.0,
  "rationale": "One or two sentences"
}

action_type MUST be one of the Legal Actions listed in the state.
Use sizing only for bet/raise; null for fold/check/call/all_in.
"""

# =============================================================================
# Personas
# =============================================================================

GTO_ANALYST_PROMPT = """You are a GTO poker analyst. Analyze from a pure math/theory perspective.

Use hand_equity, pot_odds and board_texture first, then weigh position and stack-to-pot ratio.
Recommend what a balanced, unexploitable strategy plays most often here.
""" + RESPONSE_FORMAT

EXPLOIT_ANALYST_PROMPT = """You are a poker exploitation specialist at a 6-max cash table.

Assume a typical small-stakes population: too many calls preflop, too few bluffs
on the river, over-folding to large turn bets. Deviate from balanced play only
where that population tendency clearly gains expected value, and lower your
confidence when the spot is close.
""" + RESPONSE_FORMAT

POT_ODDS_ANALYST_PROMPT = """You are a disciplined pot-odds player.

Compare your hand's equity (hand_equity) with the price you are offered
(pot_odds). Continue when equity beats the price, bet for value when
you are ahead of most calling hands, and fold otherwise. Do not bluff.
""" + RESPONSE_FORMAT

PERSONAS: dict[str, str] = {
    "gto_analyst": GTO_ANALYST_PROMPT,
    "exploit_analyst": EXPLOIT_ANALYST_PROMPT,
    "pot_odds_analyst": POT_ODDS_ANALYST_PROMPT,
}


def build_state_prompt(state: GameState) -> str:
    """Describe the decision point in poker-client hand-history format."""
    hero = state.hero
    lines = [f"=== HAND #{state.hand_id} ==="]

    for seat in state.seats:
        markers = [seat.position]
        if seat.seat == state.hero_seat:
            markers.append("Hero")
        status = "" if seat.is_active else " [folded]"
        lines.append(f"Seat {seat.seat}: {seat.name} ({seat.stack:.0f}) ({', '.join(markers)}){status}")

    lines.append("")
    lines.append(f"Blinds {state.small_blind:g}/{state.big_blind:g}")
    lines.append(f"  Dealt to {hero.name} [{state.get_hole_cards_str()}]")

    current_street = None
    for entry in state.action_history:
        if entry.street != current_street:
            current_street = entry.street
            lines.append("")
            lines.append(_street_header(entry.street, state))
        amount = f" {entry.amount_bb:g}bb" if entry.amount_bb else ""
        lines.append(f"  {entry.position} {entry.action.value}{amount}")

    if current_street != state.street:
        lines.append("")
        lines.append(_street_header(state.street, state))

    lines.append("")
    lines.append("=== YOUR TURN ===")
    lines.append(f"Position: {state.position} ({'in' if state.is_in_position else 'out of'} position)")
    lines.append(f"Pot: {state.pot:.0f} | To Call: {state.to_call:.0f}")
    lines.append(f"Your Stack: {hero.stack:.0f} | Effective: {state.effective_stack_bb:.0f}bb")
    lines.append(f"Legal Actions: {[a.value for a in state.legal_actions]}")
    if state.min_raise > 0:
        lines.append(f"Min Raise: {state.min_raise:.0f} | Max Raise: {state.max_raise:.0f}")
    return "\n".join(lines)


def _street_header(street: Street, state: GameState) -> str:
    board = [str(c) for c in state.board]
    if street == Street.PREFLOP:
        return "*** PREFLOP ***"
    if street == Street.FLOP:
        return f"*** FLOP *** [{' '.join(board[:3])}]"
    if street == Street.TURN:
        turn = board[3] if len(board) >= 4 else "?"
        return f"*** TURN *** [{' '.join(board[:3])}][{turn}]"
    river = board[4] if len(board) >= 5 else "?"
    return f"*** RIVER *** [{' '.join(board[:4])}][{river}]"
