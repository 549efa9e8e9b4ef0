"""Game domain - immutable table snapshots, board texture and equity."""
from decision_core.domain.game.board import BoardTexture, Texture, analyze_board
from decision_core.domain.game.equity import EquityEstimate, estimate_equity
from decision_core.domain.game.models import (
    ActionType,
    Card,
    GameState,
    HistoryEntry,
    SeatState,
    Street,
    ordered_legal_actions,
    safe_action,
)

__all__ = [
    "ActionType",
    "BoardTexture",
    "Card",
    "EquityEstimate",
    "GameState",
    "HistoryEntry",
    "SeatState",
    "Street",
    "Texture",
    "analyze_board",
    "estimate_equity",
    "ordered_legal_actions",
    "safe_action",
]
