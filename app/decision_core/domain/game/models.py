"""
Game models - Immutable snapshot of the table handed over by the parser.

The decision core never mutates a GameState; everything derived from it
(fingerprints, solutions, decisions) is computed from this snapshot.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any

from decision_core.exceptions import GameStateError


class Street(str, Enum):
    """Current betting round."""

    PREFLOP = "preflop"
    FLOP = "flop"
    TURN = "turn"
    RIVER = "river"


class ActionType(str, Enum):
    """Legal poker actions, in canonical enumeration order."""

    FOLD = "fold"
    CHECK = "check"
    CALL = "call"
    BET = "bet"
    RAISE = "raise"
    ALL_IN = "all_in"


AGGRESSIVE_ACTIONS = (ActionType.BET, ActionType.RAISE, ActionType.ALL_IN)

# Seat-relative labels in preflop acting order (6-max).
PREFLOP_ORDER = ("UTG", "HJ", "CO", "BTN", "SB", "BB")
# Postflop acting order: the last label acts last (in position).
POSTFLOP_ORDER = ("SB", "BB", "UTG", "HJ", "CO", "BTN")

POSITION_ALIASES = {
    "EP": "UTG",
    "UTG+1": "UTG",
    "UTG1": "UTG",
    "MP": "HJ",
    "LJ": "HJ",
    "BU": "BTN",
    "D": "BTN",
}

RANKS = "23456789TJQKA"
SUITS = "cdhs"


def normalize_position(label: str) -> str:
    """Map parser position labels onto the 6-max label set."""
    upper = label.strip().upper()
    upper = POSITION_ALIASES.get(upper, upper)
    if upper not in PREFLOP_ORDER:
        # Unknown labels are treated as the tightest seat
        return "UTG"
    return upper


@dataclass(frozen=True)
class Card:
    """Poker card representation."""

    rank: str  # '2'-'9', 'T', 'J', 'Q', 'K', 'A'
    suit: str  # 'h', 'd', 'c', 's'

    def __str__(self) -> str:
        return f"{self.rank}{self.suit}"

    @property
    def value(self) -> int:
        """Numeric rank, 2..14."""
        return RANKS.index(self.rank) + 2

    @classmethod
    def from_string(cls, s: str) -> "Card":
        """Create a Card from a string like 'Ah' or 'Tc'."""
        if len(s) != 2 or s[0].upper() not in RANKS or s[1].lower() not in SUITS:
            raise ValueError(f"Invalid card string: {s}")
        return cls(rank=s[0].upper(), suit=s[1].lower())


def parse_cards(text: str) -> tuple[Card, ...]:
    """Parse 'AsKh' or 'As Kh' into cards."""
    compact = text.replace(" ", "")
    if len(compact) % 2:
        raise ValueError(f"Invalid card list: {text}")
    return tuple(Card.from_string(compact[i : i + 2]) for i in range(0, len(compact), 2))


@dataclass(frozen=True)
class SeatState:
    """State of a single seat in the hand."""

    seat: int
    name: str
    position: str  # seat-relative label, e.g. "BTN"
    stack: float
    is_active: bool = True  # still contesting the pot
    current_bet: float = 0.0


@dataclass(frozen=True)
class HistoryEntry:
    """One discretized action from the hand so far."""

    street: Street
    position: str
    action: ActionType
    amount_bb: float | None = None


@dataclass(frozen=True)
class GameState:
    """
    Immutable snapshot of the table at a decision point.
    Produced by the external parser; never mutated by the decision core.
    """

    hand_id: str
    street: Street
    hero_seat: int
    seats: tuple[SeatState, ...]
    pot: float
    small_blind: float
    big_blind: float
    hole_cards: tuple[Card, ...]
    board: tuple[Card, ...] = ()
    action_history: tuple[HistoryEntry, ...] = ()
    legal_actions: tuple[ActionType, ...] = ()

    # Amount state
    current_bet: float = 0.0  # highest bet on this street (raise-to level)
    min_raise: float = 0.0  # minimum legal raise-to amount
    max_raise: float = 0.0  # maximum legal raise-to amount (all-in)

    # Index of this decision within the hand (0 for the hero's first action)
    decision_index: int = 0

    def __post_init__(self) -> None:
        if not self.legal_actions:
            raise GameStateError("no_legal_actions", f"Hand {self.hand_id} has no legal actions")
        if self.big_blind <= 0:
            raise GameStateError("bad_blinds", f"Hand {self.hand_id} has big blind {self.big_blind}")
        if not any(s.seat == self.hero_seat for s in self.seats):
            raise GameStateError("bad_hero", f"Hero seat {self.hero_seat} not at the table")

    @property
    def hero(self) -> SeatState:
        """Get the hero's seat."""
        return next(s for s in self.seats if s.seat == self.hero_seat)

    @property
    def opponents(self) -> list[SeatState]:
        """Get active opponents."""
        return [s for s in self.seats if s.seat != self.hero_seat and s.is_active]

    @property
    def position(self) -> str:
        """Hero's normalized position label."""
        return normalize_position(self.hero.position)

    @property
    def to_call(self) -> float:
        """Chips the hero must add to continue."""
        return max(0.0, self.current_bet - self.hero.current_bet)

    @property
    def pot_odds(self) -> float:
        """Required equity to call, as a fraction (0 when nothing to call)."""
        if self.to_call <= 0:
            return 0.0
        return self.to_call / (self.pot + self.to_call)

    @property
    def effective_stack(self) -> float:
        """Min of the hero's stack and the deepest contesting opponent (chips behind + committed)."""
        hero_total = self.hero.stack + self.hero.current_bet
        opponents = self.opponents
        if not opponents:
            return hero_total
        deepest = max(s.stack + s.current_bet for s in opponents)
        return min(hero_total, deepest)

    @property
    def effective_stack_bb(self) -> float:
        return self.effective_stack / self.big_blind

    @property
    def pot_bb(self) -> float:
        return self.pot / self.big_blind

    @property
    def is_in_position(self) -> bool:
        """True when the hero acts last postflop among contesting players."""
        order = {label: i for i, label in enumerate(POSTFLOP_ORDER)}
        hero_idx = order[self.position]
        return all(order[normalize_position(s.position)] < hero_idx for s in self.opponents)

    def is_legal(self, action: ActionType) -> bool:
        return action in self.legal_actions

    def get_hole_cards_str(self) -> str:
        """Get hero's hole cards as string."""
        if not self.hole_cards:
            return "??"
        return "".join(str(c) for c in self.hole_cards)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "hand_id": self.hand_id,
            "street": self.street.value,
            "hero_seat": self.hero_seat,
            "seats": [
                {
                    "seat": s.seat,
                    "name": s.name,
                    "position": s.position,
                    "stack": s.stack,
                    "is_active": s.is_active,
                    "current_bet": s.current_bet,
                }
                for s in self.seats
            ],
            "pot": self.pot,
            "small_blind": self.small_blind,
            "big_blind": self.big_blind,
            "hole_cards": "".join(str(c) for c in self.hole_cards),
            "board": "".join(str(c) for c in self.board),
            "action_history": [
                {
                    "street": h.street.value,
                    "position": h.position,
                    "action": h.action.value,
                    "amount_bb": h.amount_bb,
                }
                for h in self.action_history
            ],
            "legal_actions": [a.value for a in self.legal_actions],
            "current_bet": self.current_bet,
            "min_raise": self.min_raise,
            "max_raise": self.max_raise,
            "decision_index": self.decision_index,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameState":
        """Build a GameState from a parser/replay JSON payload."""
        try:
            return cls(
                hand_id=str(data["hand_id"]),
                street=Street(data["street"]),
                hero_seat=int(data["hero_seat"]),
                seats=tuple(
                    SeatState(
                        seat=int(s["seat"]),
                        name=s.get("name", f"seat{s['seat']}"),
                        position=s["position"],
                        stack=float(s["stack"]),
                        is_active=bool(s.get("is_active", True)),
                        current_bet=float(s.get("current_bet", 0.0)),
                    )
                    for s in data["seats"]
                ),
                pot=float(data["pot"]),
                small_blind=float(data["small_blind"]),
                big_blind=float(data["big_blind"]),
                hole_cards=parse_cards(data.get("hole_cards", "")),
                board=parse_cards(data.get("board", "")),
                action_history=tuple(
                    HistoryEntry(
                        street=Street(h["street"]),
                        position=h["position"],
                        action=ActionType(h["action"]),
                        amount_bb=h.get("amount_bb"),
                    )
                    for h in data.get("action_history", [])
                ),
                legal_actions=tuple(ActionType(a) for a in data["legal_actions"]),
                current_bet=float(data.get("current_bet", 0.0)),
                min_raise=float(data.get("min_raise", 0.0)),
                max_raise=float(data.get("max_raise", 0.0)),
                decision_index=int(data.get("decision_index", 0)),
            )
        except (KeyError, ValueError, TypeError) as e:
            raise GameStateError("malformed_state", f"Cannot parse game state: {e}") from e


def ordered_legal_actions(state: GameState) -> list[ActionType]:
    """Legal actions in canonical enumeration order (used for every tie-break)."""
    return [a for a in ActionType if a in state.legal_actions]


def safe_action(state: GameState) -> ActionType:
    """Conservative check-or-fold; first legal action if neither is offered."""
    if ActionType.CHECK in state.legal_actions:
        return ActionType.CHECK
    if ActionType.FOLD in state.legal_actions:
        return ActionType.FOLD
    return ordered_legal_actions(state)[0]
