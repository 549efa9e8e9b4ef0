"""
Pytest configuration and shared fixtures for decision-core tests.

No test touches the network: reasoners are scripted fakes that implement
the Reasoner protocol.
"""
import asyncio
import json
import os

import pytest

from decision_core.config import DecisionConfig
from decision_core.domain.agent.reasoner import ReasonerResponse
from decision_core.domain.game.models import (
    ActionType,
    GameState,
    HistoryEntry,
    SeatState,
    Street,
    parse_cards,
)
from decision_core.domain.solver.gto_solver import GTOSolver
from decision_core.exceptions import ReasonerError
from decision_core.logging_config import setup_logging

# Configure pytest-asyncio
pytest_plugins = ["pytest_asyncio"]


def pytest_configure(config):
    """Configure pytest settings."""
    log_level = os.environ.get("LOG_LEVEL", "INFO")
    setup_logging(log_level, collect_logs=False)


# =============================================================================
# Clocks
# =============================================================================


class ManualClock:
    """Monotonic clock that only moves when told to (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000.0


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


# =============================================================================
# Game states
# =============================================================================


def make_state(
    hand_id: str = "h1",
    street: Street = Street.PREFLOP,
    hero_position: str = "BTN",
    hole_cards: str = "AsKd",
    board: str = "",
    stack_bb: float = 100.0,
    villain_stack_bb: float | None = None,
    pot_bb: float = 1.5,
    current_bet_bb: float = 1.0,
    hero_bet_bb: float = 0.0,
    legal: tuple[ActionType, ...] = (ActionType.FOLD, ActionType.CALL, ActionType.RAISE, ActionType.ALL_IN),
    history: tuple[HistoryEntry, ...] | None = None,
    min_raise_bb: float | None = None,
    max_raise_bb: float | None = None,
    decision_index: int = 0,
    big_blind: float = 2.0,
) -> GameState:
    """
    Build a heads-up-ish game state in big-blind units.

    Defaults: BTN, 100bb effective, preflop, AKo, folded to the hero.
    """
    bb = big_blind
    villain_stack_bb = stack_bb if villain_stack_bb is None else villain_stack_bb
    villain_position = "BB" if hero_position != "BB" else "BTN"
    if history is None:
        if street == Street.PREFLOP:
            history = tuple(
                HistoryEntry(Street.PREFLOP, p, ActionType.FOLD)
                for p in ("UTG", "HJ", "CO")
                if p != hero_position
            )
        else:
            history = (
                HistoryEntry(Street.PREFLOP, hero_position, ActionType.RAISE, 2.5),
                HistoryEntry(Street.PREFLOP, villain_position, ActionType.CALL),
            )
    villain_bet = current_bet_bb
    seats = (
        SeatState(1, "hero", hero_position, stack=(stack_bb - hero_bet_bb) * bb, current_bet=hero_bet_bb * bb),
        SeatState(
            2,
            "villain",
            villain_position,
            stack=(villain_stack_bb - villain_bet) * bb,
            current_bet=villain_bet * bb,
        ),
    )
    current_bet = current_bet_bb * bb
    return GameState(
        hand_id=hand_id,
        street=street,
        hero_seat=1,
        seats=seats,
        pot=pot_bb * bb,
        small_blind=bb / 2,
        big_blind=bb,
        hole_cards=parse_cards(hole_cards),
        board=parse_cards(board),
        action_history=history,
        legal_actions=legal,
        current_bet=current_bet,
        min_raise=(min_raise_bb * bb) if min_raise_bb is not None else max(2 * current_bet, bb),
        max_raise=(max_raise_bb * bb) if max_raise_bb is not None else stack_bb * bb,
        decision_index=decision_index,
    )


@pytest.fixture
def btn_ako_state() -> GameState:
    """BTN, 100bb effective, preflop, AKo, folded to the hero."""
    return make_state()


@pytest.fixture
def flop_state() -> GameState:
    """Hero c-bet spot on a dry flop, nothing to call."""
    return make_state(
        street=Street.FLOP,
        board="Kc7d2h",
        pot_bb=5.5,
        current_bet_bb=0.0,
        legal=(ActionType.CHECK, ActionType.BET, ActionType.ALL_IN),
        min_raise_bb=1.0,
        max_raise_bb=97.5,
        stack_bb=97.5,
    )


@pytest.fixture
def config() -> DecisionConfig:
    return DecisionConfig()


@pytest.fixture(scope="session")
def solver() -> GTOSolver:
    """Solver with the preloaded preflop table (generated once per run)."""
    return GTOSolver()


# =============================================================================
# Scripted reasoners
# =============================================================================


def recommendation(action: str, confidence: float = 0.8, sizing: dict | None = None, rationale: str = "") -> str:
    """JSON text a reasoner would answer with."""
    payload: dict = {"action_type": action, "confidence": confidence, "rationale": rationale}
    if sizing is not None:
        payload["sizing"] = sizing
    return json.dumps(payload)


class Sleep:
    """Script step: sleep, then answer with text."""

    def __init__(self, seconds: float, text: str = ""):
        self.seconds = seconds
        self.text = text


class ScriptedReasoner:
    """
    Fake reasoner replaying a script, one step per call.

    A step is answer text, an exception to raise, or a Sleep. The last
    step repeats once the script is exhausted.
    """

    def __init__(self, name: str, script: list, model: str = "fake-model", tokens: tuple[int, int] = (400, 100)):
        self.name = name
        self.model = model
        self.script = list(script)
        self.tokens = tokens
        self.calls = 0

    async def query(self, prompt: str) -> ReasonerResponse:
        step = self.script[min(self.calls, len(self.script) - 1)]
        self.calls += 1
        if isinstance(step, Sleep):
            await asyncio.sleep(step.seconds)
            step = step.text
        if isinstance(step, BaseException):
            raise step
        return ReasonerResponse(text=step, input_tokens=self.tokens[0], output_tokens=self.tokens[1])


def healthy_reasoners(action: str = "raise", sizing: dict | None = None) -> list[ScriptedReasoner]:
    """The three configured personas, all answering the same action."""
    return [
        ScriptedReasoner(name, [recommendation(action, 0.8, sizing)])
        for name in ("gto_analyst", "exploit_analyst", "pot_odds_analyst")
    ]


def server_error(status: int = 503) -> ReasonerError:
    return ReasonerError(f"HTTP {status}", status=status)
