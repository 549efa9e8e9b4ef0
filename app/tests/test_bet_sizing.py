"""
Tests for bet sizing: implied size -> size-set option -> legal chip amount.

Chip amounts below assume big blind = 2 chips.
"""

import pytest

from conftest import make_state
from decision_core.config import DecisionConfig
from decision_core.domain.game.models import ActionType, Street
from decision_core.domain.strategy.sizing import nearest_option, round_to_increment, size_action


class TestNonSizedActions:
    def test_fold_and_check_have_no_amount(self, btn_ako_state, config):
        assert size_action(btn_ako_state, ActionType.FOLD, None, config).amount is None

    def test_call_is_the_current_bet(self, btn_ako_state, config):
        assert size_action(btn_ako_state, ActionType.CALL, None, config).amount == 2.0

    def test_all_in_is_max_raise(self, btn_ako_state, config):
        assert size_action(btn_ako_state, ActionType.ALL_IN, None, config).amount == 200.0


class TestPreflop:
    """Preflop sizes are raise-to multiples of the current bet."""

    def test_implied_size_snaps_to_nearest_option(self, btn_ako_state, config):
        sized = size_action(btn_ako_state, ActionType.RAISE, 2.7, config)
        assert sized.size_option == 2.5
        assert sized.amount == 5.0
        assert not sized.clamped

    def test_no_implied_size_uses_default(self, btn_ako_state, config):
        sized = size_action(btn_ako_state, ActionType.RAISE, None, config)
        assert sized.size_option == 2.5

    def test_deep_stacks_widen_the_set(self, config):
        state = make_state(stack_bb=150.0)
        sized = size_action(state, ActionType.RAISE, 4.8, config)
        assert sized.size_option == 5.0
        assert sized.amount == 10.0

    def test_below_min_raise_is_clamped(self, config):
        state = make_state(min_raise_bb=10.0)
        sized = size_action(state, ActionType.RAISE, 2.5, config)
        assert sized.clamped
        assert sized.amount == 20.0
        assert sized.size_option in config.size_set(Street.PREFLOP, state.effective_stack_bb)

    def test_skips_to_next_option_that_fits(self, config):
        # 2.0x -> 4 chips is below min_raise 5 chips; 2.5x -> 5 chips fits
        state = make_state(min_raise_bb=2.5)
        sized = size_action(state, ActionType.RAISE, 2.0, config)
        assert sized.size_option == 2.5
        assert not sized.clamped

    def test_min_raise_above_stack_goes_all_in(self, config):
        state = make_state(stack_bb=3.0, min_raise_bb=4.0, max_raise_bb=3.0)
        sized = size_action(state, ActionType.RAISE, 2.5, config)
        assert sized.amount == 6.0
        assert sized.clamped


class TestPostflop:
    """Postflop sizes are pot fractions."""

    def test_bet_is_fraction_of_pot(self, flop_state, config):
        # 0.75 * 11 chips = 8.25 -> 8
        sized = size_action(flop_state, ActionType.BET, 0.7, config)
        assert sized.size_option == 0.75
        assert sized.amount == 8.0

    def test_raise_is_fraction_of_pot_after_calling(self, config):
        state = make_state(
            street=Street.FLOP,
            board="Kc7d2h",
            pot_bb=8.5,
            current_bet_bb=3.0,
        )
        # 6 + 0.75 * (17 + 6) = 23.25 -> 23
        sized = size_action(state, ActionType.RAISE, 0.75, config)
        assert sized.amount == 23.0

    def test_chip_increment(self, flop_state):
        config = DecisionConfig(min_chip_increment=5.0)
        sized = size_action(flop_state, ActionType.BET, 0.75, config)
        assert sized.amount == 10.0


class TestHelpers:
    def test_nearest_option_tie_goes_to_smaller(self):
        assert nearest_option([0.5, 1.0], 0.75) == 0.5

    def test_round_to_increment(self):
        assert round_to_increment(7.4, 0.5) == pytest.approx(7.5)
