"""
Tests for state fingerprinting.

Fingerprints must ignore immaterial precision (sub-bucket stack and pot
differences, card order) and change when anything strategic changes.
"""

from conftest import make_state
from decision_core.domain.game.models import ActionType, HistoryEntry, Street, parse_cards
from decision_core.domain.solver.fingerprint import (
    FINGERPRINT_VERSION,
    discretize_history,
    fingerprint,
    hand_class,
    nearest_stack_bucket,
    preflop_scenario,
)


class TestHandClass:
    """Test 169-class notation."""

    def test_offsuit(self):
        assert hand_class(parse_cards("KdAs")) == "AKo"

    def test_suited(self):
        assert hand_class(parse_cards("AhKh")) == "AKs"

    def test_pair(self):
        assert hand_class(parse_cards("7c7d")) == "77"

    def test_unknown(self):
        assert hand_class(()) == "??"


class TestBuckets:
    """Test stack bucketing."""

    def test_nearest_stack_bucket(self):
        assert nearest_stack_bucket(99.6) == 100
        assert nearest_stack_bucket(104.0) == 100
        assert nearest_stack_bucket(47.0) == 50
        assert nearest_stack_bucket(3.0) == 10


class TestFingerprintStability:
    """Same strategic situation -> same key."""

    def test_sub_bucket_stack_difference_is_ignored(self):
        s1 = make_state(stack_bb=99.6)
        s2 = make_state(stack_bb=100.4)
        assert fingerprint(s1) == fingerprint(s2)
        assert fingerprint(s1).key == fingerprint(s2).key

    def test_card_order_is_ignored(self):
        s1 = make_state(hole_cards="AsKd")
        s2 = make_state(hole_cards="KdAs")
        assert fingerprint(s1).key == fingerprint(s2).key

    def test_postflop_board_order_is_ignored(self):
        kwargs = dict(street=Street.FLOP, pot_bb=5.5, current_bet_bb=0.0, legal=(ActionType.CHECK, ActionType.BET))
        s1 = make_state(board="Kc7d2h", **kwargs)
        s2 = make_state(board="2h7dKc", **kwargs)
        assert fingerprint(s1).key == fingerprint(s2).key

    def test_hand_id_is_not_part_of_key(self):
        assert fingerprint(make_state(hand_id="a")).key == fingerprint(make_state(hand_id="b")).key

    def test_key_is_deterministic_hex(self):
        key = fingerprint(make_state()).key
        assert key == fingerprint(make_state()).key
        assert len(key) == 32
        int(key, 16)

    def test_version_is_part_of_coarse_key(self):
        fp = fingerprint(make_state())
        assert fp.version == FINGERPRINT_VERSION
        assert fp.coarse.startswith(f"{FINGERPRINT_VERSION}|")


class TestFingerprintSensitivity:
    """Different strategic situation -> different key."""

    def test_stack_bucket_change(self):
        assert fingerprint(make_state(stack_bb=100)).key != fingerprint(make_state(stack_bb=40)).key

    def test_position_change(self):
        assert fingerprint(make_state(hero_position="BTN")).key != fingerprint(make_state(hero_position="CO")).key

    def test_hand_change(self):
        assert fingerprint(make_state(hole_cards="AsKd")).key != fingerprint(make_state(hole_cards="AsKs")).key

    def test_fuzzy_neighbours_share_coarse_key(self):
        near = fingerprint(make_state(stack_bb=100))
        far = fingerprint(make_state(stack_bb=150))
        assert near.coarse == far.coarse
        assert near.distance(far) == 1


class TestHistory:
    """Test preflop scenarios and postflop history tokens."""

    def test_folded_to_hero_is_open(self):
        assert preflop_scenario(make_state()) == "open"

    def test_single_raise(self):
        history = (HistoryEntry(Street.PREFLOP, "CO", ActionType.RAISE, 2.5),)
        assert preflop_scenario(make_state(history=history)) == "vs_raise"

    def test_three_bet(self):
        history = (
            HistoryEntry(Street.PREFLOP, "CO", ActionType.RAISE, 2.5),
            HistoryEntry(Street.PREFLOP, "BB", ActionType.RAISE, 9.0),
        )
        assert preflop_scenario(make_state(history=history)) == "vs_3bet"

    def test_limp(self):
        history = (HistoryEntry(Street.PREFLOP, "CO", ActionType.CALL),)
        assert preflop_scenario(make_state(history=history)) == "limp"

    def test_postflop_history_tokens(self):
        state = make_state(
            street=Street.FLOP,
            board="Kc7d2h",
            pot_bb=5.5,
            current_bet_bb=0.0,
            legal=(ActionType.CHECK, ActionType.BET),
        )
        assert discretize_history(state) == "BTN:rc/"
