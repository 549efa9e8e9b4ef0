"""Tests for distribution helpers and deterministic seeding."""

import random

import pytest

from decision_core.domain.game.distribution import (
    argmax,
    blend,
    is_normalized,
    normalize,
    normalized_entropy,
    restrict,
    sample,
    total_variation,
)
from decision_core.domain.game.models import ActionType
from decision_core.domain.strategy.seeding import SEED_VERSION, derive_seed, make_rng

F, X, C, B, R, A = (
    ActionType.FOLD,
    ActionType.CHECK,
    ActionType.CALL,
    ActionType.BET,
    ActionType.RAISE,
    ActionType.ALL_IN,
)


class TestDistribution:
    """Distribution arithmetic."""

    def test_normalize(self):
        assert normalize({F: 1.0, R: 3.0}) == {F: 0.25, R: 0.75}

    def test_normalize_drops_negative_and_zero(self):
        assert normalize({F: -1.0, C: 0.0, R: 2.0}) == {R: 1.0}

    def test_normalize_empty(self):
        assert normalize({}) == {}
        assert not is_normalized({})

    def test_restrict_renormalizes(self):
        assert restrict({X: 0.5, B: 0.5}, (F, C, R)) == {}
        assert restrict({F: 0.2, X: 0.6, R: 0.2}, (F, C, R)) == {F: 0.5, R: 0.5}

    def test_blend(self):
        mixed = blend({R: 1.0}, {F: 1.0}, alpha=0.7)
        assert mixed[R] == pytest.approx(0.7)
        assert mixed[F] == pytest.approx(0.3)
        assert is_normalized(mixed)

    def test_blend_alpha_one_is_gto(self):
        gto = {F: 0.2, R: 0.8}
        assert blend(gto, {C: 1.0}, alpha=1.0) == pytest.approx(gto)

    def test_total_variation(self):
        assert total_variation({F: 1.0}, {R: 1.0}) == pytest.approx(1.0)
        assert total_variation({F: 0.5, R: 0.5}, {F: 0.5, R: 0.5}) == pytest.approx(0.0)
        assert total_variation({F: 0.6, R: 0.4}, {F: 0.5, R: 0.5}) == pytest.approx(0.1)

    def test_entropy(self):
        assert normalized_entropy({R: 1.0}, n_outcomes=4) == pytest.approx(0.0)
        assert normalized_entropy({F: 0.5, R: 0.5}) == pytest.approx(1.0)
        assert normalized_entropy({F: 0.5, R: 0.5}, n_outcomes=4) == pytest.approx(0.5)

    def test_argmax_tie_uses_canonical_order(self):
        assert argmax({R: 0.5, C: 0.5}) == C
        assert argmax({A: 0.4, B: 0.4, X: 0.2}) == B

    def test_argmax_empty_raises(self):
        with pytest.raises(ValueError):
            argmax({})

    def test_sample_ignores_insertion_order(self):
        a = sample({F: 0.3, C: 0.3, R: 0.4}, random.Random(7))
        b = sample({R: 0.4, C: 0.3, F: 0.3}, random.Random(7))
        assert a == b

    def test_sample_point_mass(self):
        assert sample({R: 1.0}, random.Random(0)) == R


class TestSeeding:
    """Seeds are reproducible from (session, hand, decision index)."""

    def test_same_inputs_same_seed(self):
        assert derive_seed("s1", "h1", 0) == derive_seed("s1", "h1", 0)

    def test_any_input_changes_seed(self):
        base = derive_seed("s1", "h1", 0)
        assert derive_seed("s2", "h1", 0) != base
        assert derive_seed("s1", "h2", 0) != base
        assert derive_seed("s1", "h1", 1) != base
        assert derive_seed("s1", "h1", 0, nonce=1) != base

    def test_seed_fits_64_bits(self):
        assert 0 <= derive_seed("s1", "h1", 0) < 2**64

    def test_unknown_version_rejected(self):
        with pytest.raises(ValueError):
            derive_seed("s1", "h1", 0, version=SEED_VERSION + 1)

    def test_streams_are_independent_and_reproducible(self):
        seed = derive_seed("s1", "h1", 0)
        assert make_rng(seed).random() == make_rng(seed).random()
        assert make_rng(seed, "select").random() != make_rng(seed, "equity").random()

    def test_same_seed_same_action_sequence(self):
        dist = {F: 0.2, C: 0.3, R: 0.5}
        seeds = [derive_seed("s1", f"h{i}", 0) for i in range(50)]
        first = [sample(dist, make_rng(s)) for s in seeds]
        second = [sample(dist, make_rng(s)) for s in seeds]
        assert first == second
        assert len(set(first)) > 1
