"""
Tests for the GTO solver and its solution cache.

Preflop spots come from the preloaded range table; postflop spots run the
heuristic path with a seeded random source.
"""
import random

import pytest

from conftest import make_state
from decision_core.domain.game.distribution import is_normalized
from decision_core.domain.game.models import ActionType, Street
from decision_core.domain.solver.cache import SolutionCache
from decision_core.domain.solver.fingerprint import fingerprint
from decision_core.domain.solver.gto_solver import GTOSolver
from decision_core.domain.solver.models import ActionStat, GTOSolution, SolutionSource


def _flop(**overrides):
    kwargs = dict(
        street=Street.FLOP,
        board="Kc7d2h",
        pot_bb=5.5,
        current_bet_bb=0.0,
        legal=(ActionType.CHECK, ActionType.BET, ActionType.ALL_IN),
        min_raise_bb=1.0,
        max_raise_bb=97.5,
        stack_bb=97.5,
    )
    kwargs.update(overrides)
    return make_state(**kwargs)


class TestPreflop:
    """Test cache-backed preflop solving."""

    def test_btn_ako_is_cache_hit_with_raise(self, solver, btn_ako_state):
        """BTN, 100bb, AKo folded to: cached, raise frequency > 0."""
        solution = solver.solve(btn_ako_state, budget_ms=500)
        assert solution.source == SolutionSource.CACHE
        assert solution.actions[ActionType.RAISE].frequency > 0
        assert is_normalized(solution.distribution())

    def test_solution_only_contains_legal_actions(self, solver):
        state = make_state(hole_cards="7c2d", hero_position="UTG")
        solution = solver.solve(state, budget_ms=500)
        assert set(solution.actions) <= set(state.legal_actions)
        assert solution.distribution() == {ActionType.FOLD: pytest.approx(1.0)}

    def test_preflop_hit_rate_above_80_percent(self):
        solver = GTOSolver()
        hands = ["AsKd", "QhQd", "7c2d", "Ts9s", "Ad5c", "JhTd", "8c8s", "Kh4h"]
        for position in ("UTG", "HJ", "CO", "BTN", "SB"):
            for stack in (23, 48, 97, 103, 180):
                for i, hand in enumerate(hands):
                    solver.solve(make_state(hand_id=f"{position}{stack}{i}", hero_position=position,
                                            hole_cards=hand, stack_bb=stack), budget_ms=500)
        assert solver.cache.hit_rate(Street.PREFLOP) > 0.8


class TestPostflop:
    """Test the heuristic path."""

    def test_heuristic_distribution_is_normalized_and_legal(self, solver):
        state = _flop()
        solution = solver.solve(state, budget_ms=2000, rng=random.Random(7))
        assert solution.source in (SolutionSource.HEURISTIC, SolutionSource.CACHE)
        assert is_normalized(solution.distribution())
        assert set(solution.actions) <= set(state.legal_actions)
        assert all(0.0 <= s.frequency <= 1.0 for s in solution.actions.values())

    def test_strong_hand_bets_more_than_air(self):
        solver = GTOSolver(preload=False)
        strong = solver.solve(_flop(hole_cards="KsKh"), budget_ms=5000, rng=random.Random(1))
        air = solver.solve(_flop(hole_cards="4s3c", hand_id="h2"), budget_ms=5000, rng=random.Random(1))
        assert strong.actions[ActionType.BET].frequency > air.actions[ActionType.BET].frequency

    def test_bet_size_is_from_size_set(self, config):
        solution = GTOSolver(preload=False).solve(_flop(hole_cards="KsKh"), budget_ms=5000, config=config,
                                                  rng=random.Random(3))
        size = solution.implied_size(ActionType.BET)
        assert size in config.size_set(Street.FLOP, 97.5)

    def test_heads_up_river_uses_exact_enumeration(self):
        state = make_state(
            street=Street.RIVER,
            board="Kc7d2h9sQh",
            hole_cards="AhKd",
            pot_bb=20.0,
            current_bet_bb=0.0,
            legal=(ActionType.CHECK, ActionType.BET, ActionType.ALL_IN),
            stack_bb=80.0,
        )
        solution = GTOSolver(preload=False).solve(state, budget_ms=10_000)
        assert solution.source == SolutionSource.SUBGAME

    def test_facing_bet_never_checks(self):
        state = _flop(
            current_bet_bb=3.0,
            pot_bb=8.5,
            legal=(ActionType.FOLD, ActionType.CALL, ActionType.RAISE, ActionType.ALL_IN),
            min_raise_bb=6.0,
        )
        solution = GTOSolver(preload=False).solve(state, budget_ms=5000, rng=random.Random(5))
        assert ActionType.CHECK not in solution.actions
        assert is_normalized(solution.distribution())

    def test_second_solve_is_cache_hit(self):
        solver = GTOSolver(preload=False)
        state = _flop()
        first = solver.solve(state, budget_ms=5000, rng=random.Random(9))
        second = solver.solve(state, budget_ms=5000)
        assert second.source == SolutionSource.CACHE
        assert second.distribution() == pytest.approx(first.distribution())


class TestBudget:
    """Test abort behaviour."""

    def test_zero_budget_returns_cached_or_default(self):
        solver = GTOSolver(preload=False)
        solution = solver.solve(_flop(), budget_ms=0)
        assert solution.source == SolutionSource.CACHE
        assert solution.distribution() == {ActionType.CHECK: 1.0}

    def test_preempt_callback_aborts(self):
        solver = GTOSolver(preload=False)
        solution = solver.solve(_flop(), budget_ms=10_000, preempt=lambda: True)
        assert solution.source == SolutionSource.CACHE
        assert "default_policy" in solution.notes

    def test_exhausted_budget_still_uses_nearby_cached_entry(self):
        solver = GTOSolver(preload=False)
        deep = _flop(stack_bb=150.0, max_raise_bb=150.0)
        solver.solve(deep, budget_ms=5000, rng=random.Random(2))
        aborted = solver.solve(_flop(), budget_ms=0)
        assert "default_policy" not in aborted.notes
        assert aborted.source == SolutionSource.CACHE

    def test_abort_counts_one_lookup(self):
        """The fallback search after an abort does not count as another lookup."""
        solver = GTOSolver(preload=False)
        solver.solve(_flop(), budget_ms=0)

        stats = solver.cache.stats()
        assert stats["misses"]["flop"] == 1
        assert stats["fuzzy_hits"].get("flop", 0) == 0
        assert stats["hits"].get("flop", 0) == 0


class TestSolutionCache:
    """Test exact and fuzzy lookups."""

    def test_exact_and_fuzzy_hits_are_counted(self):
        cache = SolutionCache()
        stored = GTOSolution({ActionType.RAISE: ActionStat(1.0, size=2.5)}, SolutionSource.CACHE)
        cache.put(fingerprint(make_state(stack_bb=100)), stored)

        assert cache.get(fingerprint(make_state(stack_bb=100))) is stored
        miss_fp = fingerprint(make_state(stack_bb=150))
        assert cache.get(miss_fp) is None
        assert cache.nearest(miss_fp, max_distance=3) is stored
        assert cache.nearest(fingerprint(make_state(stack_bb=10)), max_distance=3) is None

        stats = cache.stats()
        assert stats["hits"]["preflop"] == 1
        assert stats["fuzzy_hits"]["preflop"] == 1
        assert stats["misses"]["preflop"] == 1
        assert cache.hit_rate(Street.PREFLOP) == pytest.approx(2 / 3)

    def test_nearest_tie_prefers_deeper_stack(self):
        cache = SolutionCache()
        shallow = GTOSolution({ActionType.FOLD: ActionStat(1.0)}, SolutionSource.CACHE)
        deep = GTOSolution({ActionType.RAISE: ActionStat(1.0)}, SolutionSource.CACHE)
        cache.put(fingerprint(make_state(stack_bb=75)), shallow)
        cache.put(fingerprint(make_state(stack_bb=150)), deep)
        assert cache.nearest(fingerprint(make_state(stack_bb=100)), max_distance=3) is deep

    def test_preload_fills_preflop_entries(self, solver):
        assert len(solver.cache) >= len(solver.table)
