"""
GTO Solver - baseline action frequencies for a game state.

Lookup order:
1. exact cache hit on the state fingerprint
2. nearest stack/pot bucket with the same coarse key
3. preflop: the imported range table
4. postflop: the heuristic policy (exact enumeration on heads-up rivers)

The solver is synchronous and CPU-bound; callers run it in a worker
thread. It stops cooperatively when its budget or the caller's preempt
callback says so, and then returns the best cached/default policy.
"""
import random
import time
from typing import Callable

from decision_core.config import DecisionConfig
from decision_core.domain.game.models import GameState, Street
from decision_core.domain.solver.cache import SolutionCache
from decision_core.domain.solver.fingerprint import StateFingerprint, fingerprint, hand_class
from decision_core.domain.solver.heuristics import HeuristicAborted, postflop_policy
from decision_core.domain.solver.models import GTOSolution, SolutionSource, default_policy
from decision_core.domain.solver.preflop_table import PreflopRangeTable
from decision_core.domain.timing.budget import Clock
from decision_core.exceptions import SolverError
from decision_core.logging_config import get_logger

logger = get_logger(__name__)

# Bucket distance accepted when falling back after an abort
ABORT_MAX_DISTANCE = 64


class GTOSolver:
    """Cache-first solver with a heuristic postflop path."""

    def __init__(
        self,
        cache: SolutionCache | None = None,
        table: PreflopRangeTable | None = None,
        preload: bool = True,
        clock: Clock = time.perf_counter,
    ):
        self.cache = cache or SolutionCache()
        self.table = table or PreflopRangeTable.generate()
        self._clock = clock
        if preload and len(self.cache) == 0:
            self.cache.preload(self.table)

    def solve(
        self,
        state: GameState,
        budget_ms: float,
        config: DecisionConfig | None = None,
        preempt: Callable[[], bool] | None = None,
        rng: random.Random | None = None,
    ) -> GTOSolution:
        """
        Solve a state within budget_ms.

        Args:
            state: Game state to solve
            budget_ms: Time allowed for this call
            config: Decision snapshot (defaults apply when None)
            preempt: Extra cancellation callback (e.g. the tracker's should_preempt)
            rng: Random source for equity sampling

        Returns:
            GTOSolution restricted to the state's legal actions

        Raises:
            SolverError: the state cannot be solved (e.g. unreadable hole cards)
        """
        config = config or DecisionConfig()
        started = self._clock()
        deadline = started + budget_ms / 1000.0

        def should_stop() -> bool:
            return self._clock() >= deadline or (preempt is not None and preempt())

        fp = fingerprint(state)
        cached = self.cache.get(fp)
        if cached is None:
            cached = self.cache.nearest(fp, config.fuzzy_max_distance)
        if cached is not None:
            return self._finish(state, cached, SolutionSource.CACHE, started)

        if should_stop():
            return self._best_available(state, fp, started, "budget exhausted before solving")

        if state.street == Street.PREFLOP:
            solution = self._solve_preflop(state, fp)
            if solution is None:
                return self._best_available(state, fp, started, f"no preflop table entry for {fp}")
            source = SolutionSource.CACHE
        else:
            if len(state.hole_cards) != 2:
                return self._best_available(state, fp, started, "hole cards unknown")
            try:
                actions, exact = postflop_policy(state, config, preempt=should_stop, rng=rng)
            except HeuristicAborted as e:
                return self._best_available(state, fp, started, str(e))
            except ValueError as e:
                raise SolverError("heuristic_failed", f"Heuristic failed for hand {state.hand_id}: {e}") from e
            source = SolutionSource.SUBGAME if exact else SolutionSource.HEURISTIC
            solution = GTOSolution(actions=actions, source=source, fingerprint=str(fp))

        self.cache.put(fp, solution)
        return self._finish(state, solution, source, started)

    def _solve_preflop(self, state: GameState, fp: StateFingerprint) -> GTOSolution | None:
        actions = self.table.lookup(fp.position, fp.history, state.effective_stack_bb, hand_class(state.hole_cards))
        if actions is None:
            return None
        return GTOSolution(actions=dict(actions), source=SolutionSource.CACHE, fingerprint=str(fp))

    def _best_available(self, state: GameState, fp: StateFingerprint, started: float, reason: str) -> GTOSolution:
        """Nearest cached policy at any distance, else check/fold."""
        fallback = self.cache.nearest(fp, ABORT_MAX_DISTANCE, count=False) or default_policy(state)
        logger.warning(f"Solver aborted for hand {state.hand_id} ({reason}); using cached/default policy")
        return self._finish(state, fallback, SolutionSource.CACHE, started)

    def _finish(
        self, state: GameState, solution: GTOSolution, source: SolutionSource, started: float
    ) -> GTOSolution:
        elapsed_ms = (self._clock() - started) * 1000.0
        return solution.restricted_to(state).with_source(source, elapsed_ms)
