"""Solver domain - fingerprints, solution cache, preflop table and heuristics."""
from decision_core.domain.solver.cache import SolutionCache
from decision_core.domain.solver.fingerprint import StateFingerprint, fingerprint
from decision_core.domain.solver.gto_solver import GTOSolver
from decision_core.domain.solver.models import ActionStat, GTOSolution, SolutionSource
from decision_core.domain.solver.preflop_table import PreflopRangeTable

__all__ = [
    "ActionStat",
    "GTOSolution",
    "GTOSolver",
    "PreflopRangeTable",
    "SolutionCache",
    "SolutionSource",
    "StateFingerprint",
    "fingerprint",
]
