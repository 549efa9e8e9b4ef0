"""Timing domain - per-decision deadline accounting."""
from decision_core.domain.timing.budget import (
    DEFAULT_RATIOS,
    BudgetAllocation,
    Component,
    TimeBudgetTracker,
)

__all__ = ["DEFAULT_RATIOS", "BudgetAllocation", "Component", "TimeBudgetTracker"]
