"""
Time Budget Tracker - deadline accounting for one decision.

A fixed total (2000ms by default) is split into per-component sub-budgets
by a ratio table. Every component's clock reads a monotonic high-resolution
timer captured at allocation time; wall-clock time is never used for
deadline math. Components poll `should_preempt()` instead of being
interrupted.
"""
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from decision_core.exceptions import BudgetExceededError
from decision_core.logging_config import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]  # seconds, monotonic


class Component(str, Enum):
    """Pipeline stages that receive a slice of the decision budget."""

    PERCEPTION = "perception"
    GTO = "gto"
    AGENTS = "agents"
    STRATEGY = "strategy"
    RISK = "risk"
    EXECUTOR = "executor"
    BUFFER = "buffer"


DEFAULT_RATIOS: dict[Component, float] = {
    Component.PERCEPTION: 0.15,
    Component.GTO: 0.25,
    Component.AGENTS: 0.35,
    Component.STRATEGY: 0.08,
    Component.RISK: 0.02,
    Component.EXECUTOR: 0.10,
    Component.BUFFER: 0.05,
}

# Components whose reserve is never handed to another stage
PROTECTED = (Component.STRATEGY, Component.RISK)


@dataclass
class BudgetAllocation:
    """
    Per-decision millisecond budgets and the clock marks for each component.

    Only the tracker mutates an allocation; it is discarded once the
    decision completes.
    """

    total_ms: float
    budgets: dict[Component, float]
    origin: float  # monotonic seconds at allocation time
    clock: Clock
    reserves: dict[Component, float] = field(default_factory=dict)
    _starts: dict[Component, float] = field(default_factory=dict)
    _stops: dict[Component, float] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def start(self, component: Component) -> None:
        """Mark the moment a component's clock starts running."""
        with self._lock:
            self._starts.setdefault(component, self.clock())

    def stop(self, component: Component) -> float:
        """Stop a component's clock; returns its elapsed milliseconds."""
        with self._lock:
            now = self.clock()
            self._starts.setdefault(component, now)
            self._stops.setdefault(component, now)
        return self.elapsed(component)

    def elapsed(self, component: Component) -> float:
        """Milliseconds consumed by a component (0 if it never started)."""
        start = self._starts.get(component)
        if start is None:
            return 0.0
        end = self._stops.get(component)
        if end is None:
            end = self.clock()
        return (end - start) * 1000.0

    def remaining(self, component: Component) -> float:
        """Milliseconds left in a component's sub-budget (never negative)."""
        return max(0.0, self.budgets.get(component, 0.0) - self.elapsed(component))

    def should_preempt(self, component: Component) -> bool:
        """True once the component has no time left."""
        return self.remaining(component) <= 0.0

    def total_elapsed(self) -> float:
        """Milliseconds since allocation."""
        return (self.clock() - self.origin) * 1000.0

    def total_remaining(self) -> float:
        return max(0.0, self.total_ms - self.total_elapsed())

    def check_total(self, margin_ms: float = 0.0) -> None:
        """Raise BudgetExceededError when the overall deadline is about to be breached."""
        if self.total_remaining() <= margin_ms:
            raise BudgetExceededError(
                f"Decision deadline reached ({self.total_elapsed():.1f}ms of {self.total_ms:.0f}ms)"
            )

    def timings(self) -> dict[str, float]:
        """Elapsed milliseconds per component that ran."""
        return {c.value: round(self.elapsed(c), 3) for c in Component if c in self._starts}


class TimeBudgetTracker:
    """
    Process-wide deadline accountant.

    Hands out one BudgetAllocation per decision and arbitrates
    reallocation of overruns between components.
    """

    def __init__(
        self,
        ratios: dict[Component, float] | None = None,
        total_ms: float = 2000.0,
        buffer_component: Component = Component.BUFFER,
        reserves: dict[Component, float] | None = None,
        clock: Clock = time.perf_counter,
    ):
        self._ratios = dict(ratios or DEFAULT_RATIOS)
        total_ratio = sum(self._ratios.values())
        if abs(total_ratio - 1.0) > 1e-6:
            raise ValueError(f"Budget ratios must sum to 1.0, got {total_ratio:.4f}")
        if buffer_component in PROTECTED:
            raise ValueError(f"{buffer_component.value} cannot donate time")
        self._total_ms = total_ms
        self._buffer = buffer_component
        self._reserves = dict(reserves or {Component.STRATEGY: 50.0, Component.RISK: 10.0})
        self._clock = clock

    @property
    def clock(self) -> Clock:
        return self._clock

    def allocate(
        self,
        total_ms: float | None = None,
        perception_consumed_ms: float | None = None,
    ) -> BudgetAllocation:
        """
        Split a total budget into named sub-budgets.

        Args:
            total_ms: Total decision budget (defaults to the tracker's total)
            perception_consumed_ms: Time the parser already spent; when given,
                perception is charged exactly that and the remaining stages
                share what is left in proportion to their ratios.

        Returns:
            A fresh BudgetAllocation whose clock starts now
        """
        total = self._total_ms if total_ms is None else total_ms
        if perception_consumed_ms is None:
            budgets = {c: total * r for c, r in self._ratios.items()}
        else:
            consumed = min(max(0.0, perception_consumed_ms), total)
            rest = total - consumed
            others = {c: r for c, r in self._ratios.items() if c != Component.PERCEPTION}
            share = sum(others.values()) or 1.0
            budgets = {c: rest * r / share for c, r in others.items()}
            budgets[Component.PERCEPTION] = consumed

        now = self._clock()
        # Perception already ran before the core was invoked; it counts
        # against the total, so the decision clock starts that much earlier.
        consumed_s = budgets[Component.PERCEPTION] / 1000.0 if perception_consumed_ms is not None else 0.0
        allocation = BudgetAllocation(
            total_ms=total,
            budgets=budgets,
            origin=now - consumed_s,
            clock=self._clock,
            reserves=dict(self._reserves),
        )
        if perception_consumed_ms is not None:
            allocation._starts[Component.PERCEPTION] = now - consumed_s
            allocation._stops[Component.PERCEPTION] = now
        logger.debug(
            f"Allocated {total:.0f}ms: "
            f"{ {c.value: round(ms, 1) for c, ms in budgets.items()} }"
        )
        return allocation

    def reallocate(
        self,
        allocation: BudgetAllocation,
        component: Component,
        overrun_ms: float,
    ) -> float:
        """
        Grant an overrunning component extra time out of the buffer.

        The buffer is drained first; the strategy and risk stages only ever
        give up time above their minimum reserve.

        Returns:
            Milliseconds actually granted (may be less than requested)
        """
        if overrun_ms <= 0:
            return 0.0

        with allocation._lock:
            needed = overrun_ms
            granted = 0.0
            donors = [self._buffer, *PROTECTED]
            for donor in donors:
                if needed <= 0 or donor == component:
                    continue
                floor = allocation.reserves.get(donor, 0.0) if donor in PROTECTED else 0.0
                spare = max(0.0, allocation.budgets.get(donor, 0.0) - floor)
                take = min(spare, needed)
                if take > 0:
                    allocation.budgets[donor] -= take
                    granted += take
                    needed -= take
            allocation.budgets[component] = allocation.budgets.get(component, 0.0) + granted

        if granted < overrun_ms:
            logger.warning(
                f"Reallocation for {component.value} short by {overrun_ms - granted:.1f}ms"
            )
        return granted
