"""
Action-frequency distributions.

A distribution maps ActionType -> probability. Every helper here walks
actions in canonical ActionType order, so results never depend on dict
insertion order.
"""
import math
import random

from decision_core.domain.game.models import ActionType

Distribution = dict[ActionType, float]

TOLERANCE = 1e-3


def normalize(dist: Distribution) -> Distribution:
    """Clip negatives and rescale to sum 1.0. Empty or all-zero input stays empty."""
    clipped = {a: max(0.0, dist[a]) for a in ActionType if a in dist}
    total = sum(clipped.values())
    if total <= 0:
        return {}
    return {a: p / total for a, p in clipped.items() if p > 0}


def is_normalized(dist: Distribution) -> bool:
    return (
        bool(dist)
        and abs(sum(dist.values()) - 1.0) <= TOLERANCE
        and all(0.0 <= p <= 1.0 for p in dist.values())
    )


def restrict(dist: Distribution, legal: tuple[ActionType, ...] | list[ActionType]) -> Distribution:
    """Drop mass on illegal actions and renormalize."""
    return normalize({a: p for a, p in dist.items() if a in legal})


def blend(gto: Distribution, agents: Distribution, alpha: float) -> Distribution:
    """alpha * gto + (1 - alpha) * agents, per action."""
    actions = [a for a in ActionType if a in gto or a in agents]
    return normalize(
        {a: alpha * gto.get(a, 0.0) + (1.0 - alpha) * agents.get(a, 0.0) for a in actions}
    )


def total_variation(p: Distribution, q: Distribution) -> float:
    """Half the L1 distance; 0 for identical, 1 for disjoint support."""
    return 0.5 * sum(abs(p.get(a, 0.0) - q.get(a, 0.0)) for a in ActionType)


def normalized_entropy(dist: Distribution, n_outcomes: int | None = None) -> float:
    """Shannon entropy divided by log(n); 0 = one action, 1 = uniform."""
    n = n_outcomes if n_outcomes is not None else len(dist)
    if n <= 1:
        return 0.0
    h = -sum(p * math.log(p) for p in dist.values() if p > 0)
    return min(1.0, h / math.log(n))


def argmax(dist: Distribution) -> ActionType:
    """Most likely action; ties go to the earliest action in canonical order."""
    best = None
    best_p = -1.0
    for a in ActionType:
        p = dist.get(a, 0.0)
        if a in dist and p > best_p:
            best, best_p = a, p
    if best is None:
        raise ValueError("argmax of an empty distribution")
    return best


def sample(dist: Distribution, rng: random.Random) -> ActionType:
    """Inverse-CDF draw over canonical action order (one rng.random() call)."""
    if not dist:
        raise ValueError("cannot sample from an empty distribution")
    u = rng.random()
    cumulative = 0.0
    last = None
    for a in ActionType:
        p = dist.get(a, 0.0)
        if p <= 0:
            continue
        cumulative += p
        last = a
        if u < cumulative:
            return a
    return last


def to_jsonable(dist: Distribution) -> dict[str, float]:
    return {a.value: round(p, 6) for a, p in dist.items()}
