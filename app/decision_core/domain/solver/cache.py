"""
Solution cache.

Exact lookups by fingerprint key, plus a coarse index (everything but the
stack/pot buckets) for nearest-bucket matching. The cache is read-mostly:
reads take no lock, writes are serialized. Index buckets are immutable
tuples replaced on write, so a concurrent reader always sees a
consistent snapshot.
"""
import threading
from collections import Counter
from typing import Any

from decision_core.domain.game.models import Street
from decision_core.domain.solver.fingerprint import StateFingerprint, make_fingerprint
from decision_core.domain.solver.models import GTOSolution, SolutionSource
from decision_core.domain.solver.preflop_table import SCENARIO_POT_BB, PreflopRangeTable
from decision_core.logging_config import get_logger

logger = get_logger(__name__)


class SolutionCache:
    """Fingerprint-keyed store of solved policies."""

    def __init__(self) -> None:
        self._exact: dict[str, GTOSolution] = {}
        self._coarse: dict[str, tuple[tuple[StateFingerprint, str], ...]] = {}
        self._write_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._hits: Counter[str] = Counter()
        self._fuzzy_hits: Counter[str] = Counter()
        self._misses: Counter[str] = Counter()

    def __len__(self) -> int:
        return len(self._exact)

    def get(self, fp: StateFingerprint) -> GTOSolution | None:
        """Exact match."""
        solution = self._exact.get(fp.key)
        self._count(fp.street, self._hits if solution is not None else None)
        return solution

    def nearest(self, fp: StateFingerprint, max_distance: int, count: bool = True) -> GTOSolution | None:
        """Closest entry sharing the coarse key, within max_distance buckets.

        Ties on distance prefer the deeper stack, then the larger pot.
        `count=False` leaves the hit statistics alone (a second look after a
        lookup that was already counted).
        """
        candidates = self._coarse.get(fp.coarse, ())
        best = None
        best_rank = None
        for other, key in candidates:
            d = fp.distance(other)
            if d > max_distance:
                continue
            rank = (d, -other.stack_bucket, -other.pot_bucket)
            if best_rank is None or rank < best_rank:
                best, best_rank = key, rank
        if best is None:
            if count:
                self._count(fp.street, self._misses)
            return None
        if count:
            self._count(fp.street, self._fuzzy_hits)
        return self._exact[best]

    def put(self, fp: StateFingerprint, solution: GTOSolution) -> None:
        key = fp.key
        with self._write_lock:
            is_new = key not in self._exact
            self._exact[key] = solution
            if is_new:
                self._coarse[fp.coarse] = self._coarse.get(fp.coarse, ()) + ((fp, key),)

    def preload(self, table: PreflopRangeTable) -> int:
        """Populate preflop entries from a range table. Call once at startup."""
        count = 0
        with self._write_lock:
            for position, scenario, stack, hand, actions in table.entries():
                fp = make_fingerprint(
                    street=Street.PREFLOP,
                    position=position,
                    hand=hand,
                    stack_bb=stack,
                    pot_bb=SCENARIO_POT_BB[scenario],
                    history=scenario,
                )
                key = fp.key
                if key not in self._exact:
                    self._coarse[fp.coarse] = self._coarse.get(fp.coarse, ()) + ((fp, key),)
                self._exact[key] = GTOSolution(
                    actions=dict(actions), source=SolutionSource.CACHE, fingerprint=str(fp)
                )
                count += 1
        logger.info(f"Preloaded {count} preflop solutions into cache")
        return count

    def _count(self, street: Street, counter: Counter | None) -> None:
        if counter is None:
            return
        with self._stats_lock:
            counter[street.value] += 1

    def _rate(self, street: Street | None) -> float:
        streets = [street.value] if street is not None else [s.value for s in Street]
        hits = sum(self._hits[s] + self._fuzzy_hits[s] for s in streets)
        misses = sum(self._misses[s] for s in streets)
        total = hits + misses
        return hits / total if total else 0.0

    def hit_rate(self, street: Street | None = None) -> float:
        """(exact + fuzzy hits) / lookups; 0.0 when nothing was looked up.

        A lookup is `get()`, followed by `nearest()` on an exact miss.
        """
        with self._stats_lock:
            return self._rate(street)

    def stats(self) -> dict[str, Any]:
        with self._stats_lock:
            return {
                "entries": len(self._exact),
                "hits": dict(self._hits),
                "fuzzy_hits": dict(self._fuzzy_hits),
                "misses": dict(self._misses),
                "hit_rate": {s.value: round(self._rate(s), 4) for s in Street},
            }
