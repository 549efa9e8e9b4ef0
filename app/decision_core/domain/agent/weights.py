"""
Agent weights and their calibration.

Weights are non-negative and always renormalized to sum 1.0. They are
read-only during decisions (the coordinator takes a snapshot) and change
only through `calibrate()`, which is run between sessions on a labeled
validation set.
"""
import threading
from dataclasses import dataclass
from pathlib import Path

from decision_core.domain.game.models import ActionType
from decision_core.domain.utils.file_lock import read_json_locked, write_json_atomic
from decision_core.exceptions import CalibrationError
from decision_core.logging_config import get_logger

logger = get_logger(__name__)

MIN_CALIBRATION_DECISIONS = 1000

# Keeps a perfect (zero-Brier) agent from taking all the weight
BRIER_FLOOR = 0.05


@dataclass(frozen=True)
class LabeledDecision:
    """One validation example: each agent's forecast and the reference action."""

    predictions: dict[str, dict[ActionType, float]]
    label: ActionType


def brier_score(forecast: dict[ActionType, float], label: ActionType) -> float:
    """Multi-class Brier score: 0 perfect, 2 worst."""
    return sum((forecast.get(a, 0.0) - (1.0 if a == label else 0.0)) ** 2 for a in ActionType)


def renormalize(weights: dict[str, float]) -> dict[str, float]:
    clipped = {k: max(0.0, v) for k, v in weights.items()}
    total = sum(clipped.values())
    if total <= 0:
        n = len(clipped)
        return {k: 1.0 / n for k in clipped} if n else {}
    return {k: v / total for k, v in clipped.items()}


class AgentWeights:
    """Session-scoped weight table for the reasoners."""

    def __init__(self, weights: dict[str, float]):
        self._lock = threading.Lock()
        self._weights = renormalize(weights)

    @classmethod
    def equal(cls, names: list[str]) -> "AgentWeights":
        return cls({name: 1.0 for name in names})

    def snapshot(self) -> dict[str, float]:
        """Copy of the current weights (what a decision reads)."""
        return dict(self._weights)

    def get(self, name: str) -> float:
        return self._weights.get(name, 0.0)

    def calibrate(
        self,
        records: list[LabeledDecision],
        min_decisions: int = MIN_CALIBRATION_DECISIONS,
    ) -> dict[str, float]:
        """
        Recompute weights from mean Brier scores (weight ~ 1 / Brier).

        Args:
            records: Labeled validation decisions
            min_decisions: Minimum validation set size

        Returns:
            The new weights

        Raises:
            CalibrationError: fewer than min_decisions records
        """
        if len(records) < min_decisions:
            raise CalibrationError(
                f"Calibration needs at least {min_decisions} labeled decisions, got {len(records)}"
            )

        totals: dict[str, float] = {}
        counts: dict[str, int] = {}
        for record in records:
            for agent, forecast in record.predictions.items():
                totals[agent] = totals.get(agent, 0.0) + brier_score(forecast, record.label)
                counts[agent] = counts.get(agent, 0) + 1

        with self._lock:
            raw = {}
            for agent in self._weights:
                if counts.get(agent):
                    mean_brier = totals[agent] / counts[agent]
                    raw[agent] = 1.0 / (mean_brier + BRIER_FLOOR)
            # Agents absent from the validation set keep their current share
            unscored = [a for a in self._weights if a not in raw]
            if raw and unscored:
                scored_share = 1.0 - sum(self._weights[a] for a in unscored)
                scored_total = sum(raw.values())
                raw = {a: v / scored_total * scored_share for a, v in raw.items()}
                raw.update({a: self._weights[a] for a in unscored})
            if raw:
                self._weights = renormalize(raw)
            updated = dict(self._weights)

        logger.info(
            f"Calibrated agent weights on {len(records)} decisions: "
            f"{ {k: round(v, 3) for k, v in updated.items()} }"
        )
        return updated

    def save(self, path: str | Path) -> None:
        write_json_atomic(path, {"weights": self.snapshot()})

    @classmethod
    def load(cls, path: str | Path, names: list[str] | None = None) -> "AgentWeights":
        """
        Load persisted weights. Missing file -> equal weights over `names`.
        Agents in `names` missing from the file get the mean persisted weight.
        """
        path = Path(path)
        if not path.exists():
            return cls.equal(names or [])
        data = read_json_locked(path)
        weights = {k: float(v) for k, v in data.get("weights", {}).items()}
        if names:
            mean = sum(weights.values()) / len(weights) if weights else 1.0
            weights = {name: weights.get(name, mean) for name in names}
        return cls(weights)
