"""
Token/cost accounting for reasoner calls.

Tracks spend per session, per hand and per agent. Before each decision the
coordinator reserves an estimate for every agent it intends to query; an
agent whose estimate would break the session ceiling or the per-hand cap
is excluded for that decision.
"""
import threading
from collections import defaultdict

from decision_core.config import DecisionConfig
from decision_core.logging_config import get_logger

logger = get_logger(__name__)


class CostLedger:
    """Session-scoped spend ledger."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.session_spend = 0.0
        self.session_tokens = 0
        self._hand_spend: dict[str, float] = defaultdict(float)
        self._agent_spend: dict[str, float] = defaultdict(float)
        self._reserved = 0.0
        self._reserved_hand = 0.0

    def estimate(self, agent: str, config: DecisionConfig) -> float:
        """Expected cost of one query to an agent."""
        return config.estimated_tokens_per_query / 1000.0 * config.cost_rate(agent)

    def begin_decision(self) -> None:
        """Drop reservations left by the previous decision."""
        with self._lock:
            self._reserved = 0.0
            self._reserved_hand = 0.0

    def try_reserve(self, agent: str, hand_id: str, config: DecisionConfig) -> str | None:
        """
        Reserve an estimate for agent's query.

        Returns:
            None if reserved, otherwise the exclusion reason
        """
        estimate = self.estimate(agent, config)
        with self._lock:
            if self.session_spend + self._reserved + estimate > config.session_cost_ceiling:
                return "session_cost_ceiling"
            if self._hand_spend[hand_id] + self._reserved_hand + estimate > config.per_hand_cost_cap:
                return "hand_cost_cap"
            self._reserved += estimate
            self._reserved_hand += estimate
        return None

    def record(self, agent: str, hand_id: str, tokens: int, config: DecisionConfig) -> float:
        """Charge actual usage; returns the cost of this call."""
        cost = tokens / 1000.0 * config.cost_rate(agent)
        with self._lock:
            self.session_spend += cost
            self.session_tokens += tokens
            self._hand_spend[hand_id] += cost
            self._agent_spend[agent] += cost
        return cost

    def hand_spend(self, hand_id: str) -> float:
        return self._hand_spend.get(hand_id, 0.0)

    def agent_spend(self, agent: str) -> float:
        return self._agent_spend.get(agent, 0.0)

    def reset(self) -> None:
        with self._lock:
            self.session_spend = 0.0
            self.session_tokens = 0
            self._hand_spend.clear()
            self._agent_spend.clear()
            self._reserved = 0.0
            self._reserved_hand = 0.0
        logger.info("Cost ledger reset for new session")
