"""Agent domain - external reasoners, circuit breaking, cost control and weighting."""
from decision_core.domain.agent.circuit_breaker import BreakerState, CircuitBreaker
from decision_core.domain.agent.coordinator import AgentCoordinator, aggregate
from decision_core.domain.agent.cost import CostLedger
from decision_core.domain.agent.models import AgentOutput, AgentRecommendation, AggregatedAgentOutput, BetSizing
from decision_core.domain.agent.reasoner import LLMReasoner, Reasoner, ReasonerResponse, build_reasoners
from decision_core.domain.agent.weights import AgentWeights, LabeledDecision

__all__ = [
    "AgentCoordinator",
    "AgentOutput",
    "AgentRecommendation",
    "AgentWeights",
    "AggregatedAgentOutput",
    "BetSizing",
    "BreakerState",
    "CircuitBreaker",
    "CostLedger",
    "LLMReasoner",
    "LabeledDecision",
    "Reasoner",
    "ReasonerResponse",
    "aggregate",
    "build_reasoners",
]
