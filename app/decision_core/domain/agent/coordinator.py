"""
Agent Coordinator - parallel querying of external reasoners.

One decision:
1. pre-exclude agents whose breaker is open or whose cost would break a cap
2. dispatch one task per remaining agent; each has its own timeout,
   min(per_agent_timeout, budget), starting at its own dispatch
3. a deadline-bounded collector cancels whatever is still running when
   the shared budget expires; late answers are never merged
4. validate, then aggregate the survivors with the weight snapshot

Nothing raised by a reasoner escapes `query_agents()`: every failure
becomes an exclusion reason.
"""

import asyncio
import time
from dataclasses import dataclass

from pydantic import ValidationError

from decision_core.config import DecisionConfig
from decision_core.domain.agent.circuit_breaker import CircuitBreaker
from decision_core.domain.agent.cost import CostLedger
from decision_core.domain.agent.models import AgentOutput, AgentRecommendation, AggregatedAgentOutput
from decision_core.domain.agent.prompts import build_state_prompt
from decision_core.domain.agent.reasoner import Reasoner, ReasonerResponse
from decision_core.domain.agent.weights import AgentWeights, renormalize
from decision_core.domain.game.distribution import normalize, normalized_entropy
from decision_core.domain.game.models import ActionType, GameState
from decision_core.domain.monitoring.alerts import HealthEvent, HealthEventType, HealthMonitor
from decision_core.domain.timing.budget import Clock
from decision_core.exceptions import AgentValidationError, ReasonerError
from decision_core.logging_config import get_logger, log_agent_exclusion

logger = get_logger(__name__)


@dataclass(frozen=True)
class _Attempt:
    """Outcome of querying one agent (after any retry)."""

    agent: str
    output: AgentOutput | None
    reason: str | None = None
    detail: str = ""


def parse_recommendation(text: str) -> AgentRecommendation:
    """
    Extract and validate the JSON object in a reasoner answer.

    Raises:
        AgentValidationError: no JSON object, or it fails the schema
    """
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        raise AgentValidationError("no JSON object in reasoner output")
    try:
        return AgentRecommendation.model_validate_json(text[start : end + 1])
    except ValidationError as e:
        raise AgentValidationError(f"malformed output: {e.error_count()} error(s)") from e


class AgentCoordinator:
    """Queries the configured reasoners and aggregates their answers."""

    def __init__(
        self,
        reasoners: list[Reasoner],
        weights: AgentWeights | None = None,
        monitor: HealthMonitor | None = None,
        session_id: str = "",
        clock: Clock = time.perf_counter,
    ):
        self._reasoners = {r.name: r for r in reasoners}
        self.weights = weights or AgentWeights.equal(list(self._reasoners))
        self.monitor = monitor or HealthMonitor()
        self.session_id = session_id
        self.ledger = CostLedger()
        self.breakers: dict[str, CircuitBreaker] = {}
        self._clock = clock
        self._all_down_reported = False

    @property
    def agent_names(self) -> list[str]:
        return sorted(self._reasoners)

    def _breaker(self, name: str, config: DecisionConfig) -> CircuitBreaker:
        breaker = self.breakers.get(name)
        if breaker is None:
            breaker = CircuitBreaker(name, threshold=config.breaker_failure_threshold)
            self.breakers[name] = breaker
        breaker.threshold = config.breaker_failure_threshold
        breaker.cooldown_s = config.breaker_cooldown_s
        return breaker

    def all_breakers_open(self) -> bool:
        return bool(self._reasoners) and all(
            name in self.breakers and self.breakers[name].is_open for name in self._reasoners
        )

    def reset_breaker(self, name: str) -> None:
        """Manual reset of one agent's breaker (half-open probe on next decision)."""
        breaker = self.breakers.get(name)
        if breaker is None:
            return
        breaker.reset()
        self._all_down_reported = False
        self.monitor.emit(
            HealthEvent(HealthEventType.BREAKER_RESET, name, "manual reset", session_id=self.session_id)
        )

    def new_session(self, session_id: str) -> None:
        """Fresh breakers and cost ledger for a new session."""
        self.session_id = session_id
        self.breakers.clear()
        self.ledger.reset()
        self._all_down_reported = False

    async def query_agents(
        self,
        state: GameState,
        budget_ms: float,
        weights: dict[str, float] | None = None,
        config: DecisionConfig | None = None,
    ) -> AggregatedAgentOutput:
        """
        Query every eligible reasoner in parallel within budget_ms.

        Args:
            state: Game state for this decision
            budget_ms: Shared sub-budget for all agent queries
            weights: Weight snapshot (defaults to the coordinator's table)
            config: Decision snapshot

        Returns:
            AggregatedAgentOutput; empty (no_agent) when nothing usable came back
        """
        config = config or DecisionConfig()
        weights = weights if weights is not None else self.weights.snapshot()
        exclusions: dict[str, str] = {}

        self.ledger.begin_decision()
        active = []
        for name in self.agent_names:
            if not self._breaker(name, config).allow_request():
                self._exclude(exclusions, name, state, "circuit_open")
                continue
            cost_reason = self.ledger.try_reserve(name, state.hand_id, config)
            if cost_reason:
                self._exclude(exclusions, name, state, cost_reason)
                continue
            active.append(name)

        if not active:
            return AggregatedAgentOutput.empty(exclusions, all_breakers_open=self.all_breakers_open())

        prompt = build_state_prompt(state)
        deadline = self._clock() + budget_ms / 1000.0
        tasks = {
            asyncio.create_task(self._query_one(name, prompt, state, config, budget_ms, deadline)): name
            for name in active
        }
        done, pending = await asyncio.wait(list(tasks), timeout=max(0.0, budget_ms / 1000.0))

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        attempts: list[_Attempt] = []
        for task, name in tasks.items():
            if task in pending or task.cancelled():
                attempts.append(_Attempt(name, None, "timeout", "sub-budget expired"))
            elif task.exception() is not None:
                exc = task.exception()
                attempts.append(_Attempt(name, None, "error", f"{type(exc).__name__}: {exc}"))
            else:
                attempts.append(task.result())

        outputs = []
        for attempt in sorted(attempts, key=lambda a: a.agent):
            breaker = self.breakers[attempt.agent]
            if attempt.output is not None:
                breaker.record_success()
                outputs.append(attempt.output)
                continue
            self._exclude(exclusions, attempt.agent, state, attempt.reason or "error", attempt.detail)
            if breaker.record_failure(attempt.reason or "error"):
                self.monitor.emit(
                    HealthEvent(
                        HealthEventType.BREAKER_TRIPPED,
                        attempt.agent,
                        f"{breaker.consecutive_failures} consecutive failures (last: {attempt.reason})",
                        session_id=self.session_id,
                    )
                )

        all_open = self.all_breakers_open()
        if all_open and not self._all_down_reported:
            self._all_down_reported = True
            self.monitor.emit(
                HealthEvent(
                    HealthEventType.ALL_AGENTS_DOWN,
                    "agent_coordinator",
                    "every reasoner circuit breaker is open",
                    session_id=self.session_id,
                )
            )

        if not outputs:
            return AggregatedAgentOutput.empty(exclusions, all_breakers_open=all_open)
        return aggregate(outputs, weights, state, exclusions, all_breakers_open=all_open)

    async def _query_one(
        self,
        name: str,
        prompt: str,
        state: GameState,
        config: DecisionConfig,
        budget_ms: float,
        deadline: float,
    ) -> _Attempt:
        """Query one agent with at most one retry on transient errors."""
        reasoner = self._reasoners[name]
        started = self._clock()
        timeout_s = min(config.per_agent_timeout_ms, budget_ms) / 1000.0
        attempt = 1
        while True:
            try:
                response: ReasonerResponse = await asyncio.wait_for(reasoner.query(prompt), timeout=timeout_s)
                break
            except TimeoutError:
                return _Attempt(name, None, "timeout", f"no answer within {timeout_s * 1000:.0f}ms")
            except ReasonerError as e:
                if not e.transient or attempt > 1:
                    return _Attempt(name, None, "http_error", e.message)
                backoff_s = min(config.retry_backoff_ms * (2 ** (attempt - 1)), config.retry_backoff_cap_ms) / 1000.0
                remaining_s = deadline - self._clock()
                if remaining_s <= backoff_s:
                    return _Attempt(name, None, "http_error", f"{e.message} (no budget to retry)")
                logger.debug(f"Retrying {name} after {e.message} in {backoff_s * 1000:.0f}ms")
                await asyncio.sleep(backoff_s)
                timeout_s = min(timeout_s, deadline - self._clock())
                attempt += 1

        cost = self.ledger.record(name, state.hand_id, response.total_tokens, config)
        latency_ms = (self._clock() - started) * 1000.0
        try:
            recommendation = parse_recommendation(response.text)
        except AgentValidationError as e:
            return _Attempt(name, None, "malformed_output", e.message)

        action = recommendation.action
        if not state.is_legal(action):
            return _Attempt(name, None, "illegal_action", f"{action.value} not in legal set")

        size_units = None
        if recommendation.sizing is not None and action in (ActionType.BET, ActionType.RAISE):
            size_units = recommendation.sizing.to_size_units(state, action)
            if size_units is not None and size_units <= 0:
                size_units = None

        return _Attempt(
            name,
            AgentOutput(
                agent=name,
                model=reasoner.model,
                action=action,
                confidence=recommendation.confidence,
                rationale=recommendation.rationale,
                size_units=size_units,
                input_tokens=response.input_tokens,
                output_tokens=response.output_tokens,
                cost=cost,
                latency_ms=latency_ms,
                attempts=attempt,
            ),
        )

    def _exclude(
        self, exclusions: dict[str, str], name: str, state: GameState, reason: str, detail: str = ""
    ) -> None:
        exclusions[name] = reason
        log_agent_exclusion(
            logger, agent_id=name, hand_id=state.hand_id, reason=reason, detail=detail, session_id=self.session_id
        )


def aggregate(
    outputs: list[AgentOutput],
    weights: dict[str, float],
    state: GameState,
    exclusions: dict[str, str] | None = None,
    all_breakers_open: bool = False,
) -> AggregatedAgentOutput:
    """
    Weighted vote of the surviving outputs.

    Each output votes for its action with its agent weight, renormalized
    over the survivors. Confidence is carried on the outputs for the trace
    but does not scale the vote. Processing order does not affect the result.
    """
    survivors = sorted(outputs, key=lambda o: o.agent)
    votes = renormalize({o.agent: weights.get(o.agent, 0.0) for o in survivors})

    scores: dict[ActionType, float] = {}
    size_num: dict[ActionType, float] = {}
    size_den: dict[ActionType, float] = {}
    for o in survivors:
        scores[o.action] = scores.get(o.action, 0.0) + votes[o.agent]
        if o.size_units is not None:
            w = votes[o.agent] or 1e-9
            size_num[o.action] = size_num.get(o.action, 0.0) + w * o.size_units
            size_den[o.action] = size_den.get(o.action, 0.0) + w

    distribution = normalize(scores)
    dispersion = normalized_entropy(distribution, n_outcomes=len(state.legal_actions))
    return AggregatedAgentOutput(
        distribution=distribution,
        dispersion=dispersion,
        outputs=tuple(survivors),
        exclusions=dict(exclusions or {}),
        sizes={a: size_num[a] / size_den[a] for a in size_num},
        all_breakers_open=all_breakers_open,
    )

