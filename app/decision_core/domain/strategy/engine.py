"""
Strategy Engine - the single synthesis point of the decision core.

AwaitingInputs -> Blending -> Selecting -> RiskChecking -> Finalized,
with Fallback reachable from any stage.

The GTO solver (worker thread) and the agent coordinator (asyncio tasks)
run concurrently, each against its own sub-budget. Whatever they return
in time is blended:

    final = alpha * GTO + (1 - alpha) * Agents

with alpha forced to 1.0 when no agent answered. One action is sampled
with a generator seeded from (session, hand, decision index), sized onto
the street's discrete size set, and passed through the Risk Guard. Every
failure along the way resolves to a fallback; `decide()` always returns
a StrategyDecision.
"""
import asyncio
import time
from dataclasses import dataclass
from pathlib import Path

from decision_core.config import ConfigStore, DecisionConfig
from decision_core.domain.agent.coordinator import AgentCoordinator
from decision_core.domain.agent.models import AggregatedAgentOutput
from decision_core.domain.agent.weights import LabeledDecision
from decision_core.domain.game.distribution import (
    Distribution,
    argmax,
    blend,
    restrict,
    sample,
    to_jsonable,
    total_variation,
)
from decision_core.domain.game.models import ActionType, GameState, safe_action
from decision_core.domain.monitoring.recorder import DecisionRecorder
from decision_core.domain.risk.guard import RiskGuard
from decision_core.domain.solver.fingerprint import FINGERPRINT_VERSION, fingerprint
from decision_core.domain.solver.gto_solver import GTOSolver
from decision_core.domain.solver.models import GTOSolution, default_policy
from decision_core.domain.strategy.models import DecisionTrace, EngineState, StrategyDecision
from decision_core.domain.strategy.seeding import SEED_VERSION, derive_seed, make_rng
from decision_core.domain.strategy.sizing import SizedAction, size_action
from decision_core.domain.timing.budget import BudgetAllocation, Clock, Component, TimeBudgetTracker
from decision_core.exceptions import AllAgentsUnavailable, BudgetExceededError, RiskViolation, SolverError
from decision_core.logging_config import get_logger, log_decision, log_divergence

logger = get_logger(__name__)

# Hard backstop on top of the solver's cooperative deadline
GTO_GRACE_MS = 20.0


# =============================================================================
# Pure synthesis
# =============================================================================


@dataclass(frozen=True)
class Blend:
    """Result of the Blending stage."""

    gto: Distribution
    agents: Distribution
    blended: Distribution
    alpha: float
    divergence: float


def blend_inputs(
    state: GameState,
    gto: GTOSolution,
    agents: AggregatedAgentOutput,
    config: DecisionConfig,
) -> Blend:
    """
    Combine the GTO and agent distributions over the legal actions.

    alpha is the configured baseline, or 1.0 (GTO-only) when the
    coordinator returned no usable output.
    """
    gto_dist = restrict(gto.distribution(), state.legal_actions) or {safe_action(state): 1.0}
    agent_dist = {} if agents.no_agent else restrict(agents.distribution, state.legal_actions)

    if not agent_dist:
        return Blend(gto=gto_dist, agents={}, blended=dict(gto_dist), alpha=1.0, divergence=0.0)

    alpha = config.alpha
    return Blend(
        gto=gto_dist,
        agents=agent_dist,
        blended=blend(gto_dist, agent_dist, alpha),
        alpha=alpha,
        divergence=total_variation(gto_dist, agent_dist),
    )


def implied_size(
    action: ActionType,
    mix: Blend,
    gto: GTOSolution,
    agents: AggregatedAgentOutput,
) -> float | None:
    """Continuous size for an aggressive action: the blend-weighted mean of both sources."""
    if action not in (ActionType.BET, ActionType.RAISE):
        return None
    candidates = []
    gto_size = gto.implied_size(action)
    if gto_size is not None:
        candidates.append((mix.alpha * mix.gto.get(action, 0.0), gto_size))
    agent_size = agents.sizes.get(action)
    if agent_size is not None:
        candidates.append(((1.0 - mix.alpha) * mix.agents.get(action, 0.0), agent_size))
    if not candidates:
        return None
    total = sum(w for w, _ in candidates)
    if total <= 0:
        return sum(s for _, s in candidates) / len(candidates)
    return sum(w * s for w, s in candidates) / total


def select_action(
    state: GameState,
    mix: Blend,
    gto: GTOSolution,
    agents: AggregatedAgentOutput,
    config: DecisionConfig,
    seed: int,
) -> SizedAction:
    """Sample from the blend with the seeded generator, then size the action."""
    action = sample(mix.blended, make_rng(seed))
    return size_action(state, action, implied_size(action, mix, gto, agents), config)


def synthesize(
    state: GameState,
    gto: GTOSolution,
    agents: AggregatedAgentOutput,
    config: DecisionConfig,
    seed: int,
) -> tuple[Blend, SizedAction]:
    """Blending + Selecting. Same inputs and seed -> same output."""
    mix = blend_inputs(state, gto, agents, config)
    return mix, select_action(state, mix, gto, agents, config, seed)


# =============================================================================
# Engine
# =============================================================================


class StrategyEngine:
    """
    Runs one decision at a time per session.

    Decisions are serialized by a session lock, so the risk state, the
    weight table and the seed counters never see concurrent writers.
    """

    def __init__(
        self,
        solver: GTOSolver,
        coordinator: AgentCoordinator | None = None,
        risk_guard: RiskGuard | None = None,
        config_store: ConfigStore | None = None,
        recorder: DecisionRecorder | None = None,
        session_id: str = "default",
        clock: Clock = time.perf_counter,
        weights_path: str | Path | None = None,
    ):
        self.solver = solver
        self.weights_path = weights_path
        self.coordinator = coordinator
        self.config_store = config_store or ConfigStore()
        self.risk_guard = risk_guard or RiskGuard(
            limits=self.config_store.current().risk,
            monitor=coordinator.monitor if coordinator else None,
            session_id=session_id,
        )
        self.recorder = recorder or DecisionRecorder()
        self.session_id = session_id
        self._clock = clock
        self._lock = asyncio.Lock()
        self._seed_uses: dict[tuple[str, int], int] = {}
        if self.coordinator is not None:
            self.coordinator.session_id = session_id

    # -------------------------------------------------------------------------
    # Session management
    # -------------------------------------------------------------------------

    async def new_session(self, session_id: str) -> None:
        """Fresh risk totals, breakers, cost ledger and seed counters."""
        async with self._lock:
            self.session_id = session_id
            self._seed_uses.clear()
            self.risk_guard.new_session(session_id)
            if self.coordinator is not None:
                self.coordinator.new_session(session_id)
        logger.info(f"Started session {session_id}")

    async def record_outcome(self, hand_id: str, delta_bb: float) -> None:
        """Feed a finished hand's result to the Risk Guard."""
        async with self._lock:
            self.risk_guard.record_outcome(hand_id, delta_bb)

    async def calibrate_weights(self, records: list[LabeledDecision]) -> dict[str, float]:
        """Recalibrate agent weights between decisions, saving them when a weights path is set."""
        if self.coordinator is None:
            return {}
        async with self._lock:
            updated = self.coordinator.weights.calibrate(records)
            if self.weights_path:
                self.coordinator.weights.save(self.weights_path)
                logger.info(f"Saved calibrated agent weights to {self.weights_path}")
        return updated

    def flush(self):
        """Write this session's traces (if the recorder has an output dir)."""
        return self.recorder.flush(self.session_id)

    def _seed_for(self, state: GameState) -> int:
        key = (state.hand_id, state.decision_index)
        nonce = self._seed_uses.get(key, 0)
        self._seed_uses[key] = nonce + 1
        if nonce:
            logger.warning(
                f"Hand {state.hand_id} decision {state.decision_index} decided again; seed nonce {nonce}"
            )
        return derive_seed(self.session_id, state.hand_id, state.decision_index, nonce)

    def _tracker(self, config: DecisionConfig) -> TimeBudgetTracker:
        return TimeBudgetTracker(
            ratios=config.budget_ratios,
            total_ms=config.total_budget_ms,
            reserves={
                Component.STRATEGY: config.strategy_min_reserve_ms,
                Component.RISK: config.risk_min_reserve_ms,
            },
            clock=self._clock,
        )

    # -------------------------------------------------------------------------
    # Decision pipeline
    # -------------------------------------------------------------------------

    async def decide(self, state: GameState, perception_consumed_ms: float | None = None) -> StrategyDecision:
        """
        Produce a decision for one hand-action.

        Args:
            state: Parsed game state
            perception_consumed_ms: Time the parser already used out of the total budget

        Returns:
            StrategyDecision (a SafeAction whenever the normal path cannot finish)
        """
        async with self._lock:
            self.config_store.reload_if_changed()
            config = self.config_store.current()
            return await self._decide(state, config, perception_consumed_ms)

    async def _decide(
        self, state: GameState, config: DecisionConfig, perception_consumed_ms: float | None
    ) -> StrategyDecision:
        tracker = self._tracker(config)
        allocation = tracker.allocate(perception_consumed_ms=perception_consumed_ms)
        seed = self._seed_for(state)
        run = _Run(
            state=state,
            config=config,
            allocation=allocation,
            seed=seed,
            decision_id=f"{state.hand_id}:{state.decision_index}",
            safe=SizedAction(safe_action(state)),
            fingerprint=str(fingerprint(state)),
        )
        run.enter(EngineState.AWAITING_INPUTS)

        if self.risk_guard.halted:
            return self._finish(run, run.safe, fallback_reason=f"halted: {self.risk_guard.state.halt_reason}")

        run.gto, run.agents = await asyncio.gather(
            self._solve(run, tracker),
            self._query(run),
        )

        try:
            self._check_agents_available(run.agents, config)
        except AllAgentsUnavailable as e:
            self.risk_guard.panic_stop("all_agents_down")
            return self._finish(run, run.safe, fallback_reason=f"all_agents_down: {e.message}")

        allocation.start(Component.STRATEGY)
        try:
            self._check_strategy_budget(allocation, config)
            run.enter(EngineState.BLENDING)
            run.mix = blend_inputs(state, run.gto, run.agents, config)
            self._check_strategy_budget(allocation, config)
            run.enter(EngineState.SELECTING)
            chosen = select_action(state, run.mix, run.gto, run.agents, config, seed)
        except BudgetExceededError as e:
            allocation.stop(Component.STRATEGY)
            return self._finish(run, run.safe, fallback_reason=f"budget_exceeded: {e.message}")
        allocation.stop(Component.STRATEGY)

        if run.mix.divergence > config.divergence_threshold:
            run.divergence_flagged = True
            self._report_divergence(run)

        allocation.start(Component.RISK)
        run.enter(EngineState.RISK_CHECKING)
        try:
            self.risk_guard.enforce(config.risk)
        except RiskViolation as e:
            allocation.stop(Component.RISK)
            self.risk_guard.panic_stop(e.reason)
            return self._finish(run, run.safe, fallback_reason=f"risk_violation: {e.reason}")
        allocation.stop(Component.RISK)

        return self._finish(run, chosen)

    def _check_agents_available(self, agents: AggregatedAgentOutput, config: DecisionConfig) -> None:
        if agents.all_breakers_open and config.halt_on_all_agents_down:
            raise AllAgentsUnavailable()

    def _check_strategy_budget(self, allocation: BudgetAllocation, config: DecisionConfig) -> None:
        if allocation.should_preempt(Component.STRATEGY):
            raise BudgetExceededError("strategy sub-budget exhausted")
        allocation.check_total(margin_ms=config.risk_min_reserve_ms)

    async def _solve(self, run: "_Run", tracker: TimeBudgetTracker) -> GTOSolution:
        """GTO stage: worker thread, cooperative preemption, hard backstop."""
        allocation = run.allocation
        allocation.start(Component.GTO)
        budget_ms = allocation.remaining(Component.GTO)
        try:
            solution = await asyncio.wait_for(
                asyncio.to_thread(
                    self.solver.solve,
                    run.state,
                    budget_ms,
                    run.config,
                    lambda: allocation.should_preempt(Component.GTO),
                    make_rng(run.seed, "equity"),
                ),
                timeout=(budget_ms + GTO_GRACE_MS) / 1000.0,
            )
        except TimeoutError:
            logger.warning(f"GTO solver missed its {budget_ms:.0f}ms budget for hand {run.state.hand_id}")
            run.notes.append("gto_timeout")
            solution = default_policy(run.state)
        except SolverError as e:
            logger.error(f"GTO solver failed for hand {run.state.hand_id}: {e.message}")
            run.notes.append(f"gto_error: {e.code}")
            solution = default_policy(run.state)
        except Exception as e:
            logger.error(f"GTO solver error for hand {run.state.hand_id}: {e}")
            run.notes.append("gto_error")
            solution = default_policy(run.state)
        finally:
            allocation.stop(Component.GTO)

        overrun = allocation.elapsed(Component.GTO) - allocation.budgets[Component.GTO]
        if overrun > 0:
            tracker.reallocate(allocation, Component.GTO, overrun)
        return solution

    async def _query(self, run: "_Run") -> AggregatedAgentOutput:
        """Agent stage: the coordinator enforces its own deadline."""
        if self.coordinator is None:
            return AggregatedAgentOutput.empty({})
        allocation = run.allocation
        allocation.start(Component.AGENTS)
        try:
            return await self.coordinator.query_agents(
                run.state,
                allocation.remaining(Component.AGENTS),
                weights=self.coordinator.weights.snapshot(),
                config=run.config,
            )
        except Exception as e:
            logger.error(f"Agent coordinator error for hand {run.state.hand_id}: {e}")
            run.notes.append("agents_error")
            return AggregatedAgentOutput.empty({name: "error" for name in self.coordinator.agent_names})
        finally:
            allocation.stop(Component.AGENTS)

    def _report_divergence(self, run: "_Run") -> None:
        models = dict(run.agents.models)
        models["gto_solver"] = f"{run.gto.source.value}/fingerprint-v{FINGERPRINT_VERSION}"
        log_divergence(
            logger,
            session_id=self.session_id,
            hand_id=run.state.hand_id,
            decision_id=run.decision_id,
            divergence=run.mix.divergence,
            seed=run.seed,
            state=run.state.to_dict(),
            distributions={
                "gto": to_jsonable(run.mix.gto),
                "agents": to_jsonable(run.mix.agents),
                "blended": to_jsonable(run.mix.blended),
            },
            models=models,
            favored=(argmax(run.mix.gto).value, argmax(run.mix.agents).value),
        )

    def _finish(self, run: "_Run", chosen: SizedAction, fallback_reason: str | None = None) -> StrategyDecision:
        """Build, log and record the decision."""
        fallback = fallback_reason is not None
        run.enter(EngineState.FALLBACK if fallback else EngineState.FINALIZED)

        if not run.state.is_legal(chosen.action):
            # Never emit an illegal action
            logger.error(f"Selected {chosen.action.value} is not legal for hand {run.state.hand_id}")
            chosen = run.safe
            fallback, fallback_reason = True, fallback_reason or "illegal_selection"

        mix = run.mix
        timings = run.allocation.timings()
        timings["total"] = round(run.allocation.total_elapsed(), 3)
        decision = StrategyDecision(
            session_id=self.session_id,
            hand_id=run.state.hand_id,
            decision_id=run.decision_id,
            action=chosen.action,
            amount=chosen.amount,
            size_option=chosen.size_option,
            alpha=mix.alpha if mix else 1.0,
            divergence=mix.divergence if mix else 0.0,
            seed=run.seed,
            seed_version=SEED_VERSION,
            timings=timings,
            fallback=fallback,
            fallback_reason=fallback_reason,
            reasoning=tuple(run.reasoning()),
        )

        log_decision(
            logger,
            session_id=decision.session_id,
            hand_id=decision.hand_id,
            decision_id=decision.decision_id,
            action=decision.action.value,
            amount=decision.amount,
            alpha=decision.alpha,
            divergence=decision.divergence,
            seed=decision.seed,
            fallback=decision.fallback,
            timings=decision.timings,
            street=run.state.street.value,
            reason=fallback_reason,
        )
        self.recorder.record(
            DecisionTrace(
                decision=decision,
                state=run.state.to_dict(),
                fingerprint=run.fingerprint,
                gto=run.gto.to_dict() if run.gto else None,
                agents=run.agents.to_dict() if run.agents else None,
                blended=to_jsonable(mix.blended) if mix else {},
                transitions=[s.value for s in run.transitions],
                divergence_flagged=run.divergence_flagged,
                risk=self.risk_guard.state.to_dict(),
                config_alpha=run.config.alpha,
            )
        )
        return decision


class _Run:
    """Mutable scratchpad for one in-flight decision."""

    def __init__(
        self,
        state: GameState,
        config: DecisionConfig,
        allocation: BudgetAllocation,
        seed: int,
        decision_id: str,
        safe: SizedAction,
        fingerprint: str,
    ):
        self.state = state
        self.config = config
        self.allocation = allocation
        self.seed = seed
        self.decision_id = decision_id
        self.safe = safe
        self.fingerprint = fingerprint
        self.gto: GTOSolution | None = None
        self.agents: AggregatedAgentOutput | None = None
        self.mix: Blend | None = None
        self.divergence_flagged = False
        self.transitions: list[EngineState] = []
        self.notes: list[str] = []

    def enter(self, stage: EngineState) -> None:
        self.transitions.append(stage)

    def reasoning(self) -> list[str]:
        lines = list(self.notes)
        if self.gto is not None:
            lines.append(f"gto[{self.gto.source.value}]: {to_jsonable(self.gto.distribution())}")
        if self.agents is not None:
            for output in self.agents.outputs:
                line = f"{output.agent}: {output.action.value} ({output.confidence:.2f})"
                if output.rationale:
                    line += f" {output.rationale[:160]}"
                lines.append(line)
            for agent, reason in sorted(self.agents.exclusions.items()):
                lines.append(f"{agent}: excluded ({reason})")
        if self.mix is not None:
            lines.append(f"alpha={self.mix.alpha:.2f} blended={to_jsonable(self.mix.blended)}")
        return lines
