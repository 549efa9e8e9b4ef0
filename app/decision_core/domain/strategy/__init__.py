"""Strategy domain - blending, action selection and the decision pipeline."""
from decision_core.domain.strategy.engine import Blend, StrategyEngine, blend_inputs, select_action, synthesize
from decision_core.domain.strategy.models import DecisionTrace, EngineState, StrategyDecision
from decision_core.domain.strategy.seeding import SEED_VERSION, derive_seed, make_rng
from decision_core.domain.strategy.sizing import SizedAction, size_action

__all__ = [
    "Blend",
    "DecisionTrace",
    "EngineState",
    "SEED_VERSION",
    "SizedAction",
    "StrategyDecision",
    "StrategyEngine",
    "blend_inputs",
    "derive_seed",
    "make_rng",
    "select_action",
    "size_action",
    "synthesize",
]
