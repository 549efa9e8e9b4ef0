"""
Configuration for the decision core.

Two layers:
- Settings: process environment (API endpoint, paths, log level), loaded
  once at startup by pydantic-settings.
- DecisionConfig: the hot-reloadable decision snapshot (alpha, budgets,
  breaker thresholds, cost caps, bet sizes, risk limits). The engine reads
  one snapshot per decision, so a reload never lands mid-decision.

Environment Variables:
- OPENAI_BASE_URL: API endpoint (required for Azure, optional for OpenAI)
- OPENAI_API_KEY: API key
- OPENAI_MODEL: Model name / deployment name
- ENDPOINT_TYPE: "azure" or "openai" (default: auto-detect)
- AZURE_OPENAI_API_VERSION: API version for Azure (default: 2025-03-01-preview)
- REASONING_EFFORT: Optional (low, medium, high)
- TEMPERATURE: Generation temperature (default: 0.2)
- DECISION_CONFIG_PATH: JSON file with a DecisionConfig snapshot
"""
import json
import os
import threading
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from decision_core.domain.game.models import Street
from decision_core.domain.timing.budget import DEFAULT_RATIOS, Component
from decision_core.exceptions import ConfigError
from decision_core.logging_config import get_logger

logger = get_logger(__name__)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core OpenAI settings (used for both OpenAI and Azure)
    openai_base_url: str = ""  # Required for Azure, optional for OpenAI
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"  # Model name (OpenAI) or deployment name (Azure)

    # Endpoint type: "azure", "openai", or "" (auto-detect)
    endpoint_type: str = ""

    # Azure-specific (only used when endpoint_type=azure)
    azure_openai_api_version: str = "2025-03-01-preview"

    # Model parameters
    reasoning_effort: str = ""  # low, medium, high
    temperature: float = 0.2

    # Logging
    log_level: str = "INFO"

    # Decision snapshot and persistence
    decision_config_path: str = ""
    weights_path: str = "data/weights/agent_weights.json"
    traces_dir: str = "data/decisions"

    @property
    def model_name(self) -> str:
        """Get the model/deployment name."""
        return self.openai_model

    @property
    def is_azure(self) -> bool:
        """Check if using Azure OpenAI."""
        if self.endpoint_type.lower() == "azure":
            return True
        if self.endpoint_type.lower() == "openai":
            return False
        # Auto-detect from URL
        return "azure" in self.openai_base_url.lower() if self.openai_base_url else False

    def configure_openai_client(self) -> None:
        """
        Configure the OpenAI client based on settings.
        Call this at startup before creating reasoners.
        """
        from openai import AsyncOpenAI
        from agents import set_default_openai_client

        if self.is_azure:
            from openai import AsyncAzureOpenAI
            client = AsyncAzureOpenAI(
                azure_endpoint=self.openai_base_url,
                api_key=self.openai_api_key,
                api_version=self.azure_openai_api_version,
            )
            set_default_openai_client(client, use_for_tracing=False)
        elif self.openai_base_url:
            client = AsyncOpenAI(
                base_url=self.openai_base_url,
                api_key=self.openai_api_key,
            )
            set_default_openai_client(client, use_for_tracing=False)
        else:
            # Default OpenAI - just set env vars, SDK handles it
            if self.openai_api_key:
                os.environ["OPENAI_API_KEY"] = self.openai_api_key

        # Disable tracing for non-OpenAI endpoints
        if self.is_azure or self.openai_base_url:
            os.environ["OPENAI_AGENTS_DISABLE_TRACING"] = "1"


class RiskLimits(BaseModel):
    """Session risk limits (chips are in big blinds)."""

    model_config = ConfigDict(frozen=True)

    stop_loss_bb: float = Field(default=300.0, gt=0)
    trailing_drawdown_bb: float | None = Field(default=None, gt=0)
    max_hands: int | None = Field(default=2000, gt=0)
    max_session_minutes: float | None = Field(default=240.0, gt=0)


DEFAULT_BET_SIZES: dict[Street, list[float]] = {
    # Preflop: raise-to as a multiple of the current bet
    Street.PREFLOP: [2.0, 2.5, 3.0, 4.0],
    # Postflop: pot fractions
    Street.FLOP: [0.33, 0.5, 0.75, 1.0],
    Street.TURN: [0.5, 0.75, 1.0],
    Street.RIVER: [0.5, 0.75, 1.0],
}

DEFAULT_DEEP_STACK_SIZES: dict[Street, list[float]] = {
    Street.PREFLOP: [5.0],
    Street.FLOP: [1.25],
    Street.TURN: [1.5],
    Street.RIVER: [1.5, 2.0],
}


class DecisionConfig(BaseModel):
    """Immutable, validated snapshot of every tunable the decision core reads."""

    model_config = ConfigDict(frozen=True)

    # Blending
    alpha: float = Field(default=0.7, ge=0.3, le=0.9)
    divergence_threshold: float = Field(default=0.30, gt=0, le=1)

    # Time budgets
    total_budget_ms: float = Field(default=2000.0, gt=0)
    budget_ratios: dict[Component, float] = Field(default_factory=lambda: dict(DEFAULT_RATIOS))
    strategy_min_reserve_ms: float = Field(default=50.0, ge=0)
    risk_min_reserve_ms: float = Field(default=10.0, ge=0)

    # Reasoners
    agent_names: list[str] = Field(
        default_factory=lambda: ["gto_analyst", "exploit_analyst", "pot_odds_analyst"]
    )
    per_agent_timeout_ms: float = Field(default=600.0, gt=0)
    retry_backoff_ms: float = Field(default=50.0, ge=0)
    retry_backoff_cap_ms: float = Field(default=200.0, ge=0)
    breaker_failure_threshold: int = Field(default=5, ge=1)
    breaker_cooldown_s: float | None = Field(default=None, gt=0)
    halt_on_all_agents_down: bool = False

    # Cost control (currency units)
    session_cost_ceiling: float = Field(default=25.0, gt=0)
    per_hand_cost_cap: float = Field(default=0.10, gt=0)
    cost_per_1k_tokens: dict[str, float] = Field(default_factory=dict)
    default_cost_per_1k_tokens: float = Field(default=0.002, ge=0)
    estimated_tokens_per_query: int = Field(default=1500, gt=0)

    # Bet sizing
    bet_size_sets: dict[Street, list[float]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_BET_SIZES.items()}
    )
    deep_stack_bet_sizes: dict[Street, list[float]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_DEEP_STACK_SIZES.items()}
    )
    deep_stack_threshold_bb: float = Field(default=100.0, gt=0)
    min_chip_increment: float = Field(default=1.0, gt=0)

    # Solver
    equity_samples: int = Field(default=200, ge=1)
    min_equity_samples: int = Field(default=48, ge=1)
    fuzzy_max_distance: int = Field(default=3, ge=0)

    # Risk
    risk: RiskLimits = Field(default_factory=RiskLimits)

    @field_validator("budget_ratios")
    @classmethod
    def _ratios_sum_to_one(cls, v: dict[Component, float]) -> dict[Component, float]:
        total = sum(v.values())
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"budget_ratios must sum to 1.0, got {total:.4f}")
        return v

    @field_validator("bet_size_sets", "deep_stack_bet_sizes")
    @classmethod
    def _sizes_positive(cls, v: dict[Street, list[float]]) -> dict[Street, list[float]]:
        for street, sizes in v.items():
            if any(s <= 0 for s in sizes):
                raise ValueError(f"bet sizes for {street.value} must be positive")
        return {street: sorted(set(sizes)) for street, sizes in v.items()}

    @model_validator(mode="after")
    def _every_street_has_sizes(self) -> "DecisionConfig":
        missing = [s.value for s in Street if not self.bet_size_sets.get(s)]
        if missing:
            raise ValueError(f"bet_size_sets missing streets: {missing}")
        return self

    def size_set(self, street: Street, effective_stack_bb: float) -> list[float]:
        """Discrete bet sizes for a street, widened for deep stacks."""
        sizes = list(self.bet_size_sets[street])
        if effective_stack_bb > self.deep_stack_threshold_bb:
            sizes.extend(self.deep_stack_bet_sizes.get(street, []))
        return sorted(set(sizes))

    def cost_rate(self, agent_name: str) -> float:
        """Cost per 1k tokens for a reasoner."""
        return self.cost_per_1k_tokens.get(agent_name, self.default_cost_per_1k_tokens)

    @classmethod
    def load_from_file(cls, path: str | Path) -> "DecisionConfig":
        """Load and validate a snapshot from JSON."""
        try:
            with open(path) as f:
                data = json.load(f)
            return cls.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise ConfigError("config_load_failed", f"Cannot load decision config {path}: {e}") from e


class ConfigStore:
    """
    Holds the active DecisionConfig snapshot.

    `update()` swaps the reference under a lock; readers take `current()`
    once per decision and keep that object for the decision's lifetime.
    """

    def __init__(self, config: DecisionConfig | None = None, path: str | Path | None = None):
        self._lock = threading.Lock()
        self._path = Path(path) if path else None
        self._mtime: float | None = None
        if config is None and self._path is not None:
            config = DecisionConfig.load_from_file(self._path)
            self._mtime = self._path.stat().st_mtime
        self._config = config or DecisionConfig()

    def current(self) -> DecisionConfig:
        return self._config

    def update(self, config: DecisionConfig) -> None:
        """Atomically install a new snapshot (takes effect from the next decision)."""
        with self._lock:
            self._config = config
        logger.info(f"Decision config updated (alpha={config.alpha:.2f})")

    def set_alpha(self, alpha: float) -> DecisionConfig:
        """Adjust the blend baseline at runtime; validated against [0.3, 0.9]."""
        try:
            updated = DecisionConfig.model_validate({**self._config.model_dump(), "alpha": alpha})
        except ValidationError as e:
            raise ConfigError("bad_alpha", f"alpha {alpha} rejected: {e}") from e
        self.update(updated)
        return updated

    def reload_if_changed(self) -> bool:
        """Re-read the backing file if it changed. Invalid files keep the old snapshot."""
        if self._path is None or not self._path.exists():
            return False
        mtime = self._path.stat().st_mtime
        if self._mtime is not None and mtime == self._mtime:
            return False
        try:
            config = DecisionConfig.load_from_file(self._path)
        except ConfigError as e:
            logger.error(f"Keeping previous decision config: {e.message}")
            return False
        self._mtime = mtime
        self.update(config)
        return True
