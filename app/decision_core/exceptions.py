"""
Domain exceptions for the decision core.

Every error here is recoverable inside a decision: the strategy engine maps
each one to a fallback path and still emits a StrategyDecision.
"""


class DecisionCoreError(Exception):
    """Base exception for decision-core errors."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


class GameStateError(DecisionCoreError):
    """Malformed or inconsistent game state."""

    pass


class ConfigError(DecisionCoreError):
    """Invalid configuration snapshot."""

    pass


class SolverError(DecisionCoreError):
    """The GTO solver could not produce a solution."""

    pass


class AgentError(DecisionCoreError):
    """Error related to external reasoners."""

    pass


class ReasonerError(AgentError):
    """A reasoner request failed (transport or non-2xx response)."""

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__("reasoner_error", message)

    @property
    def transient(self) -> bool:
        """Rate limits and server errors are worth one retry."""
        return self.status is not None and (self.status == 429 or self.status >= 500)


class AgentValidationError(AgentError):
    """A reasoner answered, but the output is malformed or illegal."""

    def __init__(self, message: str) -> None:
        super().__init__("validation_error", message)


class AllAgentsUnavailable(AgentError):
    """Every reasoner circuit breaker is open."""

    def __init__(self, message: str = "All agent circuit breakers are open") -> None:
        super().__init__("all_agents_unavailable", message)


class BudgetExceededError(DecisionCoreError):
    """The total decision deadline is about to be breached."""

    def __init__(self, message: str) -> None:
        super().__init__("budget_exceeded", message)


class RiskViolation(DecisionCoreError):
    """A session risk limit was breached."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__("risk_violation", reason)


class CalibrationError(DecisionCoreError):
    """Weight calibration was requested with insufficient data."""

    def __init__(self, message: str) -> None:
        super().__init__("calibration_error", message)
