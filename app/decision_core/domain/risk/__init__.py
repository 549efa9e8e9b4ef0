"""Risk domain - session limits and panic stop."""
from decision_core.domain.risk.guard import RiskCheck, RiskGuard, RiskState, check_limits

__all__ = ["RiskCheck", "RiskGuard", "RiskState", "check_limits"]
