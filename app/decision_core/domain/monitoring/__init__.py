"""Monitoring domain - health alerts and decision trace recording."""
from decision_core.domain.monitoring.alerts import HealthEvent, HealthEventType, HealthMonitor
from decision_core.domain.monitoring.recorder import DecisionRecorder, SessionRecord

__all__ = ["DecisionRecorder", "HealthEvent", "HealthEventType", "HealthMonitor", "SessionRecord"]
