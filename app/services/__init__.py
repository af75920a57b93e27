"""
Service Organization
====================

**application/**
  Services held once by ServiceContainer: the anomaly evaluator with its
  threshold/alert operations, and the alert-settings notification gate.

**utilities/**
  In-process helpers without storage of their own: the history and
  cooldown tables the evaluator works against.
"""

from .application.alert_settings_service import AlertSettingsService
from .application.sensor_anomaly_service import EvaluationResult, SensorAnomalyService
from .utilities.anomaly_state import AnomalyState, CooldownGuard, HistoryTracker

__all__ = [
    "AlertSettingsService",
    "AnomalyState",
    "CooldownGuard",
    "EvaluationResult",
    "HistoryTracker",
    "SensorAnomalyService",
]
