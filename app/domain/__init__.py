"""
Domain Package
==============
Dataclasses for thresholds, alerts and delivery preferences, plus the
exception hierarchy.
"""

from .alert_settings import AlertSettings, NotificationDecision
from .anomaly_alert import (
    AlertMessageFields,
    AnomalyAlert,
    ReadingBatch,
    message_fields,
    render_alert_message,
)
from .sensor_threshold import DEFAULT_THRESHOLDS, SensorThreshold

__all__ = [
    # Thresholds
    "SensorThreshold",
    "DEFAULT_THRESHOLDS",
    # Alerts
    "AnomalyAlert",
    "AlertMessageFields",
    "ReadingBatch",
    "message_fields",
    "render_alert_message",
    # Delivery preferences
    "AlertSettings",
    "NotificationDecision",
]
