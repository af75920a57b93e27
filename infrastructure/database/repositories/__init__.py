"""Repository facades exposing typed accessors over the low-level ops mixins."""

from infrastructure.database.repositories.alert_settings import AlertSettingsRepository
from infrastructure.database.repositories.sensor_alerts import AlertPage, SensorAlertRepository
from infrastructure.database.repositories.sensor_thresholds import SensorThresholdRepository

__all__ = [
    "AlertPage",
    "AlertSettingsRepository",
    "SensorAlertRepository",
    "SensorThresholdRepository",
]
