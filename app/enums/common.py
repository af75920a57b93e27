"""
Common Enumerations
====================

Closed vocabularies shared by the anomaly engine, the storage layer and the API.
Values are the exact strings persisted in SQLite and sent over the wire.
"""

from enum import Enum


class AlertType(str, Enum):
    """
    Kind of anomaly detected for a single reading.
    Used by: sensor_anomaly_service, cooldown guard keys, SensorAnomalyAlert table
    """
    THRESHOLD_HIGH = "threshold_high"
    THRESHOLD_LOW = "threshold_low"
    SUDDEN_SPIKE = "sudden_spike"
    SUDDEN_DROP = "sudden_drop"
    SENSOR_MALFUNCTION = "sensor_malfunction"

    def __str__(self) -> str:
        return self.value

    @property
    def is_threshold(self) -> bool:
        return self in (AlertType.THRESHOLD_HIGH, AlertType.THRESHOLD_LOW)

    @property
    def is_spike(self) -> bool:
        return self in (AlertType.SUDDEN_SPIKE, AlertType.SUDDEN_DROP)


class AlertSeverity(str, Enum):
    """
    Ordinal alert severity (low < medium < high < critical).
    Used by: sensor_anomaly_service, alert filters, notification gate
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    def __str__(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        """Severity word used in rendered alert messages."""
        return _SEVERITY_LABELS[self]


_SEVERITY_LABELS = {
    AlertSeverity.LOW: "Notice",
    AlertSeverity.MEDIUM: "Warning",
    AlertSeverity.HIGH: "Danger",
    AlertSeverity.CRITICAL: "Severe",
}


class ResolveOutcome(str, Enum):
    """
    Result of resolving a single alert.
    Used by: SensorAlertRepository.resolve, resolve API route
    """
    RESOLVED = "resolved"
    ALREADY_RESOLVED = "already_resolved"
    NOT_FOUND = "not_found"

    def __str__(self) -> str:
        return self.value

    @property
    def rows_changed(self) -> int:
        return 1 if self is ResolveOutcome.RESOLVED else 0


class StatsPeriod(str, Enum):
    """
    Look-back windows supported by the alert statistics query.
    """
    ONE_DAY = "1d"
    SEVEN_DAYS = "7d"
    THIRTY_DAYS = "30d"

    def __str__(self) -> str:
        return self.value

    @property
    def days(self) -> int:
        return {"1d": 1, "7d": 7, "30d": 30}[self.value]

    @classmethod
    def parse(cls, raw: str | None) -> "StatsPeriod":
        """Unknown or empty periods fall back to seven days."""
        try:
            return cls(raw) if raw else cls.SEVEN_DAYS
        except ValueError:
            return cls.SEVEN_DAYS


class NotificationChannel(str, Enum):
    """
    Delivery channels a user can enable for sensor alerts.
    Used by: alert_settings_service
    """
    EMAIL = "email"
    BROWSER = "browser"
    SOUND = "sound"

    def __str__(self) -> str:
        return self.value
