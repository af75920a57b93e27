"""
Anomaly Alert Domain Objects
============================
Dataclasses for reading batches, anomaly alerts and their rendered messages.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Mapping

from app.domain.exceptions import ValidationError
from app.enums import AlertSeverity, AlertType

DEFAULT_FARMNO = "1"
DEFAULT_ZONE = "A"

_LOCATION_KEYS = frozenset({"farmno", "zone", "location", "readings"})


@dataclass(frozen=True)
class ReadingBatch:
    """One ingestion cycle: sensor type -> value, tagged with a farm/zone."""

    readings: dict[str, Any]
    farmno: str = DEFAULT_FARMNO
    zone: str = DEFAULT_ZONE

    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any],
        *,
        default_farmno: str = DEFAULT_FARMNO,
        default_zone: str = DEFAULT_ZONE,
    ) -> "ReadingBatch":
        """Accept the flat ``{"mq4": 65, "farmno": "1"}`` shape or a nested one.

        The nested shape is ``{"readings": {...}, "location": {"farmno", "zone"}}``.
        """
        location = payload.get("location") or {}
        if not isinstance(location, Mapping):
            raise ValidationError("location must be an object with farmno and zone", detail={"field": "location"})
        farmno = payload.get("farmno", location.get("farmno", default_farmno))
        zone = payload.get("zone", location.get("zone", default_zone))

        if isinstance(payload.get("readings"), Mapping):
            readings = dict(payload["readings"])
        else:
            readings = {k: v for k, v in payload.items() if k not in _LOCATION_KEYS}

        return cls(readings=readings, farmno=str(farmno), zone=str(zone))


@dataclass(frozen=True)
class AnomalyAlert:
    """A detected anomaly. Immutable once created; only storage marks it resolved."""

    sensor_type: str
    sensor_name: str
    alert_type: AlertType
    current_value: float
    severity: AlertSeverity
    message: str
    farmno: str = DEFAULT_FARMNO
    zone: str = DEFAULT_ZONE
    threshold_value: float | None = None
    previous_value: float | None = None
    id: int | None = None
    is_resolved: bool = False
    resolved_at: str | None = None
    created_at: str | None = None

    def persisted(self, alert_id: int, created_at: str) -> "AnomalyAlert":
        return replace(self, id=alert_id, created_at=created_at)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "AnomalyAlert":
        data = dict(row)
        return cls(
            id=data.get("id"),
            sensor_type=data["sensor_type"],
            sensor_name=data.get("sensor_name") or data["sensor_type"],
            alert_type=AlertType(data["alert_type"]),
            current_value=float(data["current_value"]),
            threshold_value=_optional_float(data.get("threshold_value")),
            previous_value=_optional_float(data.get("previous_value")),
            severity=AlertSeverity(data["severity"]),
            message=data.get("message") or "",
            farmno=str(data.get("farmno", DEFAULT_FARMNO)),
            zone=str(data.get("zone", DEFAULT_ZONE)),
            is_resolved=bool(data.get("is_resolved", False)),
            resolved_at=data.get("resolved_at"),
            created_at=data.get("created_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Wire record (enum members serialised to their values)."""
        return {
            "id": self.id,
            "sensor_type": self.sensor_type,
            "sensor_name": self.sensor_name,
            "alert_type": self.alert_type.value,
            "current_value": self.current_value,
            "threshold_value": self.threshold_value,
            "previous_value": self.previous_value,
            "severity": self.severity.value,
            "message": self.message,
            "farmno": self.farmno,
            "zone": self.zone,
            "is_resolved": self.is_resolved,
            "resolved_at": self.resolved_at,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class AlertMessageFields:
    """Locale-neutral content of an alert message.

    Callers that localise messages render from these fields instead of
    parsing ``AnomalyAlert.message``.
    """

    alert_type: AlertType
    sensor_name: str
    severity: AlertSeverity
    severity_label: str
    current_value: float
    unit: str = ""
    threshold_value: float | None = None
    previous_value: float | None = None
    direction: str | None = None
    delta: float | None = None


def message_fields(
    *,
    alert_type: AlertType,
    sensor_name: str,
    severity: AlertSeverity,
    current_value: float,
    unit: str = "",
    threshold_value: float | None = None,
    previous_value: float | None = None,
) -> AlertMessageFields:
    """Collect the structured message fields for *alert_type*."""
    direction: str | None
    delta: float | None = None

    if alert_type is AlertType.THRESHOLD_HIGH:
        direction = "exceeded"
    elif alert_type is AlertType.THRESHOLD_LOW:
        direction = "fell below"
    elif alert_type is AlertType.SUDDEN_SPIKE:
        direction = "rose sharply"
    elif alert_type is AlertType.SUDDEN_DROP:
        direction = "dropped sharply"
    elif alert_type is AlertType.SENSOR_MALFUNCTION:
        direction = None
    else:  # pragma: no cover - closed enum
        raise ValueError(f"Unhandled alert type: {alert_type!r}")

    if alert_type.is_spike and previous_value is not None:
        delta = abs(current_value - previous_value)

    return AlertMessageFields(
        alert_type=alert_type,
        sensor_name=sensor_name,
        severity=severity,
        severity_label=severity.label,
        current_value=current_value,
        unit=unit,
        threshold_value=threshold_value,
        previous_value=previous_value,
        direction=direction,
        delta=delta,
    )


def render_alert_message(fields: AlertMessageFields) -> str:
    """Render the default English message for an alert."""
    kind = fields.alert_type
    head = f"{fields.sensor_name} {fields.severity_label} alert"

    if kind.is_threshold:
        return (
            f"{head}: reading {_fmt(fields.current_value)} {fields.direction} "
            f"the threshold {_fmt(fields.threshold_value)}."
        )
    if kind.is_spike:
        return (
            f"{head}: reading {fields.direction} from {_fmt(fields.previous_value)} "
            f"to {_fmt(fields.current_value)} (change: {fields.delta:.1f})."
        )
    if kind is AlertType.SENSOR_MALFUNCTION:
        return (
            f"Abnormal value detected on {fields.sensor_name}; the sensor needs inspection "
            f"(reading: {_fmt(fields.current_value)}{fields.unit})."
        )
    raise ValueError(f"Unhandled alert type: {kind!r}")


def _fmt(value: float | None) -> str:
    if value is None:
        return "n/a"
    return f"{value:g}"


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)
