"""Reading batches, alert messages and threshold band checks."""

from __future__ import annotations

from dataclasses import replace

import pytest

from app.domain.anomaly_alert import AnomalyAlert, ReadingBatch, message_fields, render_alert_message
from app.domain.exceptions import ValidationError
from app.domain.sensor_threshold import DEFAULT_THRESHOLDS
from app.enums import AlertSeverity, AlertType, StatsPeriod


def test_flat_payload_splits_location_from_readings():
    batch = ReadingBatch.from_payload({"mq4": 65, "mq136": None, "farmno": 3, "zone": "C"})
    assert batch.readings == {"mq4": 65, "mq136": None}
    assert (batch.farmno, batch.zone) == ("3", "C")


def test_nested_payload():
    batch = ReadingBatch.from_payload({"readings": {"mq4": 65}, "location": {"farmno": "2"}})
    assert batch.readings == {"mq4": 65}
    assert (batch.farmno, batch.zone) == ("2", "A")


def test_payload_defaults_location():
    batch = ReadingBatch.from_payload({"mq4": 1}, default_farmno="9", default_zone="Z")
    assert (batch.farmno, batch.zone) == ("9", "Z")


@pytest.mark.parametrize("location", ["farm-1", ["1", "A"], 7])
def test_payload_location_must_be_an_object(location):
    with pytest.raises(ValidationError) as info:
        ReadingBatch.from_payload({"mq4": 65, "location": location})
    assert info.value.detail == {"field": "location"}


@pytest.mark.parametrize(
    "alert_type, severity, kwargs, expected",
    [
        (
            AlertType.THRESHOLD_LOW,
            AlertSeverity.MEDIUM,
            {"current_value": 4.0, "threshold_value": 5.0},
            "Methane gas sensor Warning alert: reading 4 fell below the threshold 5.",
        ),
        (
            AlertType.SUDDEN_SPIKE,
            AlertSeverity.HIGH,
            {"current_value": 40.0, "previous_value": 20.0, "threshold_value": 15.0},
            "Methane gas sensor Danger alert: reading rose sharply from 20 to 40 (change: 20.0).",
        ),
        (
            AlertType.SENSOR_MALFUNCTION,
            AlertSeverity.CRITICAL,
            {"current_value": 120.5},
            "Abnormal value detected on Methane gas sensor; the sensor needs inspection (reading: 120.5ppm).",
        ),
    ],
)
def test_render_alert_message(alert_type, severity, kwargs, expected):
    fields = message_fields(
        alert_type=alert_type,
        sensor_name="Methane gas sensor",
        severity=severity,
        unit="ppm",
        **kwargs,
    )
    assert render_alert_message(fields) == expected


def test_message_fields_are_structured():
    fields = message_fields(
        alert_type=AlertType.SUDDEN_DROP,
        sensor_name="Ammonia gas sensor",
        severity=AlertSeverity.CRITICAL,
        current_value=5.0,
        previous_value=40.0,
    )
    assert fields.severity_label == "Severe"
    assert fields.direction == "dropped sharply"
    assert fields.delta == 35.0
    assert not hasattr(fields, "extra")


def test_alert_row_round_trip_uses_enum_values():
    row = {
        "id": 4,
        "sensor_type": "mq4",
        "sensor_name": "Methane gas sensor",
        "alert_type": "sudden_spike",
        "current_value": 40,
        "threshold_value": 15,
        "previous_value": 20,
        "severity": "high",
        "message": "m",
        "farmno": "1",
        "zone": "A",
        "is_resolved": 1,
        "resolved_at": "2026-01-05T10:00:00+00:00",
        "created_at": "2026-01-05T09:00:00+00:00",
    }
    alert = AnomalyAlert.from_row(row)
    assert alert.alert_type is AlertType.SUDDEN_SPIKE
    assert alert.is_resolved is True
    assert alert.to_dict()["severity"] == "high"
    assert alert.to_dict()["current_value"] == 40.0


def test_default_thresholds_nest():
    for threshold in DEFAULT_THRESHOLDS:
        assert threshold.band_violations() == []


def test_band_violations_describe_each_problem():
    broken = replace(DEFAULT_THRESHOLDS[0], normal_min=50.0, spike_threshold=0.0)
    problems = broken.band_violations()
    assert "normal_min (50.0) is greater than normal_max (35.0)" in problems
    assert "warning_min must not exceed normal_min" not in problems
    assert "spike_threshold must be positive" in problems


def test_with_updates_ignores_identity_fields():
    updated = DEFAULT_THRESHOLDS[0].with_updates({"normal_max": "40", "sensor_type": "x", "enabled": 0})
    assert updated.normal_max == 40.0
    assert updated.sensor_type == "mq4"
    assert updated.enabled is False


def test_stats_period_parse():
    assert StatsPeriod.parse("30d").days == 30
    assert StatsPeriod.parse(None) is StatsPeriod.SEVEN_DAYS
    assert StatsPeriod.parse("1y") is StatsPeriod.SEVEN_DAYS
