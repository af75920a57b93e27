"""Sensor Anomaly API
===================

Alert history, thresholds, delivery preferences and on-demand evaluation for
the gas-sensor anomaly engine.

Routes (prefix ``/api/v1/sensor-anomaly``):
    GET    /alerts                     list alerts (severity, sensor_type, resolved, farmno, zone, limit, offset)
    GET    /alerts/unresolved-count    unresolved count for a farm/zone
    GET    /alerts/<id>                single alert
    PUT    /alerts/<id>/resolve        resolve one alert
    PUT    /alerts/resolve-all         resolve every open alert for a farm/zone
    GET    /stats                      alert statistics (period=1d|7d|30d)
    GET    /thresholds                 list thresholds (seeds defaults when empty)
    POST   /thresholds/defaults        seed default thresholds
    GET    /thresholds/<sensor_type>   single threshold
    POST   /thresholds                 register a sensor type
    PUT    /thresholds/<sensor_type>   partial threshold update
    DELETE /thresholds/<sensor_type>   remove a sensor type
    GET    /settings                   alert delivery preferences of the session user
    PUT    /settings                   update those preferences
    POST   /evaluate                   evaluate a reading batch
    POST   /test-alert                 evaluate the canonical test batch
    GET    /state                      in-memory history and cooldown snapshot
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, request
from pydantic import ValidationError

from app.blueprints.api._common import (
    get_alert_settings_service as _settings_service,
    get_anomaly_service as _service,
    get_json,
    get_user_id,
    invalid_payload,
    query_bool,
    query_int,
    success as _success,
)
from app.domain import exceptions
from app.domain.anomaly_alert import ReadingBatch
from app.domain.sensor_threshold import SensorThreshold
from app.enums import AlertSeverity, StatsPeriod
from app.schemas import (
    AlertSettingsUpdate,
    EvaluateRequest,
    AlertTriggerRequest,
    ThresholdCreateRequest,
    ThresholdUpdateRequest,
)
from app.utils.http import safe_route
from infrastructure.database.pagination import PaginationParams

logger = logging.getLogger(__name__)

sensor_anomaly_api = Blueprint("sensor_anomaly_api", __name__)


def _location() -> tuple[str | None, str | None]:
    return request.args.get("farmno"), request.args.get("zone")


# ============================================================================
# Alerts
# ============================================================================

@sensor_anomaly_api.get("/alerts")
@safe_route("Failed to list alerts")
def list_alerts() -> Response:
    severity = request.args.get("severity") or None
    if severity is not None and severity not in {s.value for s in AlertSeverity}:
        raise exceptions.ValidationError(f"Unknown severity '{severity}'", detail={"field": "severity"})
    page = PaginationParams.from_request(query_int("limit"), query_int("offset"))

    farmno, zone = _location()
    result = _service().list_alerts(
        severity=severity,
        sensor_type=request.args.get("sensor_type") or None,
        resolved=query_bool("resolved"),
        farmno=farmno,
        zone=zone,
        limit=page.limit,
        offset=page.offset,
    )
    data = result.to_dict()
    data["pagination"] = page.describe(len(result.alerts))
    return _success(data)


@sensor_anomaly_api.get("/alerts/unresolved-count")
@safe_route("Failed to count unresolved alerts")
def unresolved_count() -> Response:
    farmno, zone = _location()
    return _success({"unresolved_count": _service().unresolved_count(farmno, zone)})


@sensor_anomaly_api.get("/alerts/<int:alert_id>")
@safe_route("Failed to get alert")
def get_alert(alert_id: int) -> Response:
    return _success(_service().get_alert(alert_id).to_dict())


@sensor_anomaly_api.put("/alerts/<int:alert_id>/resolve")
@safe_route("Failed to resolve alert")
def resolve_alert(alert_id: int) -> Response:
    outcome = _service().resolve_alert(alert_id)
    return _success(
        {"id": alert_id, "outcome": outcome.value, "rows_changed": outcome.rows_changed},
        message="Alert resolved",
    )


@sensor_anomaly_api.put("/alerts/resolve-all")
@safe_route("Failed to resolve alerts")
def resolve_all_alerts() -> Response:
    body = get_json()
    farmno = body.get("farmno") or request.args.get("farmno")
    zone = body.get("zone") or request.args.get("zone")
    changed = _service().resolve_all(
        str(farmno) if farmno is not None else None,
        str(zone) if zone is not None else None,
    )
    return _success({"resolved_count": changed}, message=f"{changed} alert(s) resolved")


@sensor_anomaly_api.get("/stats")
@safe_route("Failed to get alert statistics")
def alert_stats() -> Response:
    farmno, zone = _location()
    period = StatsPeriod.parse(request.args.get("period"))
    return _success(_service().alert_stats(period, farmno, zone))


# ============================================================================
# Thresholds
# ============================================================================

@sensor_anomaly_api.get("/thresholds")
@safe_route("Failed to list thresholds")
def list_thresholds() -> Response:
    return _success([t.to_dict() for t in _service().get_thresholds()])


@sensor_anomaly_api.post("/thresholds/defaults")
@safe_route("Failed to seed default thresholds")
def seed_default_thresholds() -> Response:
    inserted = _service().seed_default_thresholds()
    return _success({"inserted": inserted}, message=f"{inserted} default threshold(s) added")


@sensor_anomaly_api.get("/thresholds/<sensor_type>")
@safe_route("Failed to get threshold")
def get_threshold(sensor_type: str) -> Response:
    return _success(_service().get_threshold(sensor_type).to_dict())


@sensor_anomaly_api.post("/thresholds")
@safe_route("Failed to create threshold")
def create_threshold() -> Response:
    try:
        payload = ThresholdCreateRequest(**get_json())
    except ValidationError as ve:
        return invalid_payload("Invalid threshold payload", ve)

    created = _service().create_threshold(SensorThreshold(**payload.model_dump()))
    return _success(created.to_dict(), 201, message="Threshold created")


@sensor_anomaly_api.put("/thresholds/<sensor_type>")
@safe_route("Failed to update threshold")
def update_threshold(sensor_type: str) -> Response:
    try:
        payload = ThresholdUpdateRequest(**get_json())
    except ValidationError as ve:
        return invalid_payload("Invalid threshold payload", ve)

    updated = _service().update_threshold(sensor_type, payload.changes())
    return _success(updated.to_dict(), message="Threshold updated")


@sensor_anomaly_api.delete("/thresholds/<sensor_type>")
@safe_route("Failed to delete threshold")
def delete_threshold(sensor_type: str) -> Response:
    _service().delete_threshold(sensor_type)
    return _success({"sensor_type": sensor_type}, message="Threshold deleted")


# ============================================================================
# Delivery preferences
# ============================================================================

@sensor_anomaly_api.get("/settings")
@safe_route("Failed to get alert settings")
def get_settings() -> Response:
    return _success(_settings_service().get_settings(get_user_id()).to_dict())


@sensor_anomaly_api.put("/settings")
@safe_route("Failed to update alert settings")
def update_settings() -> Response:
    try:
        payload = AlertSettingsUpdate(**get_json())
    except ValidationError as ve:
        return invalid_payload("Invalid alert settings payload", ve)

    settings = _settings_service().update_settings(get_user_id(), payload.changes())
    return _success(settings.to_dict(), message="Alert settings updated")


# ============================================================================
# Evaluation
# ============================================================================

@sensor_anomaly_api.post("/evaluate")
@safe_route("Failed to evaluate readings")
def evaluate() -> Response:
    """Evaluate one batch.

    Accepts ``{"readings": {...}, "location": {"farmno", "zone"}}`` or the
    flat ``{"mq4": 65, "farmno": "1", "zone": "A"}`` shape. Each returned
    alert is paired with the delivery decision for the session user.
    """
    body = get_json()
    service = _service()

    if "readings" in body:
        try:
            payload = EvaluateRequest(**body)
        except ValidationError as ve:
            return invalid_payload("Invalid reading batch", ve)
        batch = ReadingBatch(
            readings=payload.readings,
            farmno=payload.location.farmno or service.default_farmno,
            zone=payload.location.zone or service.default_zone,
        )
    else:
        batch = ReadingBatch.from_payload(
            body,
            default_farmno=service.default_farmno,
            default_zone=service.default_zone,
        )
        if not batch.readings:
            raise exceptions.ValidationError("Reading batch is empty")

    result = service.check_sensor_anomalies(batch)
    decisions = _settings_service().decide_for_user(get_user_id(), result.alerts)

    data = result.to_dict()
    data["notifications"] = [d.to_dict() for d in decisions]
    return _success(data)


@sensor_anomaly_api.post("/test-alert")
@safe_route("Failed to run test alert")
def trigger_test_alert() -> Response:
    try:
        payload = AlertTriggerRequest(**get_json())
    except ValidationError as ve:
        return invalid_payload("Invalid test alert payload", ve)

    result = _service().run_test_alert(payload.sensor_type, payload.value, payload.farmno, payload.zone)
    return _success(result.to_dict(), message=f"Test evaluation produced {len(result.alerts)} alert(s)")


@sensor_anomaly_api.get("/state")
@safe_route("Failed to read anomaly state")
def anomaly_state() -> Response:
    return _success(_service().state_snapshot())
