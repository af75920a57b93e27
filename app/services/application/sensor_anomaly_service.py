"""
Sensor Anomaly Service
======================
Evaluates gas-sensor reading batches against tiered thresholds, the previous
reading and a physical plausibility envelope, throttles repeats, and persists
the surviving alerts.

Each sensor in a batch goes through three independent checks, in order:

1. threshold band (critical, then warning, then normal; first match wins)
2. sudden spike / drop against the previous reading of the same sensor
3. malfunction (value outside the critical band widened by 50%)

The previous-reading table is updated after the spike check whether or not
anything fired. Candidates then pass the cooldown guard keyed by
``(sensor_type, alert_type)``. All in-memory state transitions for a batch
happen under ``AnomalyState.lock``; threshold lookups run before it and
persistence after it.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Mapping

from app.domain.anomaly_alert import (
    DEFAULT_FARMNO,
    DEFAULT_ZONE,
    AnomalyAlert,
    ReadingBatch,
    message_fields,
    render_alert_message,
)
from app.domain.exceptions import FarmWatchError, NotFoundError, ValidationError
from app.domain.sensor_threshold import DEFAULT_THRESHOLDS, SensorThreshold
from app.enums import AlertSeverity, AlertType, ResolveOutcome, StatsPeriod
from app.services.utilities.anomaly_state import AnomalyState
from app.utils.time import to_iso, utc_now

if TYPE_CHECKING:
    from infrastructure.database.repositories.sensor_alerts import AlertPage, SensorAlertRepository
    from infrastructure.database.repositories.sensor_thresholds import SensorThresholdRepository

logger = logging.getLogger(__name__)

# In-band values for the canonical gas sensors, used by the test trigger.
TEST_BATCH_BASELINE: dict[str, float] = {"mq4": 20.0, "mq136": 25.0, "mq137": 15.0}


@dataclass(frozen=True)
class Detection:
    """One candidate alert before throttling and persistence."""

    alert_type: AlertType
    severity: AlertSeverity
    threshold_value: float | None = None
    previous_value: float | None = None


@dataclass
class EvaluationResult:
    alerts: list[AnomalyAlert] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failures: list[dict[str, Any]] = field(default_factory=list)
    suppressed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "alerts": [a.to_dict() for a in self.alerts],
            "alert_count": len(self.alerts),
            "skipped": list(self.skipped),
            "failures": list(self.failures),
            "suppressed": self.suppressed,
        }


# ---------------------------------------------------------------------------
# Pure checks
# ---------------------------------------------------------------------------

def classify_threshold(threshold: SensorThreshold, value: float) -> Detection | None:
    """Tiered band check, widest severity first."""
    bands = (
        (AlertSeverity.CRITICAL, threshold.critical_min, threshold.critical_max),
        (AlertSeverity.HIGH, threshold.warning_min, threshold.warning_max),
        (AlertSeverity.MEDIUM, threshold.normal_min, threshold.normal_max),
    )
    for severity, low, high in bands:
        if value > high:
            return Detection(AlertType.THRESHOLD_HIGH, severity, threshold_value=high)
        if value < low:
            return Detection(AlertType.THRESHOLD_LOW, severity, threshold_value=low)
    return None


def detect_spike(threshold: SensorThreshold, value: float, previous: float | None) -> Detection | None:
    if previous is None:
        return None
    delta = abs(value - previous)
    if delta <= threshold.spike_threshold:
        return None
    alert_type = AlertType.SUDDEN_SPIKE if value > previous else AlertType.SUDDEN_DROP
    severity = AlertSeverity.CRITICAL if delta > 2 * threshold.spike_threshold else AlertSeverity.HIGH
    return Detection(
        alert_type,
        severity,
        threshold_value=threshold.spike_threshold,
        previous_value=previous,
    )


def detect_malfunction(threshold: SensorThreshold, value: float) -> Detection | None:
    if threshold.absolute_min <= value <= threshold.absolute_max:
        return None
    return Detection(AlertType.SENSOR_MALFUNCTION, AlertSeverity.CRITICAL)


def coerce_reading(value: Any) -> float | None:
    """Numeric reading or None. Booleans, NaN and infinities are not readings."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


class SensorAnomalyService:
    """Anomaly evaluation plus the threshold and alert query operations around it."""

    def __init__(
        self,
        threshold_repo: "SensorThresholdRepository",
        alert_repo: "SensorAlertRepository",
        state: AnomalyState,
        clock: Callable[[], datetime] = utc_now,
        *,
        default_farmno: str = DEFAULT_FARMNO,
        default_zone: str = DEFAULT_ZONE,
        seed_defaults: bool = True,
        validate_bands: bool = True,
    ) -> None:
        self._thresholds = threshold_repo
        self._alerts = alert_repo
        self._state = state
        self._clock = clock
        self.default_farmno = default_farmno
        self.default_zone = default_zone
        self.seed_defaults = seed_defaults
        self.validate_bands = validate_bands

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def evaluate_payload(self, payload: Mapping[str, Any]) -> EvaluationResult:
        batch = ReadingBatch.from_payload(
            payload,
            default_farmno=self.default_farmno,
            default_zone=self.default_zone,
        )
        return self.check_sensor_anomalies(batch)

    def check_sensor_anomalies(self, batch: ReadingBatch) -> EvaluationResult:
        """Evaluate one batch; returns the alerts that were persisted."""
        result = EvaluationResult()

        readings: list[tuple[str, float, SensorThreshold]] = []
        for sensor_type, raw in batch.readings.items():
            if raw is None:
                continue
            value = coerce_reading(raw)
            if value is None:
                logger.warning("Ignoring non-numeric reading for %s: %r", sensor_type, raw)
                result.skipped.append(sensor_type)
                continue
            threshold = self._thresholds.get_enabled(sensor_type)
            if threshold is None:
                logger.info("No enabled threshold for %s; skipping", sensor_type)
                result.skipped.append(sensor_type)
                continue
            readings.append((sensor_type, value, threshold))

        now = self._clock()
        created_at = to_iso(now)
        candidates: list[AnomalyAlert] = []

        with self._state.lock:
            for sensor_type, value, threshold in readings:
                try:
                    detections = self._detect(threshold, value)
                except Exception as exc:  # a bad reading must not stop the batch
                    logger.exception("Anomaly checks failed for %s=%r", sensor_type, value)
                    result.failures.append(
                        {"sensor_type": sensor_type, "alert_type": None, "error": str(exc)}
                    )
                    continue

                for detection in detections:
                    if not self._state.cooldown.should_fire(sensor_type, detection.alert_type, now):
                        result.suppressed += 1
                        continue
                    candidates.append(self._build_alert(threshold, value, detection, batch, created_at))

        for alert in candidates:
            try:
                result.alerts.append(self._alerts.create(alert))
            except FarmWatchError as exc:
                logger.error("Could not persist %s alert for %s: %s", alert.alert_type, alert.sensor_type, exc)
                result.failures.append(
                    {
                        "sensor_type": alert.sensor_type,
                        "alert_type": alert.alert_type.value,
                        "error": str(exc),
                    }
                )

        if result.alerts:
            logger.info(
                "Farm %s zone %s: %d anomaly alert(s) raised (%s)",
                batch.farmno,
                batch.zone,
                len(result.alerts),
                ", ".join(f"{a.sensor_type}:{a.alert_type}" for a in result.alerts),
            )
        return result

    def _detect(self, threshold: SensorThreshold, value: float) -> list[Detection]:
        # Caller holds the state lock: the history read and write must not interleave.
        previous = self._state.history.get(threshold.sensor_type)
        found = [
            classify_threshold(threshold, value),
            detect_spike(threshold, value, previous),
        ]
        self._state.history.set(threshold.sensor_type, value)
        found.append(detect_malfunction(threshold, value))
        return [d for d in found if d is not None]

    @staticmethod
    def _build_alert(
        threshold: SensorThreshold,
        value: float,
        detection: Detection,
        batch: ReadingBatch,
        created_at: str,
    ) -> AnomalyAlert:
        fields = message_fields(
            alert_type=detection.alert_type,
            sensor_name=threshold.sensor_name,
            severity=detection.severity,
            current_value=value,
            unit=threshold.unit,
            threshold_value=detection.threshold_value,
            previous_value=detection.previous_value,
        )
        return AnomalyAlert(
            sensor_type=threshold.sensor_type,
            sensor_name=threshold.sensor_name,
            alert_type=detection.alert_type,
            current_value=value,
            threshold_value=detection.threshold_value,
            previous_value=detection.previous_value,
            severity=detection.severity,
            message=render_alert_message(fields),
            farmno=batch.farmno,
            zone=batch.zone,
            created_at=created_at,
        )

    def run_test_alert(
        self,
        sensor_type: str = "mq4",
        value: float = 55.0,
        farmno: str | None = None,
        zone: str | None = None,
    ) -> EvaluationResult:
        """Evaluate the canonical gas batch with *sensor_type* forced to *value*."""
        readings: dict[str, Any] = dict(TEST_BATCH_BASELINE)
        readings[sensor_type] = value
        batch = ReadingBatch(
            readings=readings,
            farmno=farmno or self.default_farmno,
            zone=zone or self.default_zone,
        )
        logger.info("Running test evaluation with %s=%s", sensor_type, value)
        return self.check_sensor_anomalies(batch)

    def state_snapshot(self) -> dict[str, Any]:
        return self._state.snapshot()

    def reset_state(self) -> None:
        self._state.reset()

    # ------------------------------------------------------------------
    # Thresholds
    # ------------------------------------------------------------------

    def get_thresholds(self) -> list[SensorThreshold]:
        thresholds = self._thresholds.list_all()
        if not thresholds and self.seed_defaults:
            self.seed_default_thresholds()
            thresholds = self._thresholds.list_all()
        return thresholds

    def get_threshold(self, sensor_type: str) -> SensorThreshold:
        threshold = self._thresholds.get(sensor_type)
        if threshold is None:
            raise NotFoundError(f"No threshold for sensor type '{sensor_type}'", detail={"sensor_type": sensor_type})
        return threshold

    def seed_default_thresholds(self) -> int:
        return self._thresholds.upsert_defaults(DEFAULT_THRESHOLDS)

    def create_threshold(self, threshold: SensorThreshold) -> SensorThreshold:
        self._check_bands(threshold)
        self._thresholds.create(threshold)
        logger.info("Registered threshold for %s", threshold.sensor_type)
        return self.get_threshold(threshold.sensor_type)

    def update_threshold(self, sensor_type: str, changes: Mapping[str, Any]) -> SensorThreshold:
        current = self.get_threshold(sensor_type)
        try:
            merged = current.with_updates(changes)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid threshold value: {exc}") from exc
        self._check_bands(merged)
        if not self._thresholds.update(sensor_type, changes):
            raise NotFoundError(f"No threshold for sensor type '{sensor_type}'", detail={"sensor_type": sensor_type})
        logger.info("Updated threshold for %s: %s", sensor_type, sorted(changes))
        return self.get_threshold(sensor_type)

    def delete_threshold(self, sensor_type: str) -> None:
        if not self._thresholds.delete(sensor_type):
            raise NotFoundError(f"No threshold for sensor type '{sensor_type}'", detail={"sensor_type": sensor_type})
        logger.info("Deleted threshold for %s", sensor_type)

    def _check_bands(self, threshold: SensorThreshold) -> None:
        if not self.validate_bands:
            return
        problems = threshold.band_violations()
        if problems:
            raise ValidationError(
                f"Threshold bands for '{threshold.sensor_type}' do not nest",
                detail={"problems": problems},
            )

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    def list_alerts(
        self,
        *,
        severity: str | None = None,
        sensor_type: str | None = None,
        resolved: bool | None = None,
        farmno: str | None = None,
        zone: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> "AlertPage":
        return self._alerts.list(
            severity=severity,
            sensor_type=sensor_type,
            resolved=resolved,
            farmno=farmno or self.default_farmno,
            zone=zone or self.default_zone,
            limit=limit,
            offset=offset,
        )

    def get_alert(self, alert_id: int) -> AnomalyAlert:
        alert = self._alerts.get(alert_id)
        if alert is None:
            raise NotFoundError(f"Alert {alert_id} not found", detail={"alert_id": alert_id})
        return alert

    def unresolved_count(self, farmno: str | None = None, zone: str | None = None) -> int:
        return self._alerts.unresolved_count(farmno or self.default_farmno, zone or self.default_zone)

    def resolve_alert(self, alert_id: int) -> ResolveOutcome:
        outcome = self._alerts.resolve(alert_id, resolved_at=to_iso(self._clock()))
        if outcome is ResolveOutcome.NOT_FOUND:
            raise NotFoundError(f"Alert {alert_id} not found", detail={"alert_id": alert_id})
        return outcome

    def resolve_all(self, farmno: str | None = None, zone: str | None = None) -> int:
        return self._alerts.resolve_all(
            farmno or self.default_farmno,
            zone or self.default_zone,
            resolved_at=to_iso(self._clock()),
        )

    def alert_stats(
        self,
        period: StatsPeriod | str | None = None,
        farmno: str | None = None,
        zone: str | None = None,
    ) -> dict[str, Any]:
        if not isinstance(period, StatsPeriod):
            period = StatsPeriod.parse(period)
        return self._alerts.stats(
            farmno or self.default_farmno,
            zone or self.default_zone,
            period,
            now=self._clock(),
        )
