from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from app.domain.anomaly_alert import AnomalyAlert
from app.domain.exceptions import RepositoryError
from app.enums import ResolveOutcome, StatsPeriod
from app.utils.time import iso_now, to_iso, utc_now
from infrastructure.database.ops.sensor_alerts import SensorAlertOperations

logger = logging.getLogger(__name__)

DAILY_WINDOW_DAYS = 7

_STORAGE_OWNED = ("id", "is_resolved", "resolved_at")


@dataclass(frozen=True)
class AlertPage:
    alerts: list[AnomalyAlert] = field(default_factory=list)
    unresolved_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "alerts": [a.to_dict() for a in self.alerts],
            "unresolved_count": self.unresolved_count,
        }


@dataclass(frozen=True)
class SensorAlertRepository:
    """Repository facade over the SensorAnomalyAlert table."""

    _backend: SensorAlertOperations

    def create(self, alert: AnomalyAlert) -> AnomalyAlert:
        """Persist *alert*; returns a copy carrying its id and created_at."""
        created_at = alert.created_at or iso_now(timespec="seconds")
        record = alert.to_dict()
        for key in _STORAGE_OWNED:
            record.pop(key, None)
        record["created_at"] = created_at
        alert_id = self._backend.insert_sensor_alert(record)
        if alert_id is None:
            raise RepositoryError(
                f"Failed to store {alert.alert_type} alert for {alert.sensor_type}",
                detail={"sensor_type": alert.sensor_type, "alert_type": alert.alert_type.value},
            )
        return alert.persisted(alert_id, created_at)

    def get(self, alert_id: int) -> AnomalyAlert | None:
        row = self._backend.get_sensor_alert(alert_id)
        return AnomalyAlert.from_row(row) if row else None

    def list(
        self,
        *,
        severity: str | None = None,
        sensor_type: str | None = None,
        resolved: bool | None = None,
        farmno: str | None = None,
        zone: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> AlertPage:
        rows = self._backend.list_sensor_alerts(
            severity=severity,
            sensor_type=sensor_type,
            resolved=resolved,
            farmno=farmno,
            zone=zone,
            limit=limit,
            offset=offset,
        )
        return AlertPage(
            alerts=[AnomalyAlert.from_row(r) for r in rows],
            unresolved_count=self.unresolved_count(farmno, zone),
        )

    def unresolved_count(self, farmno: str | None = None, zone: str | None = None) -> int:
        return self._backend.count_unresolved_sensor_alerts(farmno, zone)

    def resolve(self, alert_id: int, *, resolved_at: str | None = None) -> ResolveOutcome:
        outcome = self._backend.resolve_sensor_alert(alert_id, resolved_at or iso_now(timespec="seconds"))
        if outcome is None:
            raise RepositoryError(f"Failed to resolve alert {alert_id}")
        return outcome

    def resolve_all(self, farmno: str, zone: str, *, resolved_at: str | None = None) -> int:
        changed = self._backend.resolve_all_sensor_alerts(farmno, zone, resolved_at or iso_now(timespec="seconds"))
        logger.info("Resolved %d alerts for farm %s zone %s", changed, farmno, zone)
        return changed

    def stats(
        self,
        farmno: str,
        zone: str,
        period: StatsPeriod = StatsPeriod.SEVEN_DAYS,
        *,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        now = now or utc_now()
        since = to_iso(now - timedelta(days=period.days))
        daily_since = to_iso(now - timedelta(days=DAILY_WINDOW_DAYS))
        data = self._backend.sensor_alert_stats(farmno, zone, since, daily_since)
        return {
            "period": period.value,
            "farmno": farmno,
            "zone": zone,
            "summary": data.get("summary", {}),
            "by_sensor": data.get("by_sensor", []),
            "daily": data.get("daily", []),
            "by_type": data.get("by_type", []),
        }
