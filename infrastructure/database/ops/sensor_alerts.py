from __future__ import annotations

import logging
import sqlite3
from typing import Any

from app.enums import ResolveOutcome
from infrastructure.database.sql_safety import build_insert_parts, safe_columns

logger = logging.getLogger(__name__)

ALERT_INSERT_COLUMNS = frozenset(
    {
        "sensor_type",
        "sensor_name",
        "alert_type",
        "current_value",
        "threshold_value",
        "previous_value",
        "severity",
        "message",
        "farmno",
        "zone",
        "created_at",
    }
)


def _location_clause(farmno: str | None, zone: str | None) -> tuple[list[str], list[Any]]:
    conditions: list[str] = []
    params: list[Any] = []
    if farmno is not None:
        conditions.append("farmno = ?")
        params.append(farmno)
    if zone is not None:
        conditions.append("zone = ?")
        params.append(zone)
    return conditions, params


class SensorAlertOperations:
    """Database operations for the SensorAnomalyAlert table."""

    def insert_sensor_alert(self, record: dict[str, Any]) -> int | None:
        cols = safe_columns(record, ALERT_INSERT_COLUMNS, context="insert_sensor_alert")
        columns_sql, placeholders, values = build_insert_parts(cols)
        try:
            with self.connection() as db:
                cur = db.execute(
                    f"INSERT INTO SensorAnomalyAlert ({columns_sql}) VALUES ({placeholders})",
                    values,
                )
                return cur.lastrowid
        except sqlite3.Error as exc:
            logger.error(
                "Failed to insert %s alert for %s: %s",
                record.get("alert_type"),
                record.get("sensor_type"),
                exc,
            )
            return None

    def get_sensor_alert(self, alert_id: int):
        try:
            db = self.get_db()
            return db.execute("SELECT * FROM SensorAnomalyAlert WHERE id = ?", (alert_id,)).fetchone()
        except sqlite3.Error as exc:
            logger.error("Failed to fetch alert %s: %s", alert_id, exc)
            return None

    def list_sensor_alerts(
        self,
        *,
        severity: str | None = None,
        sensor_type: str | None = None,
        resolved: bool | None = None,
        farmno: str | None = None,
        zone: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Any]:
        conditions, params = _location_clause(farmno, zone)
        if severity:
            conditions.append("severity = ?")
            params.append(severity)
        if sensor_type:
            conditions.append("sensor_type = ?")
            params.append(sensor_type)
        if resolved is not None:
            conditions.append("is_resolved = ?")
            params.append(1 if resolved else 0)

        query = "SELECT * FROM SensorAnomalyAlert"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])
        try:
            db = self.get_db()
            return db.execute(query, params).fetchall()
        except sqlite3.Error as exc:
            logger.error("Failed to list sensor alerts: %s", exc)
            return []

    def count_unresolved_sensor_alerts(self, farmno: str | None = None, zone: str | None = None) -> int:
        conditions, params = _location_clause(farmno, zone)
        conditions.append("is_resolved = 0")
        query = "SELECT COUNT(*) AS n FROM SensorAnomalyAlert WHERE " + " AND ".join(conditions)
        try:
            db = self.get_db()
            row = db.execute(query, params).fetchone()
            return int(row["n"]) if row else 0
        except sqlite3.Error as exc:
            logger.error("Failed to count unresolved alerts: %s", exc)
            return 0

    def resolve_sensor_alert(self, alert_id: int, resolved_at: str) -> ResolveOutcome | None:
        try:
            with self.connection() as db:
                cur = db.execute(
                    "UPDATE SensorAnomalyAlert SET is_resolved = 1, resolved_at = ? "
                    "WHERE id = ? AND is_resolved = 0",
                    (resolved_at, alert_id),
                )
                if cur.rowcount:
                    return ResolveOutcome.RESOLVED
                exists = db.execute(
                    "SELECT 1 FROM SensorAnomalyAlert WHERE id = ?", (alert_id,)
                ).fetchone()
                return ResolveOutcome.ALREADY_RESOLVED if exists else ResolveOutcome.NOT_FOUND
        except sqlite3.Error as exc:
            logger.error("Failed to resolve alert %s: %s", alert_id, exc)
            return None

    def resolve_all_sensor_alerts(self, farmno: str, zone: str, resolved_at: str) -> int:
        try:
            with self.connection() as db:
                cur = db.execute(
                    "UPDATE SensorAnomalyAlert SET is_resolved = 1, resolved_at = ? "
                    "WHERE farmno = ? AND zone = ? AND is_resolved = 0",
                    (resolved_at, farmno, zone),
                )
                return cur.rowcount
        except sqlite3.Error as exc:
            logger.error("Failed to resolve alerts for farm %s zone %s: %s", farmno, zone, exc)
            return 0

    def sensor_alert_stats(self, farmno: str, zone: str, since: str, daily_since: str) -> dict[str, Any]:
        """Aggregate counts for one location.

        *since* bounds the summary, per-sensor and per-type figures; *daily_since*
        bounds the day-by-day series.
        """
        location = (farmno, zone)
        try:
            db = self.get_db()
            summary = db.execute(
                """
                SELECT
                    COUNT(*) AS total_alerts,
                    COALESCE(SUM(CASE WHEN is_resolved = 0 THEN 1 ELSE 0 END), 0) AS unresolved_alerts,
                    COALESCE(SUM(CASE WHEN severity = 'critical' THEN 1 ELSE 0 END), 0) AS critical_alerts,
                    COALESCE(SUM(CASE WHEN severity = 'high' THEN 1 ELSE 0 END), 0) AS high_alerts,
                    COALESCE(SUM(CASE WHEN severity = 'medium' THEN 1 ELSE 0 END), 0) AS medium_alerts,
                    COALESCE(SUM(CASE WHEN severity = 'low' THEN 1 ELSE 0 END), 0) AS low_alerts
                FROM SensorAnomalyAlert
                WHERE farmno = ? AND zone = ? AND created_at >= ?
                """,
                (*location, since),
            ).fetchone()
            by_sensor = db.execute(
                """
                SELECT
                    sensor_type,
                    sensor_name,
                    COUNT(*) AS alert_count,
                    SUM(CASE WHEN is_resolved = 0 THEN 1 ELSE 0 END) AS unresolved_count,
                    SUM(CASE WHEN severity = 'critical' THEN 1 ELSE 0 END) AS critical_count
                FROM SensorAnomalyAlert
                WHERE farmno = ? AND zone = ? AND created_at >= ?
                GROUP BY sensor_type, sensor_name
                ORDER BY alert_count DESC, sensor_type
                """,
                (*location, since),
            ).fetchall()
            daily = db.execute(
                """
                SELECT
                    substr(created_at, 1, 10) AS date,
                    COUNT(*) AS alert_count,
                    SUM(CASE WHEN severity = 'critical' THEN 1 ELSE 0 END) AS critical_count
                FROM SensorAnomalyAlert
                WHERE farmno = ? AND zone = ? AND created_at >= ?
                GROUP BY substr(created_at, 1, 10)
                ORDER BY date DESC
                """,
                (*location, daily_since),
            ).fetchall()
            by_type = db.execute(
                """
                SELECT
                    alert_type,
                    COUNT(*) AS count,
                    SUM(CASE WHEN severity = 'critical' THEN 1 ELSE 0 END) AS critical_count
                FROM SensorAnomalyAlert
                WHERE farmno = ? AND zone = ? AND created_at >= ?
                GROUP BY alert_type
                ORDER BY count DESC, alert_type
                """,
                (*location, since),
            ).fetchall()
        except sqlite3.Error as exc:
            logger.error("Failed to compute alert stats for farm %s zone %s: %s", farmno, zone, exc)
            return {}

        return {
            "summary": dict(summary) if summary else {},
            "by_sensor": [dict(r) for r in by_sensor],
            "daily": [dict(r) for r in daily],
            "by_type": [dict(r) for r in by_type],
        }
