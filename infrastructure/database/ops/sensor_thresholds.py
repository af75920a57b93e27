from __future__ import annotations

import logging
import sqlite3
from typing import Any, Iterable

from app.utils.time import iso_now
from infrastructure.database.sql_safety import build_insert_parts, build_set_clause, safe_columns

logger = logging.getLogger(__name__)

THRESHOLD_INSERT_COLUMNS = frozenset(
    {
        "sensor_type",
        "sensor_name",
        "unit",
        "normal_min",
        "normal_max",
        "warning_min",
        "warning_max",
        "critical_min",
        "critical_max",
        "spike_threshold",
        "enabled",
    }
)


class SensorThresholdOperations:
    """Database operations for the SensorThreshold table."""

    def get_sensor_threshold(self, sensor_type: str):
        try:
            db = self.get_db()
            cur = db.execute("SELECT * FROM SensorThreshold WHERE sensor_type = ?", (sensor_type,))
            return cur.fetchone()
        except sqlite3.Error as exc:
            logger.error("Failed to fetch threshold for %s: %s", sensor_type, exc)
            return None

    def get_sensor_thresholds(self, *, enabled_only: bool = False) -> list[Any]:
        query = "SELECT * FROM SensorThreshold"
        if enabled_only:
            query += " WHERE enabled = 1"
        query += " ORDER BY sensor_type"
        try:
            db = self.get_db()
            return db.execute(query).fetchall()
        except sqlite3.Error as exc:
            logger.error("Failed to list sensor thresholds: %s", exc)
            return []

    def insert_sensor_threshold(self, record: dict[str, Any]) -> int | None:
        cols = safe_columns(record, THRESHOLD_INSERT_COLUMNS, context="insert_sensor_threshold")
        now = iso_now(timespec="seconds")
        cols["created_at"] = now
        cols["updated_at"] = now
        columns_sql, placeholders, values = build_insert_parts(cols)
        try:
            with self.connection() as db:
                cur = db.execute(
                    f"INSERT INTO SensorThreshold ({columns_sql}) VALUES ({placeholders})",
                    values,
                )
                return cur.lastrowid
        except sqlite3.IntegrityError as exc:
            logger.warning("Threshold for %s already exists: %s", record.get("sensor_type"), exc)
            return None
        except sqlite3.Error as exc:
            logger.error("Failed to insert threshold for %s: %s", record.get("sensor_type"), exc)
            return None

    def insert_default_thresholds(self, records: Iterable[dict[str, Any]]) -> int:
        """INSERT OR IGNORE each record; returns how many rows were new."""
        inserted = 0
        now = iso_now(timespec="seconds")
        try:
            with self.connection() as db:
                for record in records:
                    cols = safe_columns(record, THRESHOLD_INSERT_COLUMNS, context="insert_default_thresholds")
                    cols["created_at"] = now
                    cols["updated_at"] = now
                    columns_sql, placeholders, values = build_insert_parts(cols)
                    cur = db.execute(
                        f"INSERT OR IGNORE INTO SensorThreshold ({columns_sql}) VALUES ({placeholders})",
                        values,
                    )
                    inserted += cur.rowcount
        except sqlite3.Error as exc:
            inserted = 0
            logger.error("Failed to seed default thresholds: %s", exc)
        return inserted

    def update_sensor_threshold(self, sensor_type: str, fields: dict[str, Any]) -> int | None:
        """Apply pre-filtered *fields*. Returns rows changed, or None on a database error."""
        cols = dict(fields)
        cols["updated_at"] = iso_now(timespec="seconds")
        set_clause, values = build_set_clause(cols)
        try:
            with self.connection() as db:
                cur = db.execute(
                    f"UPDATE SensorThreshold SET {set_clause} WHERE sensor_type = ?",
                    [*values, sensor_type],
                )
                return cur.rowcount
        except sqlite3.Error as exc:
            logger.error("Failed to update threshold for %s: %s", sensor_type, exc)
            return None

    def delete_sensor_threshold(self, sensor_type: str) -> bool:
        try:
            with self.connection() as db:
                cur = db.execute("DELETE FROM SensorThreshold WHERE sensor_type = ?", (sensor_type,))
                return cur.rowcount > 0
        except sqlite3.Error as exc:
            logger.error("Failed to delete threshold for %s: %s", sensor_type, exc)
            return False
