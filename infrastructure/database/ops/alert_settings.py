from __future__ import annotations

import logging
import sqlite3
from typing import Any

from app.utils.time import iso_now
from infrastructure.database.sql_safety import build_set_clause, safe_columns

logger = logging.getLogger(__name__)

ALERT_SETTINGS_COLUMNS = frozenset(
    {
        "email_enabled",
        "browser_enabled",
        "sound_enabled",
        "critical_only",
        "quiet_hours_enabled",
        "quiet_hours_start",
        "quiet_hours_end",
    }
)


class AlertSettingsOperations:
    """Database operations for per-user AlertSettings rows."""

    def get_alert_settings(self, user_id: int):
        try:
            db = self.get_db()
            return db.execute("SELECT * FROM AlertSettings WHERE user_id = ?", (user_id,)).fetchone()
        except sqlite3.Error as exc:
            logger.error("Failed to fetch alert settings for user %s: %s", user_id, exc)
            return None

    def ensure_alert_settings(self, user_id: int) -> bool:
        """Create the default row for *user_id* if it is missing."""
        try:
            with self.connection() as db:
                db.execute(
                    "INSERT OR IGNORE INTO AlertSettings (user_id, updated_at) VALUES (?, ?)",
                    (user_id, iso_now(timespec="seconds")),
                )
            return True
        except sqlite3.Error as exc:
            logger.error("Failed to create alert settings for user %s: %s", user_id, exc)
            return False

    def update_alert_settings(self, user_id: int, fields: dict[str, Any]) -> bool:
        cols = safe_columns(fields, ALERT_SETTINGS_COLUMNS, context="update_alert_settings", drop_none=True)
        if not cols:
            return False
        cols["updated_at"] = iso_now(timespec="seconds")
        set_clause, values = build_set_clause(cols)
        try:
            with self.connection() as db:
                cur = db.execute(
                    f"UPDATE AlertSettings SET {set_clause} WHERE user_id = ?",
                    [*values, user_id],
                )
                return cur.rowcount > 0
        except sqlite3.Error as exc:
            logger.error("Failed to update alert settings for user %s: %s", user_id, exc)
            return False
