"""
Alert Settings Service
======================
Per-user delivery preferences and the gate that decides whether a persisted
anomaly alert is pushed to that user. The anomaly engine never consults it;
callers do after an evaluation.
"""

from __future__ import annotations

import logging
from datetime import datetime, time
from typing import TYPE_CHECKING, Any, Callable, Mapping

from app.domain.alert_settings import (
    BOOLEAN_FIELDS,
    UPDATABLE_FIELDS,
    AlertSettings,
    NotificationDecision,
    parse_hhmm,
)
from app.domain.anomaly_alert import AnomalyAlert
from app.domain.exceptions import ValidationError
from app.enums import AlertSeverity

if TYPE_CHECKING:
    from infrastructure.database.repositories.alert_settings import AlertSettingsRepository

logger = logging.getLogger(__name__)


class AlertSettingsService:
    def __init__(
        self,
        settings_repo: "AlertSettingsRepository",
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._repo = settings_repo
        # Quiet hours are wall-clock times, so the default clock is local time.
        self._clock = clock

    def get_settings(self, user_id: int) -> AlertSettings:
        return self._repo.get_or_create(user_id)

    def update_settings(self, user_id: int, fields: Mapping[str, Any]) -> AlertSettings:
        """Apply the recognised keys of *fields*; anything else is ignored."""
        changes = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS and v is not None}
        ignored = sorted(set(fields) - UPDATABLE_FIELDS)
        if ignored:
            logger.warning("Ignoring unknown alert setting keys for user %s: %s", user_id, ignored)
        if not changes:
            raise ValidationError(
                "No valid alert settings supplied",
                detail={"allowed": sorted(UPDATABLE_FIELDS)},
            )

        for key in ("quiet_hours_start", "quiet_hours_end"):
            if key in changes:
                try:
                    changes[key] = parse_hhmm(changes[key]).strftime("%H:%M")
                except ValueError as exc:
                    raise ValidationError(f"{key} must be HH:MM", detail={"field": key}) from exc
        for key in BOOLEAN_FIELDS & changes.keys():
            changes[key] = bool(changes[key])

        settings = self._repo.update(user_id, changes)
        logger.info("Updated alert settings for user %s: %s", user_id, sorted(changes))
        return settings

    @staticmethod
    def is_quiet_hours(settings: AlertSettings, now: datetime | time) -> bool:
        """Inclusive at both ends; a start later than the end wraps past midnight."""
        if not settings.quiet_hours_enabled:
            return False
        try:
            start = parse_hhmm(settings.quiet_hours_start)
            end = parse_hhmm(settings.quiet_hours_end)
        except ValueError:
            logger.warning("Malformed quiet hours for user %s", settings.user_id)
            return False

        current = now.time() if isinstance(now, datetime) else now
        current = current.replace(second=0, microsecond=0)
        if start <= end:
            return start <= current <= end
        return current >= start or current <= end

    def decide(
        self,
        alert: AnomalyAlert,
        settings: AlertSettings,
        now: datetime | None = None,
    ) -> NotificationDecision:
        if settings.critical_only and alert.severity is not AlertSeverity.CRITICAL:
            return NotificationDecision(False, "critical_only")
        if self.is_quiet_hours(settings, now or self._clock()):
            return NotificationDecision(False, "quiet_hours")
        channels = settings.enabled_channels()
        if not channels:
            return NotificationDecision(False, "no_channels")
        return NotificationDecision(True, "deliver", channels)

    def decide_for_user(self, user_id: int, alerts: list[AnomalyAlert]) -> list[NotificationDecision]:
        settings = self.get_settings(user_id)
        now = self._clock()
        return [self.decide(alert, settings, now) for alert in alerts]
