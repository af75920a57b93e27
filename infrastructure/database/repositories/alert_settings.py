from __future__ import annotations

from typing import Any, Mapping

from app.domain.alert_settings import BOOLEAN_FIELDS, AlertSettings
from app.domain.exceptions import RepositoryError
from infrastructure.database.ops.alert_settings import AlertSettingsOperations


class AlertSettingsRepository:
    """Per-user alert delivery preferences."""

    def __init__(self, backend: AlertSettingsOperations) -> None:
        self._backend = backend

    def get_or_create(self, user_id: int) -> AlertSettings:
        row = self._backend.get_alert_settings(user_id)
        if row is None:
            self._backend.ensure_alert_settings(user_id)
            row = self._backend.get_alert_settings(user_id)
        if row is None:
            raise RepositoryError(f"Alert settings unavailable for user {user_id}")
        return AlertSettings.from_row(row)

    def update(self, user_id: int, fields: Mapping[str, Any]) -> AlertSettings:
        self._backend.ensure_alert_settings(user_id)
        cols = {k: (1 if v else 0) if k in BOOLEAN_FIELDS else v for k, v in fields.items()}
        if not self._backend.update_alert_settings(user_id, cols):
            raise RepositoryError(f"Failed to update alert settings for user {user_id}")
        return self.get_or_create(user_id)
