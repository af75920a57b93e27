"""Sensor Threshold Repository
=============================

Tiered threshold configuration keyed by ``sensor_type``.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping

from app.domain.exceptions import ConflictError, RepositoryError, ValidationError
from app.domain.sensor_threshold import UPDATABLE_FIELDS, SensorThreshold
from infrastructure.database.ops.sensor_thresholds import SensorThresholdOperations
from infrastructure.database.sql_safety import safe_columns

logger = logging.getLogger(__name__)

_STORAGE_OWNED = ("id", "created_at", "updated_at")


def _record(threshold: SensorThreshold) -> dict[str, Any]:
    data = asdict(threshold)
    for key in _STORAGE_OWNED:
        data.pop(key, None)
    return data


@dataclass(frozen=True)
class SensorThresholdRepository:
    """Repository facade for threshold operations."""

    _backend: SensorThresholdOperations

    def get(self, sensor_type: str) -> SensorThreshold | None:
        row = self._backend.get_sensor_threshold(sensor_type)
        return SensorThreshold.from_row(row) if row else None

    def get_enabled(self, sensor_type: str) -> SensorThreshold | None:
        """Evaluator lookup: a disabled threshold counts as missing."""
        threshold = self.get(sensor_type)
        if threshold is None or not threshold.enabled:
            return None
        return threshold

    def list_all(self, *, enabled_only: bool = False) -> list[SensorThreshold]:
        return [SensorThreshold.from_row(r) for r in self._backend.get_sensor_thresholds(enabled_only=enabled_only)]

    def upsert_defaults(self, thresholds: Iterable[SensorThreshold]) -> int:
        """Seed *thresholds*, leaving existing sensor types untouched."""
        inserted = self._backend.insert_default_thresholds(_record(t) for t in thresholds)
        if inserted:
            logger.info("Seeded %d default sensor thresholds", inserted)
        return inserted

    def create(self, threshold: SensorThreshold) -> int:
        if self._backend.get_sensor_threshold(threshold.sensor_type):
            raise ConflictError(
                f"Threshold for sensor type '{threshold.sensor_type}' already exists",
                detail={"sensor_type": threshold.sensor_type},
            )
        new_id = self._backend.insert_sensor_threshold(_record(threshold))
        if new_id is None:
            raise RepositoryError(
                f"Failed to store threshold for '{threshold.sensor_type}'",
                detail={"sensor_type": threshold.sensor_type},
            )
        return new_id

    def update(self, sensor_type: str, fields: Mapping[str, Any]) -> bool:
        """Apply a partial update. False when *sensor_type* is unknown.

        Keys outside the updatable set are dropped; an update left with
        nothing to write is rejected.
        """
        cols = safe_columns(fields, UPDATABLE_FIELDS, context="update_sensor_threshold", drop_none=True)
        if not cols:
            raise ValidationError(
                "No updatable threshold fields supplied",
                detail={"allowed": sorted(UPDATABLE_FIELDS)},
            )
        if "enabled" in cols:
            cols["enabled"] = 1 if cols["enabled"] else 0
        changed = self._backend.update_sensor_threshold(sensor_type, cols)
        if changed is None:
            raise RepositoryError(f"Failed to update threshold for '{sensor_type}'")
        return changed > 0

    def delete(self, sensor_type: str) -> bool:
        return self._backend.delete_sensor_threshold(sensor_type)
