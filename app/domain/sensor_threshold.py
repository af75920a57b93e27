"""
Sensor Threshold Domain Object
==============================

Tiered threshold configuration for a single sensor type.

Bands are expected to nest (normal inside warning inside critical); the
anomaly evaluator does not rely on it, it simply walks the bands from the
widest severity to the narrowest.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Mapping

# Fields a partial update may touch. Everything else is identity or metadata.
UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
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

_BAND_FIELDS = (
    "normal_min",
    "normal_max",
    "warning_min",
    "warning_max",
    "critical_min",
    "critical_max",
    "spike_threshold",
)


@dataclass(frozen=True)
class SensorThreshold:
    """Normal / warning / critical bands plus spike delta for one sensor type."""

    sensor_type: str
    sensor_name: str
    unit: str
    normal_min: float
    normal_max: float
    warning_min: float
    warning_max: float
    critical_min: float
    critical_max: float
    spike_threshold: float
    enabled: bool = True
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def absolute_min(self) -> float:
        """Lower edge of the physically plausible envelope."""
        return self.critical_min - self.critical_min * 0.5

    @property
    def absolute_max(self) -> float:
        """Upper edge of the physically plausible envelope."""
        return self.critical_max + self.critical_max * 0.5

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SensorThreshold":
        """Build from a ``SensorThreshold`` table row (sqlite3.Row or dict)."""
        data = dict(row)
        return cls(
            sensor_type=str(data["sensor_type"]),
            sensor_name=str(data.get("sensor_name") or data["sensor_type"]),
            unit=str(data.get("unit") or ""),
            normal_min=float(data["normal_min"]),
            normal_max=float(data["normal_max"]),
            warning_min=float(data["warning_min"]),
            warning_max=float(data["warning_max"]),
            critical_min=float(data["critical_min"]),
            critical_max=float(data["critical_max"]),
            spike_threshold=float(data["spike_threshold"]),
            enabled=bool(data.get("enabled", True)),
            id=data.get("id"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def with_updates(self, fields: Mapping[str, Any]) -> "SensorThreshold":
        """Return a copy with the allow-listed *fields* applied."""
        changes: dict[str, Any] = {}
        for key, value in fields.items():
            if key not in UPDATABLE_FIELDS:
                continue
            changes[key] = bool(value) if key == "enabled" else float(value)
        return replace(self, **changes)

    def band_violations(self) -> list[str]:
        """Describe every way the bands fail to nest. Empty list means consistent."""
        problems: list[str] = []
        for name in _BAND_FIELDS:
            value = getattr(self, name)
            if value is None:
                problems.append(f"{name} is required")
        if problems:
            return problems

        for band in ("normal", "warning", "critical"):
            low = getattr(self, f"{band}_min")
            high = getattr(self, f"{band}_max")
            if low > high:
                problems.append(f"{band}_min ({low}) is greater than {band}_max ({high})")

        if self.warning_min > self.normal_min:
            problems.append("warning_min must not exceed normal_min")
        if self.warning_max < self.normal_max:
            problems.append("warning_max must not be below normal_max")
        if self.critical_min > self.warning_min:
            problems.append("critical_min must not exceed warning_min")
        if self.critical_max < self.warning_max:
            problems.append("critical_max must not be below warning_max")
        if self.spike_threshold <= 0:
            problems.append("spike_threshold must be positive")
        return problems


DEFAULT_THRESHOLDS: tuple[SensorThreshold, ...] = (
    SensorThreshold(
        sensor_type="mq4",
        sensor_name="Methane gas sensor",
        unit="ppm",
        normal_min=5.0,
        normal_max=35.0,
        warning_min=3.0,
        warning_max=45.0,
        critical_min=1.0,
        critical_max=60.0,
        spike_threshold=15.0,
    ),
    SensorThreshold(
        sensor_type="mq136",
        sensor_name="Hydrogen sulfide gas sensor",
        unit="ppm",
        normal_min=8.0,
        normal_max=45.0,
        warning_min=5.0,
        warning_max=55.0,
        critical_min=2.0,
        critical_max=70.0,
        spike_threshold=20.0,
    ),
    SensorThreshold(
        sensor_type="mq137",
        sensor_name="Ammonia gas sensor",
        unit="ppm",
        normal_min=2.0,
        normal_max=25.0,
        warning_min=1.0,
        warning_max=35.0,
        critical_min=0.5,
        critical_max=45.0,
        spike_threshold=12.0,
    ),
)
