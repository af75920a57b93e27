"""
Anomaly Engine State
====================
In-memory history and cooldown tables shared by every evaluation in a process.

Neither table survives a restart: after one, the first reading of each sensor
cannot produce a spike alert and every cooldown window starts fresh.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Mapping

from app.enums import AlertType

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN = timedelta(minutes=5)


class HistoryTracker:
    """Last accepted reading per sensor type (depth one)."""

    def __init__(self) -> None:
        self._values: dict[str, float] = {}

    def get(self, sensor_type: str) -> float | None:
        return self._values.get(sensor_type)

    def set(self, sensor_type: str, value: float) -> None:
        self._values[sensor_type] = value

    def reset(self, sensor_type: str | None = None) -> None:
        if sensor_type is None:
            self._values.clear()
        else:
            self._values.pop(sensor_type, None)

    def snapshot(self) -> dict[str, float]:
        return dict(self._values)


class CooldownGuard:
    """Suppresses repeats of the same (sensor_type, alert_type) inside a window.

    Different alert types on the same sensor do not suppress each other.
    """

    def __init__(
        self,
        window: timedelta = DEFAULT_COOLDOWN,
        overrides: Mapping[AlertType, timedelta] | None = None,
    ) -> None:
        self.window = window
        self.overrides = dict(overrides or {})
        self._last_fired: dict[tuple[str, AlertType], datetime] = {}

    def window_for(self, alert_type: AlertType) -> timedelta:
        return self.overrides.get(alert_type, self.window)

    def should_fire(self, sensor_type: str, alert_type: AlertType, now: datetime) -> bool:
        """Check-and-set. True means the alert may fire and the window restarts at *now*."""
        key = (sensor_type, alert_type)
        last = self._last_fired.get(key)
        if last is not None and now - last < self.window_for(alert_type):
            logger.debug("Cooldown active for %s/%s (last fired %s)", sensor_type, alert_type, last.isoformat())
            return False
        self._last_fired[key] = now
        return True

    def reset(self) -> None:
        self._last_fired.clear()

    def snapshot(self) -> dict[str, str]:
        return {f"{s}_{a.value}": ts.isoformat() for (s, a), ts in self._last_fired.items()}


class AnomalyState:
    """History and cooldown tables plus the lock that serialises batches over them."""

    def __init__(
        self,
        cooldown: timedelta = DEFAULT_COOLDOWN,
        cooldown_overrides: Mapping[AlertType, timedelta] | None = None,
    ) -> None:
        self.lock = threading.Lock()
        self.history = HistoryTracker()
        self.cooldown = CooldownGuard(cooldown, cooldown_overrides)

    def reset(self) -> None:
        with self.lock:
            self.history.reset()
            self.cooldown.reset()

    def snapshot(self) -> dict[str, object]:
        with self.lock:
            return {
                "history": self.history.snapshot(),
                "cooldowns": self.cooldown.snapshot(),
                "cooldown_minutes": self.cooldown.window.total_seconds() / 60,
            }
