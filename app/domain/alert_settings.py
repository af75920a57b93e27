"""
Alert delivery preferences for one dashboard user.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, time
from typing import Any, Mapping

from app.enums import NotificationChannel

UPDATABLE_FIELDS: frozenset[str] = frozenset(
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

BOOLEAN_FIELDS: frozenset[str] = frozenset(UPDATABLE_FIELDS - {"quiet_hours_start", "quiet_hours_end"})

DEFAULT_QUIET_START = "22:00"
DEFAULT_QUIET_END = "07:00"


def parse_hhmm(value: str) -> time:
    """Parse ``HH:MM`` (24h). Raises ValueError on anything else."""
    return datetime.strptime(str(value).strip(), "%H:%M").time()


@dataclass(frozen=True)
class AlertSettings:
    user_id: int
    email_enabled: bool = False
    browser_enabled: bool = True
    sound_enabled: bool = True
    critical_only: bool = False
    quiet_hours_enabled: bool = False
    quiet_hours_start: str = DEFAULT_QUIET_START
    quiet_hours_end: str = DEFAULT_QUIET_END
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "AlertSettings":
        data = dict(row)
        return cls(
            user_id=int(data["user_id"]),
            email_enabled=bool(data.get("email_enabled", False)),
            browser_enabled=bool(data.get("browser_enabled", True)),
            sound_enabled=bool(data.get("sound_enabled", True)),
            critical_only=bool(data.get("critical_only", False)),
            quiet_hours_enabled=bool(data.get("quiet_hours_enabled", False)),
            quiet_hours_start=data.get("quiet_hours_start") or DEFAULT_QUIET_START,
            quiet_hours_end=data.get("quiet_hours_end") or DEFAULT_QUIET_END,
            updated_at=data.get("updated_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def enabled_channels(self) -> list[NotificationChannel]:
        channels = []
        if self.email_enabled:
            channels.append(NotificationChannel.EMAIL)
        if self.browser_enabled:
            channels.append(NotificationChannel.BROWSER)
        if self.sound_enabled:
            channels.append(NotificationChannel.SOUND)
        return channels


@dataclass(frozen=True)
class NotificationDecision:
    """Whether an alert should be pushed to the user, and on which channels."""

    send: bool
    reason: str
    channels: list[NotificationChannel] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "send": self.send,
            "reason": self.reason,
            "channels": [c.value for c in self.channels],
        }
