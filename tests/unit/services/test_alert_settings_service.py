from __future__ import annotations

from dataclasses import replace
from datetime import datetime, time

import pytest

from app.domain.alert_settings import AlertSettings
from app.domain.anomaly_alert import AnomalyAlert
from app.domain.exceptions import ValidationError
from app.enums import AlertSeverity, AlertType, NotificationChannel
from app.services.application.alert_settings_service import AlertSettingsService


def _alert(severity=AlertSeverity.HIGH):
    return AnomalyAlert(
        sensor_type="mq4",
        sensor_name="Methane gas sensor",
        alert_type=AlertType.THRESHOLD_HIGH,
        current_value=50.0,
        severity=severity,
        message="test",
    )


def test_defaults_are_created_on_first_read(settings_service):
    settings = settings_service.get_settings(1)
    assert settings.user_id == 1
    assert settings.email_enabled is False
    assert settings.browser_enabled is True
    assert settings.sound_enabled is True
    assert settings.critical_only is False
    assert settings.quiet_hours_enabled is False
    assert (settings.quiet_hours_start, settings.quiet_hours_end) == ("22:00", "07:00")


def test_update_settings_applies_known_keys(settings_service):
    settings = settings_service.update_settings(
        2,
        {"email_enabled": True, "quiet_hours_start": "23:30", "theme": "dark"},
    )
    assert settings.email_enabled is True
    assert settings.quiet_hours_start == "23:30"
    assert settings_service.get_settings(2).email_enabled is True
    # Another user keeps the defaults.
    assert settings_service.get_settings(3).email_enabled is False


def test_update_settings_requires_a_known_key(settings_service):
    with pytest.raises(ValidationError):
        settings_service.update_settings(1, {"theme": "dark"})


def test_update_settings_rejects_bad_time(settings_service):
    with pytest.raises(ValidationError) as excinfo:
        settings_service.update_settings(1, {"quiet_hours_end": "25:00"})
    assert excinfo.value.detail == {"field": "quiet_hours_end"}


@pytest.mark.parametrize(
    "start, end, now, expected",
    [
        ("22:00", "07:00", time(23, 15), True),
        ("22:00", "07:00", time(3, 0), True),
        ("22:00", "07:00", time(22, 0), True),
        ("22:00", "07:00", time(7, 0, 59), True),
        ("22:00", "07:00", time(7, 1), False),
        ("22:00", "07:00", time(12, 0), False),
        ("09:00", "17:00", time(12, 0), True),
        ("09:00", "17:00", time(18, 0), False),
    ],
)
def test_is_quiet_hours(start, end, now, expected):
    settings = AlertSettings(user_id=1, quiet_hours_enabled=True, quiet_hours_start=start, quiet_hours_end=end)
    assert AlertSettingsService.is_quiet_hours(settings, now) is expected


def test_quiet_hours_disabled():
    settings = AlertSettings(user_id=1)
    assert AlertSettingsService.is_quiet_hours(settings, time(23, 0)) is False


def test_decide_delivers_on_enabled_channels(settings_service):
    settings = AlertSettings(user_id=1, email_enabled=True)
    decision = settings_service.decide(_alert(), settings, now=datetime(2026, 1, 5, 12, 0))
    assert decision.send is True
    assert decision.reason == "deliver"
    assert decision.channels == [NotificationChannel.EMAIL, NotificationChannel.BROWSER, NotificationChannel.SOUND]


def test_decide_critical_only(settings_service):
    settings = AlertSettings(user_id=1, critical_only=True)
    now = datetime(2026, 1, 5, 12, 0)
    assert settings_service.decide(_alert(AlertSeverity.HIGH), settings, now).reason == "critical_only"
    assert settings_service.decide(_alert(AlertSeverity.CRITICAL), settings, now).send is True


def test_decide_quiet_hours_and_no_channels(settings_service):
    quiet = AlertSettings(user_id=1, quiet_hours_enabled=True)
    decision = settings_service.decide(_alert(), quiet, now=datetime(2026, 1, 5, 23, 0))
    assert decision.to_dict() == {"send": False, "reason": "quiet_hours", "channels": []}

    silent = replace(quiet, quiet_hours_enabled=False, browser_enabled=False, sound_enabled=False)
    assert settings_service.decide(_alert(), silent, now=datetime(2026, 1, 5, 23, 0)).reason == "no_channels"


def test_decide_for_user_uses_stored_settings(settings_repo):
    service = AlertSettingsService(settings_repo, clock=lambda: datetime(2026, 1, 5, 12, 0))
    service.update_settings(5, {"critical_only": True})
    decisions = service.decide_for_user(5, [_alert(AlertSeverity.MEDIUM), _alert(AlertSeverity.CRITICAL)])
    assert [d.send for d in decisions] == [False, True]
