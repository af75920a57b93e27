from __future__ import annotations

from datetime import datetime, timedelta, timezone

from app.enums import AlertType
from app.services.utilities.anomaly_state import AnomalyState, CooldownGuard, HistoryTracker

T0 = datetime(2026, 1, 5, 10, 0, tzinfo=timezone.utc)


def test_history_tracker_keeps_latest_value():
    history = HistoryTracker()
    assert history.get("mq4") is None
    history.set("mq4", 20.0)
    history.set("mq4", 25.0)
    assert history.get("mq4") == 25.0

    history.set("mq136", 10.0)
    history.reset("mq4")
    assert history.snapshot() == {"mq136": 10.0}


def test_cooldown_guard_window():
    guard = CooldownGuard()
    assert guard.should_fire("mq4", AlertType.THRESHOLD_HIGH, T0) is True
    assert guard.should_fire("mq4", AlertType.THRESHOLD_HIGH, T0 + timedelta(minutes=1)) is False
    assert guard.should_fire("mq4", AlertType.THRESHOLD_HIGH, T0 + timedelta(minutes=5)) is True


def test_suppressed_attempt_does_not_extend_window():
    guard = CooldownGuard()
    guard.should_fire("mq4", AlertType.THRESHOLD_HIGH, T0)
    guard.should_fire("mq4", AlertType.THRESHOLD_HIGH, T0 + timedelta(minutes=4))
    assert guard.should_fire("mq4", AlertType.THRESHOLD_HIGH, T0 + timedelta(minutes=5)) is True


def test_cooldown_keys_are_independent():
    guard = CooldownGuard()
    assert guard.should_fire("mq4", AlertType.THRESHOLD_HIGH, T0)
    assert guard.should_fire("mq4", AlertType.SUDDEN_SPIKE, T0)
    assert guard.should_fire("mq136", AlertType.THRESHOLD_HIGH, T0)


def test_cooldown_overrides_per_alert_type():
    guard = CooldownGuard(overrides={AlertType.SENSOR_MALFUNCTION: timedelta(minutes=30)})
    assert guard.window_for(AlertType.SENSOR_MALFUNCTION) == timedelta(minutes=30)
    assert guard.window_for(AlertType.THRESHOLD_LOW) == timedelta(minutes=5)

    guard.should_fire("mq4", AlertType.SENSOR_MALFUNCTION, T0)
    assert guard.should_fire("mq4", AlertType.SENSOR_MALFUNCTION, T0 + timedelta(minutes=10)) is False


def test_zero_window_never_suppresses():
    guard = CooldownGuard(window=timedelta(0))
    assert guard.should_fire("mq4", AlertType.THRESHOLD_HIGH, T0)
    assert guard.should_fire("mq4", AlertType.THRESHOLD_HIGH, T0)


def test_state_snapshot_and_reset():
    state = AnomalyState(cooldown=timedelta(minutes=10))
    state.history.set("mq4", 65.0)
    state.cooldown.should_fire("mq4", AlertType.THRESHOLD_HIGH, T0)

    snapshot = state.snapshot()
    assert snapshot["history"] == {"mq4": 65.0}
    assert snapshot["cooldowns"] == {"mq4_threshold_high": T0.isoformat()}
    assert snapshot["cooldown_minutes"] == 10

    state.reset()
    assert state.snapshot()["history"] == {}
    assert state.snapshot()["cooldowns"] == {}
