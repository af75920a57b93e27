"""
Shared test fixtures for the FarmWatch anomaly backend test suite.

Provides:
- In-memory SQLite database with all tables created
- Repository instances wired to the test database
- A controllable UTC clock for cooldown and statistics tests
- Anomaly and alert-settings services built on the repositories
- A Flask app and test client backed by a temporary database file

Usage:
    def test_example(anomaly_service, clock):
        result = anomaly_service.check_sensor_anomalies(ReadingBatch({"mq4": 65}))
        clock.advance(minutes=5)
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

# Ensure repository root is on sys.path so tests can import application modules
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from app.domain.sensor_threshold import DEFAULT_THRESHOLDS  # noqa: E402
from app.services.application.alert_settings_service import AlertSettingsService  # noqa: E402
from app.services.application.sensor_anomaly_service import SensorAnomalyService  # noqa: E402
from app.services.utilities.anomaly_state import AnomalyState  # noqa: E402
from infrastructure.database.repositories.alert_settings import AlertSettingsRepository  # noqa: E402
from infrastructure.database.repositories.sensor_alerts import SensorAlertRepository  # noqa: E402
from infrastructure.database.repositories.sensor_thresholds import SensorThresholdRepository  # noqa: E402
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler  # noqa: E402

# ---------------------------------------------------------------------------
# Logging: keep test output clean
# ---------------------------------------------------------------------------
logging.getLogger("infrastructure").setLevel(logging.WARNING)
logging.getLogger("app").setLevel(logging.WARNING)

START = datetime(2026, 1, 5, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable UTC clock that only moves when told to."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


# ========================== Database Fixtures ==============================


@pytest.fixture()
def db_handler():
    """In-memory SQLite database with all tables created.

    Each test gets a fresh database.
    """
    handler = SQLiteDatabaseHandler(":memory:")
    handler.create_tables()
    yield handler
    handler.close_db()


@pytest.fixture()
def db_connection(db_handler):
    """Raw sqlite3 connection for direct SQL in tests."""
    with db_handler.connection() as conn:
        yield conn


# ========================== Repository Fixtures ============================


@pytest.fixture()
def threshold_repo(db_handler):
    return SensorThresholdRepository(db_handler)


@pytest.fixture()
def seeded_threshold_repo(threshold_repo):
    """Threshold repository holding the mq4 / mq136 / mq137 defaults."""
    threshold_repo.upsert_defaults(DEFAULT_THRESHOLDS)
    return threshold_repo


@pytest.fixture()
def alert_repo(db_handler):
    return SensorAlertRepository(db_handler)


@pytest.fixture()
def settings_repo(db_handler):
    return AlertSettingsRepository(db_handler)


# ========================== Service Fixtures ===============================


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def anomaly_state():
    return AnomalyState()


@pytest.fixture()
def anomaly_service(seeded_threshold_repo, alert_repo, anomaly_state, clock):
    """Anomaly service over the default thresholds with a frozen clock."""
    return SensorAnomalyService(seeded_threshold_repo, alert_repo, anomaly_state, clock)


@pytest.fixture()
def settings_service(settings_repo):
    return AlertSettingsService(settings_repo)


# ========================== Flask Fixtures =================================


@pytest.fixture()
def app(tmp_path, monkeypatch, clock):
    """Flask app on a temporary database file.

    A file is required: the request teardown closes the per-thread connection
    and an in-memory database would vanish with it.
    """
    monkeypatch.setenv("FARMWATCH_SECRET_KEY", "test-secret")
    monkeypatch.delenv("FARMWATCH_ENV", raising=False)
    from app import create_app

    app = create_app(
        {
            "database_path": str(tmp_path / "test.db"),
            "log_dir": str(tmp_path / "logs"),
        },
        clock=clock,
    )
    app.config["TESTING"] = True
    yield app
    app.config["CONTAINER"].shutdown()


@pytest.fixture()
def client(app):
    return app.test_client()
