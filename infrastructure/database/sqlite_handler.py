import logging
import shutil
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from infrastructure.database.ops.alert_settings import AlertSettingsOperations
from infrastructure.database.ops.sensor_alerts import SensorAlertOperations
from infrastructure.database.ops.sensor_thresholds import SensorThresholdOperations

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"


class SQLiteDatabaseHandler(
    SensorThresholdOperations,
    SensorAlertOperations,
    AlertSettingsOperations,
):
    """Thread-safe SQLite handler decoupled from Flask globals.

    Each thread gets its own connection. With ``":memory:"`` that means each
    thread also sees its own database, which is only suitable for tests.
    """

    def __init__(self, database_path: str) -> None:
        self._database_path = database_path
        self._local = threading.local()

        if database_path != IN_MEMORY:
            db_path = Path(database_path)
            if not db_path.parent.exists():
                db_path.parent.mkdir(parents=True, exist_ok=True)
                logger.info("Created database directory: %s", db_path.parent)

    @property
    def database_path(self) -> str:
        return self._database_path

    # --- Lifecycle ------------------------------------------------------------
    def get_db(self) -> sqlite3.Connection:
        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is None:
            try:
                connection = self._open_connection()
            except sqlite3.DatabaseError as exc:
                if self._is_corruption_error(exc):
                    logger.error("Database appears corrupt (%s). Recreating a fresh database.", exc)
                    self._quarantine_corrupt_db()
                    connection = self._open_connection()
                else:
                    raise
            self._local.connection = connection
        return connection

    def _open_connection(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._database_path, check_same_thread=False)
        try:
            connection.row_factory = sqlite3.Row
            self._configure_connection(connection)
            return connection
        except Exception:
            connection.close()
            raise

    def _is_corruption_error(self, exc: sqlite3.Error) -> bool:
        message = str(exc).lower()
        return "malformed" in message or "not a database" in message

    def _quarantine_corrupt_db(self) -> Optional[Path]:
        if self._database_path == IN_MEMORY:
            return None
        db_path = Path(self._database_path)
        if not db_path.exists():
            return None

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        quarantine_dir = db_path.parent / "corrupt"
        quarantine_dir.mkdir(parents=True, exist_ok=True)
        quarantined = quarantine_dir / f"{db_path.stem}_corrupt_{timestamp}{db_path.suffix or '.db'}"
        try:
            shutil.move(str(db_path), str(quarantined))
            for sidecar_suffix in ("-wal", "-shm"):
                sidecar = Path(f"{db_path}{sidecar_suffix}")
                if sidecar.exists():
                    shutil.move(str(sidecar), str(quarantine_dir / f"{sidecar.name}_{timestamp}"))
            logger.warning("Quarantined corrupt database to %s", quarantined)
            return quarantined
        except OSError as exc:
            logger.error("Failed to quarantine corrupt database %s: %s", db_path, exc)
            return None

    def _configure_connection(self, connection: sqlite3.Connection) -> None:
        """WAL for concurrent readers while the evaluator writes alerts."""
        if self._database_path != IN_MEMORY:
            connection.execute("PRAGMA journal_mode=WAL")
            connection.execute("PRAGMA synchronous=NORMAL")
        connection.execute("PRAGMA busy_timeout=5000")
        connection.execute("PRAGMA temp_store=MEMORY")
        connection.commit()

    def close_db(self, _e: Optional[BaseException] = None) -> None:
        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            delattr(self._local, "connection")

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self.get_db()
        try:
            yield conn
        except Exception:
            conn.rollback()
            raise
        else:
            conn.commit()

    # --- Schema ----------------------------------------------------------------
    def create_tables(self) -> None:
        """Creates the anomaly tables if they do not already exist."""
        try:
            with self.connection() as db:
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS SensorThreshold (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        sensor_type TEXT NOT NULL UNIQUE,
                        sensor_name TEXT NOT NULL,
                        unit TEXT NOT NULL DEFAULT '',
                        normal_min REAL NOT NULL,
                        normal_max REAL NOT NULL,
                        warning_min REAL NOT NULL,
                        warning_max REAL NOT NULL,
                        critical_min REAL NOT NULL,
                        critical_max REAL NOT NULL,
                        spike_threshold REAL NOT NULL,
                        enabled INTEGER NOT NULL DEFAULT 1,
                        created_at TEXT,
                        updated_at TEXT
                    )
                    """
                )
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS SensorAnomalyAlert (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        sensor_type TEXT NOT NULL,
                        sensor_name TEXT NOT NULL,
                        alert_type TEXT NOT NULL CHECK (alert_type IN (
                            'threshold_high', 'threshold_low', 'sudden_spike',
                            'sudden_drop', 'sensor_malfunction'
                        )),
                        current_value REAL NOT NULL,
                        threshold_value REAL,
                        previous_value REAL,
                        severity TEXT NOT NULL CHECK (severity IN ('low', 'medium', 'high', 'critical')),
                        message TEXT NOT NULL,
                        farmno TEXT NOT NULL DEFAULT '1',
                        zone TEXT NOT NULL DEFAULT 'A',
                        is_resolved INTEGER NOT NULL DEFAULT 0,
                        resolved_at TEXT,
                        created_at TEXT NOT NULL
                    )
                    """
                )
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS AlertSettings (
                        user_id INTEGER PRIMARY KEY,
                        email_enabled INTEGER NOT NULL DEFAULT 0,
                        browser_enabled INTEGER NOT NULL DEFAULT 1,
                        sound_enabled INTEGER NOT NULL DEFAULT 1,
                        critical_only INTEGER NOT NULL DEFAULT 0,
                        quiet_hours_enabled INTEGER NOT NULL DEFAULT 0,
                        quiet_hours_start TEXT NOT NULL DEFAULT '22:00',
                        quiet_hours_end TEXT NOT NULL DEFAULT '07:00',
                        updated_at TEXT
                    )
                    """
                )
                db.execute(
                    "CREATE INDEX IF NOT EXISTS idx_sensor_alert_location "
                    "ON SensorAnomalyAlert(farmno, zone, is_resolved, created_at DESC)"
                )
                db.execute(
                    "CREATE INDEX IF NOT EXISTS idx_sensor_alert_sensor "
                    "ON SensorAnomalyAlert(sensor_type, created_at DESC)"
                )
                db.execute(
                    "CREATE INDEX IF NOT EXISTS idx_sensor_alert_severity "
                    "ON SensorAnomalyAlert(severity)"
                )
        except sqlite3.Error as exc:
            logger.error("Error creating tables: %s", exc)
            raise
