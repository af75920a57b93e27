"""
Configuration for FarmWatch
===========================
Runtime settings read from ``FARMWATCH_*`` environment variables, plus the
logging setup shared by the server entry point and ``create_app``.
"""

import os
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from app.domain.exceptions import ConfigurationError
from app.enums import AlertType


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer.") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number.") from None


def parse_cooldown_overrides(raw: str | None) -> dict[AlertType, timedelta]:
    """Parse ``"sensor_malfunction=30,sudden_spike=2"`` (minutes per alert type)."""
    overrides: dict[AlertType, timedelta] = {}
    if not raw:
        return overrides
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        name, sep, minutes = chunk.partition("=")
        if not sep:
            raise ConfigurationError(f"Cooldown override '{chunk}' must look like alert_type=minutes")
        try:
            alert_type = AlertType(name.strip())
        except ValueError:
            raise ConfigurationError(f"Unknown alert type in cooldown override: '{name.strip()}'") from None
        try:
            value = float(minutes)
        except ValueError:
            raise ConfigurationError(f"Cooldown override for {alert_type} must be a number of minutes") from None
        if value < 0:
            raise ConfigurationError(f"Cooldown override for {alert_type} must not be negative")
        overrides[alert_type] = timedelta(minutes=value)
    return overrides


@dataclass
class AppConfig:
    """Runtime configuration loaded from environment variables."""

    environment: str = field(default_factory=lambda: os.getenv("FARMWATCH_ENV", "development"))
    secret_key: str = field(default_factory=lambda: os.getenv("FARMWATCH_SECRET_KEY", "FarmWatchDevSecretKey"))
    database_path: str = field(default_factory=lambda: os.getenv("FARMWATCH_DATABASE_PATH", "database/farmwatch.db"))
    DEBUG: bool = field(default_factory=lambda: _env_bool("FARMWATCH_DEBUG", False))
    log_dir: str = field(default_factory=lambda: os.getenv("FARMWATCH_LOG_DIR", "logs"))

    host: str = field(default_factory=lambda: os.getenv("FARMWATCH_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: _env_int("FARMWATCH_PORT", 5000))

    # Anomaly engine
    alert_cooldown_minutes: float = field(
        default_factory=lambda: _env_float("FARMWATCH_ALERT_COOLDOWN_MINUTES", 5.0)
    )
    alert_cooldown_overrides: str = field(
        default_factory=lambda: os.getenv("FARMWATCH_ALERT_COOLDOWN_OVERRIDES", "")
    )
    default_farmno: str = field(default_factory=lambda: os.getenv("FARMWATCH_DEFAULT_FARMNO", "1"))
    default_zone: str = field(default_factory=lambda: os.getenv("FARMWATCH_DEFAULT_ZONE", "A"))
    seed_default_thresholds: bool = field(
        default_factory=lambda: _env_bool("FARMWATCH_SEED_DEFAULT_THRESHOLDS", True)
    )
    validate_threshold_bands: bool = field(
        default_factory=lambda: _env_bool("FARMWATCH_VALIDATE_THRESHOLD_BANDS", True)
    )

    _DEFAULT_SECRET_KEY: str = field(default="FarmWatchDevSecretKey", init=False, repr=False)

    def __post_init__(self) -> None:
        if self.environment == "production" and self.secret_key == self._DEFAULT_SECRET_KEY:
            raise ConfigurationError(
                "Cannot use the default secret key in production. "
                "Set FARMWATCH_SECRET_KEY to a secure random value."
            )

    @property
    def alert_cooldown(self) -> timedelta:
        return timedelta(minutes=self.alert_cooldown_minutes)

    def cooldown_overrides(self) -> dict[AlertType, timedelta]:
        return parse_cooldown_overrides(self.alert_cooldown_overrides)

    def validate(self) -> None:
        if self.alert_cooldown_minutes < 0:
            raise ConfigurationError("FARMWATCH_ALERT_COOLDOWN_MINUTES must not be negative")
        if not self.default_farmno or not self.default_zone:
            raise ConfigurationError("Default farm number and zone must not be empty")
        self.cooldown_overrides()

    def as_flask_config(self) -> dict[str, Any]:
        """Render configuration values for Flask application."""
        return {
            "ENV": self.environment,
            "SECRET_KEY": self.secret_key,
            "DATABASE_PATH": self.database_path,
            "DEBUG": self.DEBUG,
            "JSON_SORT_KEYS": False,
        }


def setup_logging(debug: bool = False, log_dir: str = "logs") -> None:
    """Setup logging configuration."""
    import logging
    import sys
    from logging.handlers import RotatingFileHandler

    log_level = logging.DEBUG if debug else logging.INFO

    root = logging.getLogger()
    root.setLevel(log_level)

    # create_app may run many times per process (tests); add each handler once.
    has_console = any(getattr(h, "name", "") == "farmwatch_console" for h in root.handlers)
    has_file = any(getattr(h, "name", "") == "farmwatch_file" for h in root.handlers)
    added_handler = False

    stream = sys.stdout
    with suppress(AttributeError, ValueError):
        stream.reconfigure(encoding="utf-8", errors="replace")
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not has_console:
        console_handler = logging.StreamHandler(stream=stream)
        console_handler.name = "farmwatch_console"
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
        added_handler = True

    if not has_file:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, "farmwatch.log"),
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.name = "farmwatch_file"
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        added_handler = True

    for handler in root.handlers:
        if getattr(handler, "name", "") in {"farmwatch_console", "farmwatch_file"}:
            handler.setLevel(log_level)

    if added_handler:
        root.info("Logging initialized at level: %s", logging.getLevelName(log_level))

    if _env_bool("FARMWATCH_SILENCE_WERKZEUG", True):
        logging.getLogger("werkzeug").setLevel(logging.WARNING)


def load_config() -> AppConfig:
    """Helper for callers to load and validate configuration."""
    config = AppConfig()
    config.validate()
    return config
