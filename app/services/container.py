from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from app.config import AppConfig
from app.services.application.alert_settings_service import AlertSettingsService
from app.services.application.sensor_anomaly_service import SensorAnomalyService
from app.services.utilities.anomaly_state import AnomalyState
from app.utils.time import utc_now
from infrastructure.database.repositories.alert_settings import AlertSettingsRepository
from infrastructure.database.repositories.sensor_alerts import SensorAlertRepository
from infrastructure.database.repositories.sensor_thresholds import SensorThresholdRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Aggregate and manage core backend services."""

    config: AppConfig
    database: SQLiteDatabaseHandler
    threshold_repo: SensorThresholdRepository
    alert_repo: SensorAlertRepository
    settings_repo: AlertSettingsRepository
    anomaly_state: AnomalyState
    anomaly_service: SensorAnomalyService
    alert_settings_service: AlertSettingsService

    @classmethod
    def build(
        cls,
        config: AppConfig,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> "ServiceContainer":
        """Construct the service container with all dependencies.

        Args:
            config: Application configuration
            clock: UTC clock for evaluations and cooldowns (tests inject a fake)
        """
        logger.info("Building ServiceContainer (database=%s)", config.database_path)
        database = SQLiteDatabaseHandler(config.database_path)
        database.create_tables()

        threshold_repo = SensorThresholdRepository(database)
        alert_repo = SensorAlertRepository(database)
        settings_repo = AlertSettingsRepository(database)

        if config.seed_default_thresholds and not threshold_repo.list_all():
            from app.domain.sensor_threshold import DEFAULT_THRESHOLDS

            threshold_repo.upsert_defaults(DEFAULT_THRESHOLDS)

        anomaly_state = AnomalyState(
            cooldown=config.alert_cooldown,
            cooldown_overrides=config.cooldown_overrides(),
        )
        anomaly_service = SensorAnomalyService(
            threshold_repo,
            alert_repo,
            anomaly_state,
            clock or utc_now,
            default_farmno=config.default_farmno,
            default_zone=config.default_zone,
            seed_defaults=config.seed_default_thresholds,
            validate_bands=config.validate_threshold_bands,
        )
        alert_settings_service = AlertSettingsService(settings_repo)

        logger.info(
            "ServiceContainer built (cooldown=%s, overrides=%s)",
            anomaly_state.cooldown.window,
            {str(k): str(v) for k, v in anomaly_state.cooldown.overrides.items()},
        )
        return cls(
            config=config,
            database=database,
            threshold_repo=threshold_repo,
            alert_repo=alert_repo,
            settings_repo=settings_repo,
            anomaly_state=anomaly_state,
            anomaly_service=anomaly_service,
            alert_settings_service=alert_settings_service,
        )

    def shutdown(self) -> None:
        """Release external resources before process exit."""
        self.database.close_db()
        logger.info("ServiceContainer shutdown complete.")
