from __future__ import annotations

import atexit
import logging
import threading
from datetime import datetime
from typing import Any, Callable

from flask import Flask, request
from werkzeug.exceptions import HTTPException

from app.blueprints.api.health import health_api
from app.blueprints.api.sensor_anomaly import sensor_anomaly_api
from app.config import load_config, setup_logging

API_PREFIX = "/api/v1"

logger = logging.getLogger(__name__)


def _api_error_payload(exc: Exception):
    """Map an exception that escaped a route to the JSON envelope."""
    from app.domain.exceptions import FarmWatchError
    from app.utils.http import error_response, safe_error

    if isinstance(exc, HTTPException):
        code, message, context = int(exc.code or 500), exc.description, "http-exception"
    elif isinstance(exc, FarmWatchError):
        code, message, context = exc.http_status, str(exc), type(exc).__name__
    else:
        return safe_error(exc, 500, context="unhandled")

    if code >= 500:
        return safe_error(exc, code, context=context)
    return error_response(message or "Request failed", code)


def _unversioned_api_alias(wsgi_app):
    """Serve ``/api/<rest>`` as ``/api/v1/<rest>`` without a redirect."""

    def rewrite(environ, start_response):
        path = environ.get("PATH_INFO", "")
        if path.startswith("/api/") and not path.startswith(API_PREFIX + "/"):
            environ["PATH_INFO"] = API_PREFIX + path[len("/api"):]
        return wsgi_app(environ, start_response)

    return rewrite


def create_app(
    config_overrides: dict[str, Any] | None = None,
    *,
    clock: Callable[[], datetime] | None = None,
) -> Flask:
    config = load_config()
    for key, value in (config_overrides or {}).items():
        setattr(config, key if key == "DEBUG" else key.lower(), value)
    if config_overrides:
        config.validate()

    setup_logging(debug=config.DEBUG, log_dir=config.log_dir)

    flask_app = Flask(__name__)
    flask_app.config.update(config.as_flask_config())
    flask_app.json.sort_keys = False

    from app.services.container import ServiceContainer

    container = ServiceContainer.build(config, clock=clock)
    flask_app.config["CONTAINER"] = container
    flask_app.teardown_appcontext(container.database.close_db)

    stopped = threading.Event()
    stop_lock = threading.Lock()

    def shutdown(reason: str = "unknown") -> None:
        with stop_lock:
            if stopped.is_set():
                return
            stopped.set()
        logger.info("Shutting down FarmWatch services (%s)", reason)
        container.shutdown()

    atexit.register(shutdown, "atexit")
    flask_app.extensions["farmwatch_shutdown"] = shutdown

    @flask_app.errorhandler(Exception)
    def handle_api_exception(exc):
        # Non-API paths keep Flask's default handling.
        if not request.path.startswith("/api/"):
            raise exc
        return _api_error_payload(exc)

    flask_app.register_blueprint(health_api, url_prefix=f"{API_PREFIX}/health")
    flask_app.register_blueprint(sensor_anomaly_api, url_prefix=f"{API_PREFIX}/sensor-anomaly")
    logger.info("Blueprints registered: %s", ", ".join(flask_app.blueprints))

    flask_app.wsgi_app = _unversioned_api_alias(flask_app.wsgi_app)  # type: ignore[assignment]

    logger.info("FarmWatch application initialized (env=%s).", config.environment)
    return flask_app


__all__ = ["create_app"]
