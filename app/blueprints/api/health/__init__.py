"""
Health API Blueprint
====================

Routes:
- GET /api/v1/health - Liveness plus database reachability
- GET /api/v1/health/ping - Basic liveness check
- GET /api/v1/health/database - Row counts for the anomaly tables
"""

from __future__ import annotations

import logging
import sqlite3

from flask import Blueprint, Response

from app.blueprints.api._common import get_container as _container, success as _success
from app.utils.http import error_response, safe_route
from app.utils.time import iso_now

logger = logging.getLogger("health_api")

health_api = Blueprint("health_api", __name__)

_COUNTED_TABLES = ("SensorThreshold", "SensorAnomalyAlert", "AlertSettings")


def _database_ok() -> bool:
    try:
        _container().database.get_db().execute("SELECT 1").fetchone()
        return True
    except sqlite3.Error as exc:
        logger.error("Database health check failed: %s", exc)
        return False


@health_api.get("")
@safe_route("Failed to get health status")
def get_health() -> Response:
    db_ok = _database_ok()
    payload = {"status": "ok" if db_ok else "degraded", "database": db_ok, "timestamp": iso_now()}
    if not db_ok:
        return error_response("Database unavailable", 503, details=payload)
    return _success(payload)


@health_api.get("/ping")
@safe_route("Failed to handle ping request")
def ping() -> Response:
    return _success({"status": "ok", "timestamp": iso_now()})


@health_api.get("/database")
@safe_route("Failed to check database health")
def get_database_health() -> Response:
    db = _container().database
    counts = {}
    for table in _COUNTED_TABLES:
        row = db.get_db().execute(f"SELECT COUNT(*) AS n FROM {table}").fetchone()
        counts[table] = int(row["n"])
    return _success({"status": "connected", "path": db.database_path, "tables": counts})
