"""
Blueprint Common Utilities
==========================

Shared helper functions for the API blueprints: container and service
access, session user, request parsing and response wrappers.
"""
from __future__ import annotations

import logging
from typing import Optional

from flask import current_app, request, session
from pydantic import ValidationError as PydanticValidationError

from app.domain.exceptions import ValidationError
from app.utils.http import error_response, success_response

logger = logging.getLogger("api._common")

# ============================================================================
# User Session Utilities
# ============================================================================


def get_user_id() -> int:
    """Get current user ID from session."""
    return session.get("user_id", 1)


# ============================================================================
# CONTAINER ACCESS
# ============================================================================

def get_container():
    """
    Get the service container from Flask app config.

    Raises:
        RuntimeError: If container is not configured
    """
    container = current_app.config.get("CONTAINER")
    if not container:
        raise RuntimeError("ServiceContainer not found in app config")
    return container


def get_anomaly_service():
    return get_container().anomaly_service


def get_alert_settings_service():
    return get_container().alert_settings_service


# ============================================================================
# REQUEST HELPERS
# ============================================================================

def get_json() -> dict:
    """Get JSON request body, or an empty dict when absent or malformed."""
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def query_int(name: str, default: Optional[int] = None) -> Optional[int]:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"Query parameter '{name}' must be an integer", detail={"field": name}) from None


def query_bool(name: str) -> Optional[bool]:
    """``true/1/yes`` -> True, ``false/0/no`` -> False, absent -> None."""
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    lowered = raw.lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ValidationError(f"Query parameter '{name}' must be a boolean", detail={"field": name})


# ============================================================================
# RESPONSE HELPERS
# ============================================================================

def success(data: dict | list | None = None, status: int = 200, *, message: str | None = None):
    """Flask Response shaped ``{"ok": true, "data": ..., "error": null}``."""
    return success_response(data, status, message=message)


def invalid_payload(message: str, exc: PydanticValidationError):
    """400 response listing pydantic's field errors (without echoing input)."""
    errors = exc.errors(include_url=False, include_context=False, include_input=False)
    return error_response(message, 400, details={"errors": errors})
