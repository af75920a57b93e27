"""
SQL Safety Utilities
====================

Partial updates and inserts build their column lists from dict keys. Every
such dict passes through ``safe_columns()`` first so only allow-listed,
identifier-shaped keys are interpolated into SQL::

    cols = safe_columns(changes, THRESHOLD_INSERT_COLUMNS, context="update_sensor_threshold")
    set_clause, values = build_set_clause(cols)
    db.execute(f"UPDATE SensorThreshold SET {set_clause} WHERE sensor_type = ?", [*values, key])
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping

logger = logging.getLogger(__name__)

_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def safe_columns(
    data: Mapping[str, Any],
    allowed: frozenset[str] | set[str],
    *,
    context: str = "",
    drop_none: bool = False,
) -> dict[str, Any]:
    """Return *data* filtered to keys present in *allowed*.

    Unknown keys are dropped and logged at WARNING. With ``drop_none`` keys
    whose value is ``None`` are dropped as well.
    """
    filtered: dict[str, Any] = {}
    rejected: list[str] = []

    for key, value in data.items():
        if key not in allowed or not _IDENT_RE.match(key):
            rejected.append(key)
            continue
        if drop_none and value is None:
            continue
        filtered[key] = value

    if rejected:
        logger.warning("safe_columns(%s): dropped non-allowed keys: %s", context or "?", rejected)

    return filtered


def build_set_clause(cols: Mapping[str, Any]) -> tuple[str, list[Any]]:
    """``{"normal_max": 40.0}`` -> ``("normal_max = ?", [40.0])``."""
    clause = ", ".join(f"{k} = ?" for k in cols)
    return clause, list(cols.values())


def build_insert_parts(cols: Mapping[str, Any]) -> tuple[str, str, list[Any]]:
    """Return ``(columns_sql, placeholders_sql, values)`` for an INSERT."""
    keys = list(cols.keys())
    return ", ".join(keys), ", ".join("?" for _ in keys), list(cols.values())
