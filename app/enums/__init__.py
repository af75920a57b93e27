"""
Enums Module
============

This module provides enumeration types for the FarmWatch application.
Enums ensure type safety and consistency across the codebase.
"""

from app.enums.common import (
    AlertSeverity,
    AlertType,
    NotificationChannel,
    ResolveOutcome,
    StatsPeriod,
)

__all__ = [
    "AlertSeverity",
    "AlertType",
    "NotificationChannel",
    "ResolveOutcome",
    "StatsPeriod",
]
