"""
Schemas Module
==============

Pydantic models for request validation.
"""

from app.schemas.sensor_anomaly import (
    AlertSettingsUpdate,
    AlertTriggerRequest,
    EvaluateRequest,
    LocationPayload,
    ThresholdCreateRequest,
    ThresholdUpdateRequest,
)

__all__ = [
    "AlertSettingsUpdate",
    "AlertTriggerRequest",
    "EvaluateRequest",
    "LocationPayload",
    "ThresholdCreateRequest",
    "ThresholdUpdateRequest",
]
