"""
Sensor Anomaly Schemas
======================

Pydantic models for threshold, alert-settings and evaluation requests.
"""

import re
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


# ============================================================================
# Threshold Schemas
# ============================================================================

class ThresholdCreateRequest(BaseModel):
    """Request model for registering a new sensor type"""
    sensor_type: str = Field(..., min_length=1, max_length=50, description="Sensor type key (e.g. mq4)")
    sensor_name: str = Field(..., min_length=1, max_length=100, description="Display name")
    unit: str = Field(default="ppm", max_length=20, description="Measurement unit")
    normal_min: float = Field(..., description="Lower edge of the normal band")
    normal_max: float = Field(..., description="Upper edge of the normal band")
    warning_min: float = Field(..., description="Lower edge of the warning band")
    warning_max: float = Field(..., description="Upper edge of the warning band")
    critical_min: float = Field(..., description="Lower edge of the critical band")
    critical_max: float = Field(..., description="Upper edge of the critical band")
    spike_threshold: float = Field(..., gt=0, description="Minimum delta treated as a spike")
    enabled: bool = Field(default=True)

    @field_validator("sensor_type")
    def _normalise_sensor_type(cls, v: str) -> str:
        return v.strip().lower()


class ThresholdUpdateRequest(BaseModel):
    """Partial threshold update. Unknown keys are ignored, not rejected."""
    model_config = ConfigDict(extra="ignore")

    normal_min: Optional[float] = None
    normal_max: Optional[float] = None
    warning_min: Optional[float] = None
    warning_max: Optional[float] = None
    critical_min: Optional[float] = None
    critical_max: Optional[float] = None
    spike_threshold: Optional[float] = Field(default=None, gt=0)
    enabled: Optional[bool] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


# ============================================================================
# Alert Settings Schemas
# ============================================================================

class AlertSettingsUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email_enabled: Optional[bool] = None
    browser_enabled: Optional[bool] = None
    sound_enabled: Optional[bool] = None
    critical_only: Optional[bool] = None
    quiet_hours_enabled: Optional[bool] = None
    quiet_hours_start: Optional[str] = Field(default=None, description="HH:MM (24h)")
    quiet_hours_end: Optional[str] = Field(default=None, description="HH:MM (24h)")

    @field_validator("quiet_hours_start", "quiet_hours_end")
    def _check_hhmm(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not _HHMM.match(v.strip()):
            raise ValueError("Expected HH:MM (24h)")
        return v.strip() if v is not None else v

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


# ============================================================================
# Evaluation Schemas
# ============================================================================

class LocationPayload(BaseModel):
    farmno: Optional[str] = None
    zone: Optional[str] = None

    @field_validator("farmno", "zone", mode="before")
    def _stringify(cls, v):
        return None if v is None else str(v)


class EvaluateRequest(BaseModel):
    """Nested evaluation payload: ``{"readings": {...}, "location": {...}}``.

    Flat legacy payloads are handled by ``ReadingBatch.from_payload`` before
    reaching this model.
    """
    readings: Dict[str, Any] = Field(..., description="sensor_type -> value (null means no reading)")
    location: LocationPayload = Field(default_factory=LocationPayload)

    @model_validator(mode="after")
    def _require_readings(self):
        if not self.readings:
            raise ValueError("readings must contain at least one sensor")
        return self


class AlertTriggerRequest(BaseModel):
    sensor_type: str = Field(default="mq4", min_length=1, max_length=50)
    value: float = Field(default=55.0)
    farmno: Optional[str] = None
    zone: Optional[str] = None

    @field_validator("farmno", "zone", mode="before")
    def _stringify(cls, v):
        return None if v is None else str(v)
