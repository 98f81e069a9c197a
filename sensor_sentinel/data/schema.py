"""
Canonical reading schema for the anomaly detection engine.

This module defines the standardized representation of a single numeric
sensor sample. Acquisition collaborators (I2C/SPI/UART drivers, file replay,
DataFrames) convert their samples to this schema before handing them over.

Design rationale:
- Minimal fields (only what's needed for anomaly detection)
- Immutable once produced
- Non-finite values are representable, so they can be voted on as anomalies
  instead of being rejected at the boundary
"""

from datetime import datetime, timezone
from math import isfinite

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Reading(BaseModel):
    """
    Canonical representation of a single sensor reading.

    Attributes:
        sensor_id: Identifier of the producing sensor
        timestamp: When the sample was taken
        value: Measured value (NaN / inf allowed, flagged downstream)

    Notes:
        - Instances are frozen; ownership passes to the engine per call
        - Naive timestamps are taken as UTC; aware ones are converted to UTC
        - is_valid is False for NaN and +/-inf
    """

    model_config = ConfigDict(frozen=True)

    sensor_id: str = Field(
        ...,
        description="Sensor identifier",
        min_length=1,
        max_length=128,
    )

    timestamp: datetime = Field(
        ...,
        description="Sample timestamp"
    )

    value: float = Field(
        ...,
        description="Measured value"
    )

    @field_validator("timestamp")
    @classmethod
    def to_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @property
    def is_valid(self) -> bool:
        return isfinite(self.value)
