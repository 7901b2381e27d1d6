"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.records import Bucket, LocatedReading, WindowStatistics


class IngestPayload(BaseModel):
    """Body accepted when a sensor reports a reading."""

    model_config = ConfigDict(strict=True)

    temperature: float = Field(..., description="Reading in sensor units, e.g. degrees F.")
    device_id: str = Field(..., min_length=1, description="Physical sensor identifier.")
    timestamp: Optional[str] = Field(
        default=None, description="ISO-8601 instant; defaults to the ingestion time."
    )

    @field_validator("temperature", mode="before")
    @classmethod
    def _reject_bool(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("temperature must be a number")
        return value

    @field_validator("temperature")
    @classmethod
    def _require_finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("temperature must be a finite number")
        return value

    @field_validator("device_id")
    @classmethod
    def _strip_device_id(cls, value: str) -> str:
        candidate = value.strip()
        if not candidate:
            raise ValueError("device_id must not be blank")
        return candidate


class ReadingOut(BaseModel):
    """A single reading with its resolved location."""

    temperature: float
    device_id: str
    location: str
    timestamp: datetime
    reading_count: int = Field(default=1, ge=1)

    @classmethod
    def from_record(cls, record: LocatedReading) -> "ReadingOut":
        return cls(
            temperature=record.temperature,
            device_id=record.device_id,
            location=record.location,
            timestamp=record.timestamp,
            reading_count=record.reading_count,
        )


class BucketOut(BaseModel):
    """One aggregated bucket; ``timestamp`` is the rendered bucket label."""

    timestamp: str
    location: str
    temperature: float
    reading_count: int = Field(..., ge=1)

    @classmethod
    def from_record(cls, record: Bucket) -> "BucketOut":
        return cls(
            timestamp=record.label,
            location=record.location,
            temperature=record.temperature,
            reading_count=record.reading_count,
        )


class StatsOut(BaseModel):
    """Whole-window statistics; values are null when the window holds no readings."""

    avg_temp: Optional[float] = None
    min_temp: Optional[float] = None
    max_temp: Optional[float] = None
    total_readings: int = Field(..., ge=0)

    @classmethod
    def from_record(cls, record: WindowStatistics) -> "StatsOut":
        return cls(
            avg_temp=record.avg_temp,
            min_temp=record.min_temp,
            max_temp=record.max_temp,
            total_readings=record.total_readings,
        )


class LocationsOut(BaseModel):
    """Registered locations and the devices reporting for each."""

    locations: Dict[str, List[str]] = Field(default_factory=dict)


class ErrorDetail(BaseModel):
    """Structured rejection returned as the ``detail`` of error responses."""

    error: str
    reason: str
