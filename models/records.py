"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional


@dataclass(frozen=True, slots=True)
class Reading:
    """A single stored temperature reading. Timestamps are UTC-aware."""

    temperature: float
    device_id: str
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class LocatedReading:
    """A reading tagged with the location its device is registered to."""

    temperature: float
    device_id: str
    location: str
    timestamp: datetime
    reading_count: int = 1

    @classmethod
    def from_reading(cls, reading: Reading, location: str) -> "LocatedReading":
        return cls(
            temperature=reading.temperature,
            device_id=reading.device_id,
            location=location,
            timestamp=reading.timestamp,
        )


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """Half-open interval ``[start, end)``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if not self.start < self.end:
            raise ValueError(
                f"Window start {self.start.isoformat()} must precede end {self.end.isoformat()}."
            )

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


@dataclass(frozen=True, slots=True)
class Bucket:
    """Aggregated readings of one location sharing a rendered label."""

    label: str
    location: str
    temperature: float
    reading_count: int


@dataclass(frozen=True, slots=True)
class WindowStatistics:
    """Whole-window statistics; all values are ``None`` for an empty window."""

    avg_temp: Optional[float] = None
    min_temp: Optional[float] = None
    max_temp: Optional[float] = None
    total_readings: int = 0
