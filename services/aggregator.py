"""Aggregation logic for temperature readings."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import tzinfo
from typing import AbstractSet, Dict, Iterable, List, Optional, Tuple

from datastore.reading_table import ReadingTable
from models.errors import UnknownLocation
from models.records import Bucket, LocatedReading, Reading, TimeWindow, WindowStatistics
from services.registry import DeviceLocationRegistry
from services.windows import BucketGrain


def round_half_away(value: float, digits: int = 1) -> float:
    """Round ``value * 10**digits`` half away from zero, then scale back."""
    scale = 10**digits
    rounded = math.floor(abs(value) * scale + 0.5) / scale
    if rounded == 0:
        return 0.0
    return rounded if value > 0 else -rounded


@dataclass
class _Accumulator:
    total: float = 0.0
    count: int = 0


class AggregationEngine:
    """Reduces readings of a resolved window into buckets, raw rows or statistics."""

    def __init__(
        self,
        store: ReadingTable,
        registry: DeviceLocationRegistry,
        zone: tzinfo,
    ) -> None:
        self.store = store
        self.registry = registry
        self.zone = zone

    def aggregate(
        self,
        window: TimeWindow,
        grain: BucketGrain,
        location: Optional[str] = None,
    ) -> List[Bucket]:
        """Per-(label, location) averages, ascending by label. Empty buckets are omitted."""
        if grain.is_raw:
            raise ValueError("The raw grain does not group readings; use raw_readings().")
        readings = self._query(window, location)

        groups: Dict[Tuple[str, str], _Accumulator] = {}
        for reading in readings:
            key = (grain.label(reading.timestamp, self.zone), self._locate(reading))
            accumulator = groups.setdefault(key, _Accumulator())
            accumulator.total += reading.temperature
            accumulator.count += 1

        return [
            Bucket(
                label=label,
                location=bucket_location,
                temperature=round_half_away(accumulator.total / accumulator.count),
                reading_count=accumulator.count,
            )
            for (label, bucket_location), accumulator in sorted(groups.items())
        ]

    def raw_readings(
        self,
        window: TimeWindow,
        location: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[LocatedReading]:
        """Individual readings, newest first, each counted once."""
        readings = self._query(window, location)
        newest_first = list(reversed(readings))
        if limit is not None:
            newest_first = newest_first[:limit]
        return [LocatedReading.from_reading(reading, self._locate(reading)) for reading in newest_first]

    def statistics(
        self,
        window: TimeWindow,
        location: Optional[str] = None,
    ) -> WindowStatistics:
        return self.summarize(self._query(window, location))

    def latest(self, location: Optional[str] = None) -> Optional[LocatedReading]:
        reading = self.store.latest(self._device_filter(location))
        if reading is None:
            return None
        return LocatedReading.from_reading(reading, self._locate(reading))

    def readings_in(
        self,
        window: TimeWindow,
        location: Optional[str] = None,
    ) -> List[LocatedReading]:
        """Individual readings, oldest first."""
        return [
            LocatedReading.from_reading(reading, self._locate(reading))
            for reading in self._query(window, location)
        ]

    @staticmethod
    def summarize(readings: Iterable[Reading]) -> WindowStatistics:
        count = 0
        total = 0.0
        minimum: Optional[float] = None
        maximum: Optional[float] = None

        for reading in readings:
            count += 1
            value = reading.temperature
            total += value

            if minimum is None or value < minimum:
                minimum = value
            if maximum is None or value > maximum:
                maximum = value

        if not count:
            return WindowStatistics()
        return WindowStatistics(
            avg_temp=total / count,
            min_temp=minimum,
            max_temp=maximum,
            total_readings=count,
        )

    def _device_filter(self, location: Optional[str]) -> Optional[AbstractSet[str]]:
        if location is None:
            return None
        return self.registry.require_location(location)

    def _query(self, window: TimeWindow, location: Optional[str]) -> List[Reading]:
        device_ids = self._device_filter(location)
        return self.store.query(window.start, window.end, device_ids)

    def _locate(self, reading: Reading) -> str:
        location = self.registry.location_of(reading.device_id)
        if location is None:
            raise UnknownLocation(
                f"Device {reading.device_id!r} has no registered location."
            )
        return location
