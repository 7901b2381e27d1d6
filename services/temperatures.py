"""Request orchestration for temperature queries and ingest."""

from __future__ import annotations

import hmac
import logging
from contextlib import contextmanager
from datetime import datetime, timezone, tzinfo
from functools import lru_cache
from typing import Any, Callable, Iterator, List, Mapping, Optional, Union

import pytz
from pydantic import ValidationError

from app.schemas import IngestPayload
from datastore.reading_table import ReadingTable, build_default_table
from datastore.synthetic import generate_readings
from models.errors import (
    InvalidPayload,
    TemperatureServiceError,
    UnauthorizedIngest,
)
from models.records import Bucket, LocatedReading, WindowStatistics
from services.aggregator import AggregationEngine
from services.drilldown import RawDrilldownResolver
from services.registry import DeviceLocationRegistry
from services.windows import Period, WindowResolver, parse_timestamp
from settings import get_settings

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        field = ".".join(str(item) for item in error.get("loc", ())) or "payload"
        parts.append(f"{field}: {error.get('msg')}")
    return "; ".join(parts)


class TemperatureService:
    """Coordinates window resolution, aggregation, drill-down and ingest."""

    def __init__(
        self,
        store: ReadingTable,
        registry: DeviceLocationRegistry,
        zone: tzinfo,
        clock: Clock = utc_now,
        ingest_secret: Optional[str] = None,
        raw_limit: int = 100,
    ) -> None:
        self.store = store
        self.registry = registry
        self.zone = zone
        self.clock = clock
        self.ingest_secret = ingest_secret
        self.raw_limit = raw_limit
        self.resolver = WindowResolver(zone)
        self.engine = AggregationEngine(store=store, registry=registry, zone=zone)
        self.drilldown = RawDrilldownResolver(registry=registry, zone=zone)

    def get_buckets(
        self,
        period: Union[str, Period, None] = Period.day,
        offset: int = 0,
        location: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Union[List[Bucket], List[LocatedReading]]:
        """Aggregated buckets for a period, or raw readings for ``hourly``."""
        with self._rejections("buckets"):
            self._check_location(location)
            resolution = self.resolver.resolve(
                period, self.clock(), offset=offset, start_date=start_date, end_date=end_date
            )

        rows: Union[List[Bucket], List[LocatedReading]]
        if resolution.grain.is_raw:
            rows = self.engine.raw_readings(
                resolution.window, location, limit if limit is not None else self.raw_limit
            )
        else:
            rows = self.engine.aggregate(resolution.window, resolution.grain, location)

        logger.debug(
            "Resolved bucket request",
            extra={
                "period": getattr(resolution.period, "value", period),
                "location": location,
                "window_start": resolution.window.start,
                "window_end": resolution.window.end,
                "bucket_count": len(rows),
            },
        )
        return rows

    def get_latest(self, location: Optional[str] = None) -> Optional[LocatedReading]:
        with self._rejections("latest"):
            self._check_location(location)
        return self.engine.latest(location)

    def get_stats(
        self,
        period: Union[str, Period, None] = Period.day,
        offset: int = 0,
        location: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> WindowStatistics:
        with self._rejections("stats"):
            self._check_location(location)
            resolution = self.resolver.resolve(
                period, self.clock(), offset=offset, start_date=start_date, end_date=end_date
            )
        stats = self.engine.statistics(resolution.window, location)
        logger.debug(
            "Computed window statistics",
            extra={
                "location": location,
                "window_start": resolution.window.start,
                "window_end": resolution.window.end,
                "reading_count": stats.total_readings,
            },
        )
        return stats

    def get_raw_for_bucket(
        self,
        label: Optional[str],
        location: Optional[str],
        period: Union[str, Period, None] = None,
    ) -> List[LocatedReading]:
        """Readings behind one rendered bucket label, oldest first."""
        with self._rejections("raw"):
            window = self.drilldown.resolve(label, location, period)
        return self.engine.readings_in(window, location)

    def ingest(self, secret: Optional[str], payload: Any) -> LocatedReading:
        """Store one reading after checking the shared secret and the payload."""
        with self._rejections("ingest"):
            self._authorize(secret)
            parsed = self._validate_payload(payload)
            location = self.registry.location_of(parsed.device_id)
            if location is None:
                raise InvalidPayload(
                    f"Device {parsed.device_id!r} is not registered to any location."
                )
            timestamp = self._ingest_timestamp(parsed.timestamp)

        reading = self.store.insert(parsed.temperature, parsed.device_id, timestamp)
        logger.info(
            "Stored temperature reading",
            extra={"device_id": reading.device_id, "location": location},
        )
        return LocatedReading.from_reading(reading, location)

    def seed_if_empty(self, days: int = 30, seed: Optional[int] = None) -> int:
        """Fill an empty store with synthetic demo readings; returns the number inserted."""
        if self.store.count():
            return 0
        readings = generate_readings(self.registry, self.zone, end=self.clock(), days=days, seed=seed)
        inserted = self.store.insert_many(readings)
        logger.info("Seeded demo readings", extra={"reading_count": inserted})
        return inserted

    def _check_location(self, location: Optional[str]) -> None:
        if location is not None:
            self.registry.require_location(location)

    def _authorize(self, secret: Optional[str]) -> None:
        if self.ingest_secret is None:
            raise UnauthorizedIngest("Ingest is disabled because no shared secret is configured.")
        if secret is None:
            raise UnauthorizedIngest("Missing ingest secret.")
        if not hmac.compare_digest(secret.encode("utf-8"), self.ingest_secret.encode("utf-8")):
            raise UnauthorizedIngest("Ingest secret does not match.")

    @staticmethod
    def _validate_payload(payload: Any) -> IngestPayload:
        if not isinstance(payload, Mapping):
            raise InvalidPayload("Payload must be a JSON object.")
        try:
            return IngestPayload.model_validate(dict(payload))
        except ValidationError as exc:
            raise InvalidPayload(_describe_validation_error(exc)) from exc

    def _ingest_timestamp(self, value: Optional[str]) -> datetime:
        if value is None:
            return self.clock()
        try:
            return parse_timestamp(value)
        except ValueError as exc:
            raise InvalidPayload(f"timestamp {value!r} is not a valid ISO-8601 timestamp.") from exc

    @contextmanager
    def _rejections(self, operation: str) -> Iterator[None]:
        try:
            yield
        except TemperatureServiceError as exc:
            logger.warning(
                "Rejected %s request", operation, extra={"kind": exc.kind, "reason": exc.reason}
            )
            raise


@lru_cache
def build_default_service() -> TemperatureService:
    """Factory that wires the service from environment settings."""
    settings = get_settings()
    return TemperatureService(
        store=build_default_table(),
        registry=DeviceLocationRegistry(settings.device_locations),
        zone=pytz.timezone(settings.timezone),
        ingest_secret=settings.ingest_secret,
        raw_limit=settings.raw_limit,
    )
