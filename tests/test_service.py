from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest
import pytz

from datastore.reading_table import ReadingTable
from models.errors import (
    InvalidDateFormat,
    InvalidDrilldownRequest,
    InvalidPayload,
    StorageUnavailable,
    UnauthorizedIngest,
    UnknownLocation,
)
from models.records import Bucket, LocatedReading
from services.registry import DeviceLocationRegistry
from services.temperatures import TemperatureService

SECRET = "s3cret"
NOW = datetime(2024, 5, 15, 14, 37, 12, tzinfo=timezone.utc)


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture()
def table() -> ReadingTable:
    return ReadingTable(name="test")


@pytest.fixture()
def service(table: ReadingTable) -> TemperatureService:
    return TemperatureService(
        store=table,
        registry=DeviceLocationRegistry({"28-pool": "pool", "28-outside": "outside"}),
        zone=pytz.utc,
        clock=lambda: NOW,
        ingest_secret=SECRET,
        raw_limit=3,
    )


def test_day_period_returns_hour_buckets(service: TemperatureService, table: ReadingTable) -> None:
    table.insert(72.34, "28-outside", _utc(2024, 5, 15, 10, 0))
    table.insert(72.66, "28-outside", _utc(2024, 5, 15, 10, 20))

    rows = service.get_buckets("day", offset=-1)

    assert rows == [Bucket(label="2024-05-15 10:00:00", location="outside", temperature=72.5, reading_count=2)]


def test_hourly_period_returns_capped_raw_readings(service: TemperatureService, table: ReadingTable) -> None:
    for minute in range(0, 35, 5):
        table.insert(80.0, "28-pool", _utc(2024, 5, 15, 14, minute))

    default_cap = service.get_buckets("hourly")
    explicit_cap = service.get_buckets("hourly", limit=5)

    assert len(default_cap) == 3
    assert len(explicit_cap) == 5
    assert all(isinstance(row, LocatedReading) for row in default_cap)
    assert default_cap[0].timestamp == _utc(2024, 5, 15, 14, 30)


def test_explicit_range_replaces_offset_window(service: TemperatureService, table: ReadingTable) -> None:
    table.insert(70.0, "28-pool", _utc(2024, 1, 10, 9))

    rows = service.get_buckets(
        "day", offset=-3, start_date="2024-01-01T00:00:00Z", end_date="2024-02-01T00:00:00Z"
    )

    assert [row.label for row in rows] == ["2024-01-10 09:00:00"]


def test_bad_range_is_rejected(service: TemperatureService) -> None:
    with pytest.raises(InvalidDateFormat):
        service.get_buckets(start_date="yesterday", end_date="2024-02-01")
    with pytest.raises(InvalidDateFormat):
        service.get_stats(start_date="2024-02-01", end_date="2024-01-01")


def test_unknown_location_is_rejected_and_logged(service: TemperatureService, caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="services.temperatures"):
        with pytest.raises(UnknownLocation):
            service.get_buckets("day", location="garage")

    record = caplog.records[-1]
    assert record.kind == "UnknownLocation"
    assert "garage" in record.reason


def test_stats_cover_the_window(service: TemperatureService, table: ReadingTable) -> None:
    table.insert(70.0, "28-pool", _utc(2024, 5, 15, 1))
    table.insert(75.0, "28-outside", _utc(2024, 5, 15, 2))
    table.insert(99.0, "28-outside", _utc(2024, 5, 1, 2))

    stats = service.get_stats("day", offset=-1)

    assert (stats.avg_temp, stats.min_temp, stats.max_temp, stats.total_readings) == (72.5, 70.0, 75.0, 2)


def test_latest_is_none_on_empty_store(service: TemperatureService) -> None:
    assert service.get_latest() is None
    with pytest.raises(UnknownLocation):
        service.get_latest("garage")


def test_drilldown_recovers_bucket_readings(service: TemperatureService, table: ReadingTable) -> None:
    table.insert(72.34, "28-outside", _utc(2024, 5, 15, 10, 0))
    table.insert(72.66, "28-outside", _utc(2024, 5, 15, 10, 20))
    table.insert(80.0, "28-pool", _utc(2024, 5, 15, 10, 10))

    for period in ("day", "week", "month", "year"):
        for bucket in service.get_buckets(period, offset=-1 if period == "day" else 0):
            readings = service.get_raw_for_bucket(bucket.label, bucket.location, period)
            assert len(readings) == bucket.reading_count
            assert {reading.location for reading in readings} == {bucket.location}


def test_drilldown_requires_label_and_location(service: TemperatureService) -> None:
    with pytest.raises(InvalidDrilldownRequest):
        service.get_raw_for_bucket(None, "pool")


def test_ingest_stores_reading_with_clock_timestamp(service: TemperatureService, table: ReadingTable) -> None:
    stored = service.ingest(SECRET, {"temperature": 81.2, "device_id": "28-pool"})

    assert stored == LocatedReading(temperature=81.2, device_id="28-pool", location="pool", timestamp=NOW)
    assert table.count() == 1


def test_ingest_honours_explicit_timestamp(service: TemperatureService) -> None:
    stored = service.ingest(
        SECRET,
        {"temperature": 60, "device_id": " 28-outside ", "timestamp": "2024-05-15T08:00:00-04:00"},
    )

    assert stored.timestamp == _utc(2024, 5, 15, 12)
    assert stored.device_id == "28-outside"
    assert stored.temperature == 60.0


@pytest.mark.parametrize("secret", [None, "", "wrong"])
def test_ingest_rejects_bad_secret(service: TemperatureService, table: ReadingTable, secret) -> None:
    with pytest.raises(UnauthorizedIngest):
        service.ingest(secret, {"temperature": 80.0, "device_id": "28-pool"})

    assert table.count() == 0


def test_ingest_is_disabled_without_configured_secret(table: ReadingTable) -> None:
    service = TemperatureService(
        store=table,
        registry=DeviceLocationRegistry({"28-pool": "pool"}),
        zone=pytz.utc,
    )

    with pytest.raises(UnauthorizedIngest):
        service.ingest("anything", {"temperature": 80.0, "device_id": "28-pool"})


@pytest.mark.parametrize(
    "payload",
    [
        [],
        "80.0",
        {"device_id": "28-pool"},
        {"temperature": "80.0", "device_id": "28-pool"},
        {"temperature": True, "device_id": "28-pool"},
        {"temperature": float("nan"), "device_id": "28-pool"},
        {"temperature": 80.0, "device_id": "   "},
        {"temperature": 80.0, "device_id": "28-unknown"},
        {"temperature": 80.0, "device_id": "28-pool", "timestamp": "not-a-time"},
    ],
)
def test_ingest_rejects_bad_payloads(service: TemperatureService, table: ReadingTable, payload) -> None:
    with pytest.raises(InvalidPayload):
        service.ingest(SECRET, payload)

    assert table.count() == 0


def test_seed_if_empty_only_seeds_once(service: TemperatureService, table: ReadingTable) -> None:
    inserted = service.seed_if_empty(days=1, seed=7)

    assert inserted == table.count() == 2 * 49
    assert service.seed_if_empty(days=1, seed=7) == 0
    assert {reading.device_id for reading in table.query(_utc(2024, 1, 1), NOW)} == {"28-pool", "28-outside"}


def test_ingest_rejects_timestamp_beyond_datetime_range(service: TemperatureService, table: ReadingTable) -> None:
    with pytest.raises(InvalidPayload):
        service.ingest(
            SECRET,
            {"temperature": 80.0, "device_id": "28-pool", "timestamp": "0001-01-01T00:00:00+05:00"},
        )

    assert table.count() == 0


def test_explicit_range_beyond_datetime_range_is_rejected(service: TemperatureService) -> None:
    with pytest.raises(InvalidDateFormat):
        service.get_buckets(start_date="2024-01-01", end_date="9999-12-31T23:00:00-05:00")


def test_failed_store_write_leaves_no_reading(tmp_path) -> None:
    path = tmp_path / "readings.json"
    table = ReadingTable(name="test", persistence_path=path)
    path.mkdir()
    service = TemperatureService(
        store=table,
        registry=DeviceLocationRegistry({"28-pool": "pool"}),
        zone=pytz.utc,
        clock=lambda: NOW,
        ingest_secret=SECRET,
    )

    with pytest.raises(StorageUnavailable):
        service.ingest(SECRET, {"temperature": 80.0, "device_id": "28-pool"})

    assert table.count() == 0
    assert service.get_latest() is None
