"""Unit tests for period window resolution and bucket labelling."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import pytz

from models.errors import InvalidDateFormat
from models.records import TimeWindow
from services.windows import (
    DAY_GRAIN,
    HOUR_GRAIN,
    MONTH_GRAIN,
    RAW_GRAIN,
    CalendarAlignedWindow,
    Period,
    RollingWindow,
    WindowResolver,
    parse_timestamp,
)

REFERENCE = datetime(2024, 5, 15, 14, 37, 12, tzinfo=timezone.utc)
NEW_YORK = pytz.timezone("America/New_York")


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture()
def resolver() -> WindowResolver:
    return WindowResolver(pytz.utc)


@pytest.mark.parametrize(
    ("offset", "start", "end"),
    [
        (0, _utc(2024, 5, 15, 14), _utc(2024, 5, 15, 15)),
        (-1, _utc(2024, 5, 15, 13), _utc(2024, 5, 15, 14)),
        (1, _utc(2024, 5, 15, 15), _utc(2024, 5, 15, 16)),
        (-15, _utc(2024, 5, 14, 23), _utc(2024, 5, 15, 0)),
    ],
)
def test_hourly_window_snaps_to_the_hour(resolver: WindowResolver, offset, start, end) -> None:
    resolution = resolver.resolve_offset("hourly", offset, REFERENCE)

    assert resolution.window == TimeWindow(start=start, end=end)
    assert resolution.grain is RAW_GRAIN
    assert resolution.period is Period.hourly


def test_day_window_rolls_from_reference(resolver: WindowResolver) -> None:
    current = resolver.resolve_offset("day", 0, REFERENCE).window
    previous = resolver.resolve_offset("day", -1, REFERENCE).window

    assert current == TimeWindow(start=REFERENCE, end=REFERENCE + timedelta(days=1))
    assert previous == TimeWindow(start=REFERENCE - timedelta(days=1), end=REFERENCE)
    assert resolver.resolve_offset("day", 0, REFERENCE).grain is HOUR_GRAIN


def test_week_window_trails_reference(resolver: WindowResolver) -> None:
    current = resolver.resolve_offset("week", 0, REFERENCE).window
    previous = resolver.resolve_offset("week", -1, REFERENCE).window

    assert current == TimeWindow(start=REFERENCE - timedelta(days=7), end=REFERENCE)
    assert previous == TimeWindow(
        start=REFERENCE - timedelta(days=14), end=REFERENCE - timedelta(days=7)
    )
    # The trailing week closes at the reference, so the reference itself
    # belongs to offset +1.
    assert not current.contains(REFERENCE)
    assert resolver.resolve_offset("week", 1, REFERENCE).window.contains(REFERENCE)


@pytest.mark.parametrize(
    ("offset", "start", "end"),
    [
        (0, _utc(2024, 5, 1), _utc(2024, 6, 1)),
        (-1, _utc(2024, 4, 1), _utc(2024, 5, 1)),
        (-5, _utc(2023, 12, 1), _utc(2024, 1, 1)),
        (8, _utc(2025, 1, 1), _utc(2025, 2, 1)),
    ],
)
def test_month_window_is_calendar_aligned(resolver: WindowResolver, offset, start, end) -> None:
    resolution = resolver.resolve_offset("month", offset, REFERENCE)

    assert resolution.window == TimeWindow(start=start, end=end)
    assert resolution.grain is DAY_GRAIN


def test_year_window_is_calendar_aligned(resolver: WindowResolver) -> None:
    current = resolver.resolve_offset("year", 0, REFERENCE)
    previous = resolver.resolve_offset("year", -1, REFERENCE)

    assert current.window == TimeWindow(start=_utc(2024, 1, 1), end=_utc(2025, 1, 1))
    assert previous.window == TimeWindow(start=_utc(2023, 1, 1), end=_utc(2024, 1, 1))
    assert current.grain is MONTH_GRAIN


def test_unknown_period_uses_trailing_day_and_ignores_offset(resolver: WindowResolver) -> None:
    resolution = resolver.resolve_offset("fortnight", 3, REFERENCE)

    assert resolution.window == TimeWindow(start=REFERENCE - timedelta(days=1), end=REFERENCE)
    assert resolution.grain is HOUR_GRAIN
    assert resolution.period is None


@pytest.mark.parametrize("period", ["hourly", "day", "week", "month", "year"])
@pytest.mark.parametrize("offset", [-3, -1, 0, 2])
def test_adjacent_offsets_are_contiguous(resolver: WindowResolver, period: str, offset: int) -> None:
    earlier = resolver.resolve_offset(period, offset - 1, REFERENCE).window
    later = resolver.resolve_offset(period, offset, REFERENCE).window

    assert earlier.end == later.start


@pytest.mark.parametrize("period", ["hourly", "day", "month", "year"])
def test_current_window_contains_reference(resolver: WindowResolver, period: str) -> None:
    assert resolver.resolve_offset(period, 0, REFERENCE).window.contains(REFERENCE)


@pytest.mark.parametrize(
    ("period", "seconds"),
    [("hourly", 3600), ("day", 86400), ("week", 7 * 86400)],
)
@pytest.mark.parametrize("offset", [-2, 0, 5])
def test_fixed_width_periods(resolver: WindowResolver, period: str, seconds: int, offset: int) -> None:
    window = resolver.resolve_offset(period, offset, REFERENCE).window

    assert window.duration.total_seconds() == seconds


def test_month_and_year_widths_follow_the_calendar(resolver: WindowResolver) -> None:
    february = resolver.resolve_offset("month", -3, REFERENCE).window
    leap_year = resolver.resolve_offset("year", 0, REFERENCE).window

    assert february.duration == timedelta(days=29)
    assert leap_year.duration == timedelta(days=366)


def test_calendar_boundaries_use_local_midnight_across_dst() -> None:
    resolver = WindowResolver(NEW_YORK)
    reference = _utc(2024, 3, 15, 12)

    month = resolver.resolve_offset("month", 0, reference).window
    year = resolver.resolve_offset("year", 0, reference).window

    # March 1st is EST (-5), April 1st is EDT (-4).
    assert month == TimeWindow(start=_utc(2024, 3, 1, 5), end=_utc(2024, 4, 1, 4))
    assert month.duration == timedelta(days=31) - timedelta(hours=1)
    assert year == TimeWindow(start=_utc(2024, 1, 1, 5), end=_utc(2025, 1, 1, 5))


def test_month_uses_local_calendar_not_utc() -> None:
    resolver = WindowResolver(NEW_YORK)
    # 02:00 UTC on June 1st is still May 31st in New York.
    reference = _utc(2024, 6, 1, 2)

    month = resolver.resolve_offset("month", 0, reference).window

    assert month.start == _utc(2024, 5, 1, 4)
    assert month.contains(reference)


def test_hourly_truncates_in_half_hour_offset_zone() -> None:
    resolver = WindowResolver(pytz.timezone("Asia/Kolkata"))

    window = resolver.resolve_offset("hourly", 0, REFERENCE).window

    # 14:37 UTC is 20:07 IST; the local hour opened at 14:30 UTC.
    assert window == TimeWindow(start=_utc(2024, 5, 15, 14, 30), end=_utc(2024, 5, 15, 15, 30))


def test_hourly_windows_stay_one_hour_across_fall_back() -> None:
    resolver = WindowResolver(NEW_YORK)
    # 05:30 UTC is 01:30 EDT, just before clocks fall back.
    reference = _utc(2024, 11, 3, 5, 30)

    windows = [resolver.resolve_offset("hourly", offset, reference).window for offset in range(3)]

    assert [window.start for window in windows] == [
        _utc(2024, 11, 3, 5),
        _utc(2024, 11, 3, 6),
        _utc(2024, 11, 3, 7),
    ]
    assert all(window.duration == timedelta(hours=1) for window in windows)


def test_out_of_range_offset_is_rejected(resolver: WindowResolver) -> None:
    with pytest.raises(InvalidDateFormat):
        resolver.resolve_offset("year", 10_000, REFERENCE)
    with pytest.raises(InvalidDateFormat):
        resolver.resolve_offset("day", 10**9, REFERENCE)


def test_naive_reference_is_treated_as_utc(resolver: WindowResolver) -> None:
    naive = REFERENCE.replace(tzinfo=None)

    assert resolver.resolve_offset("hourly", 0, naive).window.start == _utc(2024, 5, 15, 14)


def test_explicit_range_is_used_verbatim(resolver: WindowResolver) -> None:
    resolution = resolver.resolve(
        "week",
        REFERENCE,
        start_date="2024-05-01T06:15:00Z",
        end_date="2024-05-03T18:45:30+02:00",
    )

    assert resolution.window == TimeWindow(
        start=_utc(2024, 5, 1, 6, 15), end=_utc(2024, 5, 3, 16, 45, 30)
    )
    assert resolution.grain is DAY_GRAIN


def test_explicit_range_with_naive_dates_is_utc(resolver: WindowResolver) -> None:
    resolution = resolver.resolve_range("day", "2024-05-01", "2024-05-02")

    assert resolution.window == TimeWindow(start=_utc(2024, 5, 1), end=_utc(2024, 5, 2))


@pytest.mark.parametrize(
    ("start_date", "end_date"),
    [
        ("NaN", "2024-05-02T00:00:00Z"),
        ("2024-05-01T00:00:00Z", "not-a-date"),
        ("", "2024-05-02T00:00:00Z"),
        ("2024-05-01T00:00:00Z", None),
        (None, "2024-05-02T00:00:00Z"),
        ("2024-05-02T00:00:00Z", "2024-05-01T00:00:00Z"),
        ("2024-05-01T00:00:00Z", "2024-05-01T00:00:00Z"),
        ("2024-01-01T00:00:00Z", "9999-12-31T23:00:00-05:00"),
        ("0001-01-01T00:00:00+05:00", "2024-01-01T00:00:00Z"),
    ],
)
def test_explicit_range_rejects_bad_dates(resolver: WindowResolver, start_date, end_date) -> None:
    with pytest.raises(InvalidDateFormat):
        resolver.resolve("day", REFERENCE, start_date=start_date, end_date=end_date)


def test_rolling_and_calendar_strategies_are_distinct() -> None:
    rolling = RollingWindow(timedelta(days=30))
    calendar = CalendarAlignedWindow("month")

    rolled = rolling.window(REFERENCE, 0, pytz.utc)
    aligned = calendar.window(REFERENCE, 0, pytz.utc)

    assert rolled.start == REFERENCE
    assert aligned.start == _utc(2024, 5, 1)


def test_grain_labels() -> None:
    instant = _utc(2024, 5, 15, 14, 37, 12)

    assert HOUR_GRAIN.label(instant, pytz.utc) == "2024-05-15 14:00:00"
    assert DAY_GRAIN.label(instant, pytz.utc) == "2024-05-15"
    assert MONTH_GRAIN.label(instant, pytz.utc) == "2024-05-01"
    assert RAW_GRAIN.label(instant, pytz.utc) == "2024-05-15T14:37:12+00:00"
    assert DAY_GRAIN.label(_utc(2024, 5, 15, 2), NEW_YORK) == "2024-05-14"


def test_hour_span_covers_repeated_fall_back_hour() -> None:
    span = HOUR_GRAIN.span("2024-11-03 01:00:00", NEW_YORK)

    assert span == TimeWindow(start=_utc(2024, 11, 3, 5), end=_utc(2024, 11, 3, 7))
    assert HOUR_GRAIN.label(_utc(2024, 11, 3, 5, 10), NEW_YORK) == "2024-11-03 01:00:00"
    assert HOUR_GRAIN.label(_utc(2024, 11, 3, 6, 10), NEW_YORK) == "2024-11-03 01:00:00"


def test_hour_span_before_spring_forward_gap() -> None:
    span = HOUR_GRAIN.span("2024-03-10 01:00:00", NEW_YORK)

    assert span == TimeWindow(start=_utc(2024, 3, 10, 6), end=_utc(2024, 3, 10, 7))


def test_month_span_inverts_month_label() -> None:
    assert MONTH_GRAIN.span("2024-02-01", pytz.utc) == TimeWindow(
        start=_utc(2024, 2, 1), end=_utc(2024, 3, 1)
    )


def test_period_parse() -> None:
    assert Period.parse("week") is Period.week
    assert Period.parse(Period.year) is Period.year
    assert Period.parse("WEEK") is None
    assert Period.parse(None) is None


@pytest.mark.parametrize(
    "value",
    ["9999-12-31T23:00:00-05:00", "0001-01-01T00:00:00+05:00"],
)
def test_parse_timestamp_rejects_instants_beyond_datetime_range(value: str) -> None:
    with pytest.raises(ValueError):
        parse_timestamp(value)
