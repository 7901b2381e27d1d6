"""Period window resolution and bucket labelling.

A period keyword plus either a relative offset or an explicit range resolves
to a half-open :class:`TimeWindow` and the :class:`BucketGrain` used to group
readings inside it. Local calendar fields come from the configured timezone;
all returned instants are UTC.

``day`` and ``week`` are rolling windows anchored to the reference instant's
time of day while ``hourly``, ``month`` and ``year`` snap to calendar
boundaries. Both behaviours are kept as separate strategies.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Dict, Optional, Union

import pytz

from models.errors import InvalidDateFormat
from models.records import TimeWindow


class Period(str, Enum):
    """Aggregation granularities accepted by the API."""

    hourly = "hourly"
    day = "day"
    week = "week"
    month = "month"
    year = "year"

    @classmethod
    def parse(cls, value: Union[str, "Period", None]) -> Optional["Period"]:
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 string into an aware UTC datetime; naive means UTC."""
    candidate = value.strip()
    if not candidate:
        raise ValueError("Timestamp is empty.")

    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValueError("Invalid timestamp format") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError as exc:
        raise ValueError("Timestamp is outside the supported date range") from exc


def localize(wall: datetime, zone: tzinfo) -> datetime:
    """Map a naive local wall-clock time to a UTC instant.

    A repeated wall time (DST fall-back) maps to its earliest occurrence. A
    skipped wall time (spring-forward) maps to the transition instant.
    """
    if not hasattr(zone, "localize"):
        return wall.replace(tzinfo=zone).astimezone(timezone.utc)
    try:
        local = zone.localize(wall, is_dst=None)
    except pytz.AmbiguousTimeError:
        local = zone.localize(wall, is_dst=True)
    except pytz.NonExistentTimeError:
        local = zone.localize(wall, is_dst=False)
    return local.astimezone(timezone.utc)


def _add_months(wall: datetime, months: int) -> datetime:
    index = wall.year * 12 + (wall.month - 1) + months
    return wall.replace(year=index // 12, month=index % 12 + 1, day=1)


class WindowStrategy:
    """Computes the window ``offset`` periods away from a reference instant."""

    def window(self, reference: datetime, offset: int, zone: tzinfo) -> TimeWindow:
        raise NotImplementedError


@dataclass(frozen=True)
class RollingWindow(WindowStrategy):
    """Fixed-width window anchored to the reference instant, not the calendar.

    With ``anchor="start"`` the reference opens window 0; with ``anchor="end"``
    it closes window 0.
    """

    width: timedelta
    anchor: str = "start"

    def window(self, reference: datetime, offset: int, zone: tzinfo) -> TimeWindow:
        shifted = reference + self.width * offset
        if self.anchor == "start":
            return TimeWindow(start=shifted, end=shifted + self.width)
        return TimeWindow(start=shifted - self.width, end=shifted)


@dataclass(frozen=True)
class CalendarAlignedWindow(WindowStrategy):
    """Window snapped to the local ``hour``, ``month`` or ``year`` containing the reference."""

    unit: str

    def window(self, reference: datetime, offset: int, zone: tzinfo) -> TimeWindow:
        local = reference.astimezone(zone)
        if self.unit == "hour":
            # Hours shift in absolute time so every window is exactly 3600s.
            top = local.replace(minute=0, second=0, microsecond=0).astimezone(timezone.utc)
            start = top + timedelta(hours=offset)
            return TimeWindow(start=start, end=start + timedelta(hours=1))
        if self.unit == "month":
            first = datetime(local.year, local.month, 1)
            start_wall = _add_months(first, offset)
            end_wall = _add_months(first, offset + 1)
        elif self.unit == "year":
            start_wall = datetime(local.year + offset, 1, 1)
            end_wall = datetime(local.year + offset + 1, 1, 1)
        else:
            raise ValueError(f"Unsupported calendar unit {self.unit!r}.")
        return TimeWindow(start=localize(start_wall, zone), end=localize(end_wall, zone))


@dataclass(frozen=True)
class BucketGrain:
    """Truncation applied to readings and the label format that renders it.

    ``unit`` is ``None`` for the raw grain, which performs no grouping.
    """

    name: str
    unit: Optional[str]
    label_format: Optional[str]

    @property
    def is_raw(self) -> bool:
        return self.unit is None

    def label(self, instant: datetime, zone: tzinfo) -> str:
        if self.label_format is None:
            return instant.astimezone(timezone.utc).isoformat()
        return instant.astimezone(zone).strftime(self.label_format)

    def parse_label(self, label: str) -> datetime:
        """Return the naive local wall time a label was truncated to."""
        if self.label_format is None:
            raise ValueError(f"The {self.name} grain has no bucket labels.")
        return datetime.strptime(label, self.label_format)

    def span(self, label: str, zone: tzinfo) -> TimeWindow:
        """Every instant whose rendered label equals ``label``."""
        wall = self.parse_label(label)
        if self.unit == "hour":
            following = wall + timedelta(hours=1)
        elif self.unit == "day":
            following = wall + timedelta(days=1)
        else:
            following = _add_months(wall, 1)
        return TimeWindow(start=localize(wall, zone), end=localize(following, zone))


RAW_GRAIN = BucketGrain(name="raw", unit=None, label_format=None)
HOUR_GRAIN = BucketGrain(name="hour", unit="hour", label_format="%Y-%m-%d %H:00:00")
DAY_GRAIN = BucketGrain(name="day", unit="day", label_format="%Y-%m-%d")
MONTH_GRAIN = BucketGrain(name="month", unit="month", label_format="%Y-%m-01")


@dataclass(frozen=True)
class PeriodRule:
    window: WindowStrategy
    grain: BucketGrain
    honours_offset: bool = True


PERIOD_RULES: Dict[Period, PeriodRule] = {
    Period.hourly: PeriodRule(CalendarAlignedWindow("hour"), RAW_GRAIN),
    Period.day: PeriodRule(RollingWindow(timedelta(days=1), anchor="start"), HOUR_GRAIN),
    Period.week: PeriodRule(RollingWindow(timedelta(days=7), anchor="end"), DAY_GRAIN),
    Period.month: PeriodRule(CalendarAlignedWindow("month"), DAY_GRAIN),
    Period.year: PeriodRule(CalendarAlignedWindow("year"), MONTH_GRAIN),
}

# Unrecognised periods fall back to the trailing 24 hours, grouped by hour.
DEFAULT_RULE = PeriodRule(
    RollingWindow(timedelta(days=1), anchor="end"), HOUR_GRAIN, honours_offset=False
)


@dataclass(frozen=True)
class Resolution:
    """A concrete window plus the grain its readings are grouped by."""

    period: Optional[Period]
    window: TimeWindow
    grain: BucketGrain


class WindowResolver:
    """Resolves period requests into absolute windows in a fixed local timezone."""

    def __init__(self, zone: tzinfo) -> None:
        self.zone = zone

    @staticmethod
    def rule_for(period: Union[str, Period, None]) -> PeriodRule:
        parsed = Period.parse(period)
        if parsed is None:
            return DEFAULT_RULE
        return PERIOD_RULES[parsed]

    def resolve(
        self,
        period: Union[str, Period, None],
        reference: datetime,
        offset: int = 0,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Resolution:
        """Explicit mode when either date is supplied, offset mode otherwise."""
        if start_date is not None or end_date is not None:
            return self.resolve_range(period, start_date, end_date)
        return self.resolve_offset(period, offset, reference)

    def resolve_offset(
        self,
        period: Union[str, Period, None],
        offset: int,
        reference: datetime,
    ) -> Resolution:
        rule = self.rule_for(period)
        if reference.tzinfo is None:
            reference = reference.replace(tzinfo=timezone.utc)
        effective_offset = offset if rule.honours_offset else 0
        try:
            window = rule.window.window(reference, effective_offset, self.zone)
        except (OverflowError, ValueError) as exc:
            raise InvalidDateFormat(
                f"Offset {offset} for period {period!r} is outside the supported date range."
            ) from exc
        return Resolution(period=Period.parse(period), window=window, grain=rule.grain)

    def resolve_range(
        self,
        period: Union[str, Period, None],
        start_date: Optional[str],
        end_date: Optional[str],
    ) -> Resolution:
        start = self._parse_bound("start_date", start_date)
        end = self._parse_bound("end_date", end_date)
        if not start < end:
            raise InvalidDateFormat(
                f"start_date {start_date!r} must be earlier than end_date {end_date!r}."
            )
        rule = self.rule_for(period)
        return Resolution(
            period=Period.parse(period),
            window=TimeWindow(start=start, end=end),
            grain=rule.grain,
        )

    @staticmethod
    def _parse_bound(name: str, value: Optional[str]) -> datetime:
        if value is None:
            raise InvalidDateFormat(f"{name} is required when requesting an explicit range.")
        try:
            return parse_timestamp(value)
        except ValueError as exc:
            raise InvalidDateFormat(f"{name} {value!r} is not a valid ISO-8601 timestamp.") from exc
