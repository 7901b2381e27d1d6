"""Reconstruct the time window behind a rendered bucket label."""

from __future__ import annotations

from datetime import datetime, timedelta, tzinfo
from typing import Optional, Union

from models.errors import InvalidDrilldownRequest
from models.records import TimeWindow
from services.registry import DeviceLocationRegistry
from services.windows import HOUR_GRAIN, Period, PERIOD_RULES, localize

_HOUR_MARKER = ":00:00"
_DAY_CLOSE = timedelta(hours=23, minutes=59, seconds=59, milliseconds=999)


class RawDrilldownResolver:
    """Inverts the bucket labelling applied by the aggregation engine.

    Labels are parsed in the same local timezone they were rendered in. When
    the caller names the period that produced the label, the label must match
    that period's format and resolves to the exact bucket span. Without a
    period the granularity is guessed from the label itself: anything
    carrying ``:00:00`` is an hour bucket, everything else a calendar day
    closing at 23:59:59.999. Month labels from the ``year`` period are read
    as days on that path.
    """

    def __init__(self, registry: DeviceLocationRegistry, zone: tzinfo) -> None:
        self.registry = registry
        self.zone = zone

    def resolve(
        self,
        label: Optional[str],
        location: Optional[str],
        period: Union[str, Period, None] = None,
    ) -> TimeWindow:
        if not label or not label.strip() or not location:
            raise InvalidDrilldownRequest("Both a bucket timestamp and a location are required.")
        self.registry.require_location(location)
        label = label.strip()

        try:
            if period is not None:
                return self._resolve_for_period(label, period)
            if _HOUR_MARKER in label:
                return self._hour_bucket(label)
            return self._day_bucket(label)
        except OverflowError as exc:
            raise InvalidDrilldownRequest(
                f"Timestamp {label!r} is outside the supported date range."
            ) from exc

    def _resolve_for_period(self, label: str, period: Union[str, Period]) -> TimeWindow:
        parsed = Period.parse(period)
        if parsed is None:
            raise InvalidDrilldownRequest(f"Unknown period {period!r}.")
        grain = PERIOD_RULES[parsed].grain
        if grain.is_raw:
            raise InvalidDrilldownRequest(
                f"The {parsed.value} period returns raw readings and has no buckets to drill into."
            )
        try:
            return grain.span(label, self.zone)
        except ValueError as exc:
            raise InvalidDrilldownRequest(
                f"Timestamp {label!r} is not a {parsed.value} bucket label "
                f"(expected {grain.label_format})."
            ) from exc

    def _hour_bucket(self, label: str) -> TimeWindow:
        try:
            return HOUR_GRAIN.span(label, self.zone)
        except ValueError:
            # Full ISO timestamps also carry the marker; they open a one-hour window.
            start = self._parse_instant(label)
        return TimeWindow(start=start, end=start + timedelta(hours=1))

    def _day_bucket(self, label: str) -> TimeWindow:
        instant = self._parse_instant(label)
        local_day = instant.astimezone(self.zone).replace(tzinfo=None)
        midnight = datetime(local_day.year, local_day.month, local_day.day)
        return TimeWindow(
            start=localize(midnight, self.zone),
            end=localize(midnight + _DAY_CLOSE, self.zone),
        )

    def _parse_instant(self, label: str) -> datetime:
        """Parse a label as ISO-8601; offset-less labels are local wall-clock times."""
        candidate = label[:-1] + "+00:00" if label.endswith("Z") else label
        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError as exc:
            raise InvalidDrilldownRequest(f"Timestamp {label!r} is not a recognised bucket label.") from exc
        if parsed.tzinfo is None:
            return localize(parsed, self.zone)
        return parsed
