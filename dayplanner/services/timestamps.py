"""Normalization of zoned timestamps onto the UTC timeline, and day bucketing.

Callers hand in aware ``datetime`` objects or ISO-8601 strings. Strings may
carry a trailing IANA zone id in brackets, e.g.
``2025-05-20T09:00+02:00[Europe/Paris]``; the offset fixes the instant and the
zone id becomes the event's display zone.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, tzinfo

from dateutil import tz
from dateutil.parser import isoparse

from dayplanner.domain.errors import InvalidInterval, InvalidTimestamp, InvalidTimezone

Timestamp = datetime | str

_ZONE_SUFFIX = re.compile(r"^(?P<stamp>[^\[\]]+)\[(?P<zone>[^\[\]]+)\]$")
_OFFSET_LABEL = re.compile(r"^(?P<sign>[+-])(?P<hours>\d{2}):(?P<minutes>\d{2})$")
_RESOLUTION = timedelta(microseconds=1)


def _split_zone(value: str) -> tuple[str, str | None]:
    value = value.strip()
    match = _ZONE_SUFFIX.match(value)
    if match is None:
        return value, None
    return match["stamp"], match["zone"]


def _offset_label(offset: timedelta) -> str:
    if offset == timedelta(0):
        return "UTC"
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def resolve_zone(label: str) -> tzinfo:
    """Return the tzinfo for a display-zone label (``UTC``, ``+05:30``, IANA id)."""
    if not label or not label.strip():
        raise InvalidTimezone(label)
    if label in ("UTC", "Z"):
        return tz.UTC

    match = _OFFSET_LABEL.match(label)
    if match:
        seconds = int(match["hours"]) * 3600 + int(match["minutes"]) * 60
        return tz.tzoffset(None, -seconds if match["sign"] == "-" else seconds)

    zone = tz.gettz(label)
    if zone is None:
        raise InvalidTimezone(label)
    return zone


def parse_timestamp(value: Timestamp) -> datetime:
    """Parse *value* into an aware datetime without changing its instant."""
    zone_id = None
    if isinstance(value, str):
        stamp, zone_id = _split_zone(value)
        try:
            parsed = isoparse(stamp)
        except (ValueError, OverflowError) as exc:
            raise InvalidTimestamp(f"Unparseable timestamp: {value!r}") from exc
    else:
        parsed = value

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        if zone_id is None:
            raise InvalidTimestamp(
                f"Timestamp must include timezone info (e.g. 2025-05-20T09:00:00Z): {value!r}"
            )
        # Wall-clock time in the named zone.
        return tz.resolve_imaginary(parsed.replace(tzinfo=resolve_zone(zone_id)))

    if zone_id is not None:
        return parsed.astimezone(resolve_zone(zone_id))
    return parsed


def normalize(value: Timestamp) -> datetime:
    """Convert a zoned timestamp to UTC, preserving the exact instant."""
    return parse_timestamp(value).astimezone(tz.UTC)


def zone_label(value: Timestamp) -> str:
    """Return the display-zone label a timestamp was authored in."""
    if isinstance(value, str):
        _, zone_id = _split_zone(value)
        if zone_id is not None:
            resolve_zone(zone_id)
            return zone_id

    parsed = parse_timestamp(value)
    key = getattr(parsed.tzinfo, "key", None)  # zoneinfo.ZoneInfo
    if key:
        return key
    return _offset_label(parsed.utcoffset())


def to_zone(instant: datetime, label: str) -> datetime:
    return instant.astimezone(resolve_zone(label))


def dates_touched(start_utc: datetime, end_utc: datetime) -> list[date]:
    """Return every UTC date the half-open interval ``[start, end)`` intersects.

    A date counts only when the overlap has non-zero length, so an event
    ending exactly at 00:00 UTC does not touch that date. Dates are ascending.
    """
    start_utc = normalize(start_utc)
    end_utc = normalize(end_utc)
    if not start_utc < end_utc:
        raise InvalidInterval(start_utc, end_utc)

    first = start_utc.date()
    last = (end_utc - _RESOLUTION).date()
    return [first + timedelta(days=offset) for offset in range((last - first).days + 1)]


def day_window(day: date, zone: str = "UTC") -> tuple[datetime, datetime]:
    """UTC bounds ``[start, end)`` of the local calendar *day* in *zone*."""
    tzone = resolve_zone(zone)
    local_start = tz.resolve_imaginary(datetime.combine(day, time.min).replace(tzinfo=tzone))
    local_end = tz.resolve_imaginary(
        datetime.combine(day + timedelta(days=1), time.min).replace(tzinfo=tzone)
    )
    return local_start.astimezone(tz.UTC), local_end.astimezone(tz.UTC)
