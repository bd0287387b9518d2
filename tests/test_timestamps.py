"""Tests for timestamp normalization and day bucketing."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from dateutil import tz

from dayplanner.domain.errors import InvalidInterval, InvalidTimestamp, InvalidTimezone
from dayplanner.services.timestamps import (
    dates_touched,
    day_window,
    normalize,
    parse_timestamp,
    resolve_zone,
    to_zone,
    zone_label,
)

_UTC = timezone.utc


# ---------------------------------------------------------------------------
# normalize / parse
# ---------------------------------------------------------------------------


def test_normalize_preserves_instant():
    paris = datetime(2025, 5, 20, 11, 0, tzinfo=timezone(timedelta(hours=2)))
    result = normalize(paris)
    assert result == datetime(2025, 5, 20, 9, 0, tzinfo=_UTC)
    assert result.utcoffset() == timedelta(0)


def test_normalize_iso_string_with_offset():
    assert normalize("2025-05-20T23:30:00-05:00") == datetime(2025, 5, 21, 4, 30, tzinfo=_UTC)


def test_normalize_iso_string_with_z_suffix():
    assert normalize("2025-05-20T09:00:00Z") == datetime(2025, 5, 20, 9, 0, tzinfo=_UTC)


def test_bracketed_zone_id_keeps_offset_instant():
    parsed = parse_timestamp("2025-05-20T09:00+02:00[Europe/Paris]")
    assert parsed.astimezone(_UTC) == datetime(2025, 5, 20, 7, 0, tzinfo=_UTC)


def test_bracketed_zone_id_without_offset_is_wall_clock():
    parsed = parse_timestamp("2025-01-15T09:00[America/New_York]")
    assert parsed.astimezone(_UTC) == datetime(2025, 1, 15, 14, 0, tzinfo=_UTC)


def test_naive_timestamp_is_rejected():
    with pytest.raises(InvalidTimestamp):
        normalize(datetime(2025, 5, 20, 9, 0))
    with pytest.raises(InvalidTimestamp):
        normalize("2025-05-20T09:00:00")


def test_garbage_timestamp_is_rejected():
    with pytest.raises(InvalidTimestamp):
        normalize("next tuesday-ish")


def test_unknown_zone_is_rejected():
    with pytest.raises(InvalidTimezone):
        normalize("2025-05-20T09:00+02:00[Mars/Olympus_Mons]")


# ---------------------------------------------------------------------------
# zone labels
# ---------------------------------------------------------------------------


def test_zone_label_for_offsets():
    assert zone_label("2025-05-20T09:00:00Z") == "UTC"
    assert zone_label("2025-05-20T09:00:00+05:30") == "+05:30"
    assert zone_label(datetime(2025, 5, 20, 9, tzinfo=timezone(-timedelta(hours=4)))) == "-04:00"


def test_zone_label_prefers_zone_id():
    assert zone_label("2025-05-20T09:00+02:00[Europe/Paris]") == "Europe/Paris"


def test_resolve_zone_round_trips_labels():
    instant = datetime(2025, 5, 20, 9, 0, tzinfo=_UTC)
    assert to_zone(instant, "+05:30").hour == 14
    assert to_zone(instant, "-04:00").hour == 5
    assert to_zone(instant, "UTC") == instant
    assert to_zone(instant, "Europe/Paris").hour == 11


def test_resolve_zone_rejects_blank():
    with pytest.raises(InvalidTimezone):
        resolve_zone("")


# ---------------------------------------------------------------------------
# dates_touched
# ---------------------------------------------------------------------------


def test_same_day_yields_one_date():
    start = datetime(2025, 5, 20, 9, tzinfo=_UTC)
    assert dates_touched(start, start + timedelta(hours=2)) == [date(2025, 5, 20)]


def test_authored_zone_does_not_split_a_utc_day():
    """23:00-01:00 in +02:00 is 21:00-23:00 UTC: a single UTC date."""
    start = datetime(2025, 5, 20, 23, tzinfo=tz.tzoffset(None, 7200))
    end = datetime(2025, 5, 21, 1, tzinfo=tz.tzoffset(None, 7200))
    assert dates_touched(start, end) == [date(2025, 5, 20)]


def test_overnight_event_touches_both_dates():
    start = datetime(2025, 5, 20, 23, tzinfo=_UTC)
    assert dates_touched(start, start + timedelta(hours=2)) == [
        date(2025, 5, 20),
        date(2025, 5, 21),
    ]


def test_end_at_midnight_does_not_touch_next_date():
    start = datetime(2025, 5, 20, 22, tzinfo=_UTC)
    end = datetime(2025, 5, 21, 0, tzinfo=_UTC)
    assert dates_touched(start, end) == [date(2025, 5, 20)]


def test_start_at_midnight_touches_that_date():
    start = datetime(2025, 5, 21, 0, tzinfo=_UTC)
    assert dates_touched(start, start + timedelta(hours=1)) == [date(2025, 5, 21)]


def test_multi_day_span_is_ascending_and_complete():
    start = datetime(2025, 2, 27, 12, tzinfo=_UTC)
    end = datetime(2025, 3, 2, 12, tzinfo=_UTC)
    assert dates_touched(start, end) == [
        date(2025, 2, 27),
        date(2025, 2, 28),
        date(2025, 3, 1),
        date(2025, 3, 2),
    ]


def test_dates_touched_rejects_empty_interval():
    start = datetime(2025, 5, 20, 9, tzinfo=_UTC)
    with pytest.raises(InvalidInterval):
        dates_touched(start, start)


# ---------------------------------------------------------------------------
# day_window
# ---------------------------------------------------------------------------


def test_day_window_in_utc():
    start, end = day_window(date(2025, 5, 20))
    assert start == datetime(2025, 5, 20, tzinfo=_UTC)
    assert end == datetime(2025, 5, 21, tzinfo=_UTC)


def test_day_window_in_offset_zone():
    start, end = day_window(date(2025, 5, 20), "+02:00")
    assert start == datetime(2025, 5, 19, 22, tzinfo=_UTC)
    assert end == datetime(2025, 5, 20, 22, tzinfo=_UTC)
