"""Service for detecting scheduling conflicts between events."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from dayplanner.domain.errors import SchedulingConflict
from dayplanner.domain.models import Day, Event


def find_conflicts(
    new_start: datetime,
    new_end: datetime,
    existing_events: Iterable[Event],
    exclude_event_id: str | None = None,
) -> list[Event]:
    """Return existing events that overlap with the given time range.

    Overlap rule: conflict if new_start < existing.end_time AND existing.start_time < new_end.
    Exact boundary touches (end == start) are NOT considered conflicts. The
    event with id ``exclude_event_id`` (the one being updated) is skipped.
    """
    return [
        event
        for event in existing_events
        if (exclude_event_id is None or event.id != exclude_event_id)
        and new_start < event.end_time
        and event.start_time < new_end
    ]


def first_conflict(
    new_start: datetime,
    new_end: datetime,
    exclude_event_id: str | None,
    day_events: Iterable[Event],
) -> Event | None:
    conflicts = find_conflicts(new_start, new_end, day_events, exclude_event_id)
    return conflicts[0] if conflicts else None


def has_conflict(
    new_start: datetime,
    new_end: datetime,
    exclude_event_id: str | None,
    day_events: Iterable[Event],
) -> bool:
    return first_conflict(new_start, new_end, exclude_event_id, day_events) is not None


def assert_no_conflict(
    new_start: datetime,
    new_end: datetime,
    exclude_event_id: str | None,
    day: Day,
    day_events: Iterable[Event],
) -> None:
    """Raise :class:`SchedulingConflict` naming the first overlapping event in *day*."""
    conflicts = find_conflicts(new_start, new_end, day_events, exclude_event_id)
    if conflicts:
        raise SchedulingConflict(conflicts[0], day=day, conflicts=conflicts)
