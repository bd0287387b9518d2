"""Typed failures raised by the scheduling engine."""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dayplanner.domain.models import Day, Event

_FORMAT = "%Y-%m-%d %H:%M:%S %Z"


def _fmt(value: datetime) -> str:
    return value.strftime(_FORMAT).strip()


class SchedulingError(Exception):
    """Base class for every error the engine raises on purpose.

    ``client_error`` tells a transport layer whether the caller can fix the
    request (4xx) or whether it is a server-side condition.
    """

    client_error: bool = True


class InvalidInterval(SchedulingError, ValueError):
    """Start time is not strictly before end time."""

    def __init__(self, start: datetime, end: datetime) -> None:
        self.start = start
        self.end = end
        super().__init__(
            f"Invalid event time: start time {_fmt(start)} "
            f"must be before end time {_fmt(end)}."
        )


class InvalidTimestamp(SchedulingError, ValueError):
    """A timestamp could not be parsed or carries no zone information."""


class InvalidTimezone(SchedulingError, ValueError):
    """A zone id could not be resolved."""

    def __init__(self, zone: str) -> None:
        self.zone = zone
        super().__init__(f"Invalid timezone: {zone!r}")


class SchedulingConflict(SchedulingError):
    """The proposed interval overlaps an existing event in a shared day bucket."""

    def __init__(
        self,
        conflicting_event: Event,
        day: Day | None = None,
        conflicts: list[Event] | None = None,
    ) -> None:
        self.conflicting_event = conflicting_event
        self.day = day
        self.conflicts = conflicts or [conflicting_event]
        super().__init__(
            f"Event conflicts with existing event (ID: {conflicting_event.id}): "
            f"{conflicting_event.name} ({_fmt(conflicting_event.start_time)} - "
            f"{_fmt(conflicting_event.end_time)})"
        )


class EventNotFound(SchedulingError, LookupError):
    def __init__(self, event_id: str) -> None:
        self.event_id = event_id
        super().__init__(f"Event not found with ID: {event_id}")


class BucketCreationRace(SchedulingError):
    """Unique-key violation while inserting a Day bucket.

    Raised by stores when another writer created the same ``(date, owner_id)``
    bucket first. DayBucketStore catches it and re-fetches the winner's row.
    """

    client_error = False

    def __init__(self, day_date: date, owner_id: str) -> None:
        self.date = day_date
        self.owner_id = owner_id
        super().__init__(f"Day bucket for {day_date.isoformat()} / {owner_id} already exists")
