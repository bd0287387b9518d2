"""Domain models for the event/day scheduling engine."""

from __future__ import annotations

import datetime as dt
import uuid
from datetime import datetime
from typing import Any

from dateutil import tz
from pydantic import BaseModel, Field, field_validator, model_validator

from dayplanner.domain.errors import InvalidInterval

NAME_MAX_LENGTH = 50
DESCRIPTION_MAX_LENGTH = 255


def new_id() -> str:
    return uuid.uuid4().hex


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError("datetime must be timezone-aware")
    return value.astimezone(tz.UTC)


# ---------------------------------------------------------------------------
# Core domain models
# ---------------------------------------------------------------------------


class Event(BaseModel):
    """A scheduled event. Times are always held in UTC.

    Day membership is not stored here; it lives in the store's event/day
    link relation and is read through ``store.links``.
    """

    id: str | None = None
    name: str = Field(min_length=1, max_length=NAME_MAX_LENGTH)
    start_time: datetime
    end_time: datetime
    display_zone: str = "UTC"
    owner_id: str
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)

    @field_validator("start_time", "end_time")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @model_validator(mode="after")
    def _end_after_start(self) -> Event:
        if self.end_time <= self.start_time:
            raise InvalidInterval(self.start_time, self.end_time)
        return self


class Day(BaseModel):
    """Per-owner bucket for one UTC calendar date."""

    id: str = Field(default_factory=new_id)
    date: dt.date
    owner_id: str
    archived: bool = False


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class EventPatch(BaseModel):
    """Sparse update for an Event.

    A field is *provided* when the caller set it and it is not ``None``;
    everything else leaves the event untouched. Times may be aware datetimes
    or ISO-8601 strings (optionally suffixed with a ``[Zone/Id]``).
    """

    name: str | None = Field(default=None, min_length=1, max_length=NAME_MAX_LENGTH)
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    start_time: datetime | str | None = None
    end_time: datetime | str | None = None

    def provided(self) -> dict[str, Any]:
        return {
            field: getattr(self, field)
            for field in self.model_fields_set
            if getattr(self, field) is not None
        }

    def has_time_change(self) -> bool:
        provided = self.provided()
        return "start_time" in provided or "end_time" in provided


class EventView(BaseModel):
    """Event rendered for a caller in a given zone."""

    id: str
    name: str
    description: str | None = None
    owner_id: str
    start_time: datetime
    end_time: datetime
    display_zone: str
    day_ids: list[str] = Field(default_factory=list)
