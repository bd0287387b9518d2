"""Applies sparse patches to events.

Only the in-memory Event is modified here. Linking buckets and persisting
the event are left to the caller, which receives the new bucket set in the
returned :class:`PatchResult`.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

from dayplanner.domain.errors import InvalidInterval
from dayplanner.domain.models import Day, Event, EventPatch
from dayplanner.services.buckets import DayBucketStore
from dayplanner.services.timestamps import normalize, zone_label
from dayplanner.services.validation import validate_and_bucket

logger = logging.getLogger(__name__)

_PLAIN_FIELDS = ("name", "description")


class PatchResult(BaseModel):
    changed_fields: list[str] = Field(default_factory=list)
    # None when the time range did not move and bucket membership stays as is.
    new_days: list[Day] | None = None

    @property
    def updated(self) -> bool:
        return bool(self.changed_fields)


def apply_patch(
    event: Event,
    patch: EventPatch,
    *,
    buckets: DayBucketStore,
    store,
) -> PatchResult:
    """Diff *patch* against *event*, validate, then assign every change at once.

    Raises ``InvalidInterval`` or ``SchedulingConflict`` before touching the
    event, so a failed patch leaves it exactly as it was.
    """
    provided = patch.provided()
    changes: dict[str, Any] = {
        field: provided[field]
        for field in _PLAIN_FIELDS
        if field in provided and provided[field] != getattr(event, field)
    }
    new_days = None

    if patch.has_time_change():
        raw_start = provided.get("start_time")
        raw_end = provided.get("end_time")
        new_start = normalize(raw_start) if raw_start is not None else event.start_time
        new_end = normalize(raw_end) if raw_end is not None else event.end_time

        if not new_start < new_end:
            raise InvalidInterval(new_start, new_end)

        if new_start != event.start_time or new_end != event.end_time:
            new_days = validate_and_bucket(
                event.owner_id,
                new_start,
                new_end,
                event.id,
                buckets=buckets,
                store=store,
            )
            if new_start != event.start_time:
                changes["start_time"] = new_start
            if new_end != event.end_time:
                changes["end_time"] = new_end

        # The display zone follows the authored start time only.
        if raw_start is not None:
            zone = zone_label(raw_start)
            if zone != event.display_zone:
                changes["display_zone"] = zone

    for field, value in changes.items():
        setattr(event, field, value)
    if changes:
        logger.info("Event %s patched: %s", event.id, ", ".join(sorted(changes)))

    return PatchResult(changed_fields=sorted(changes), new_days=new_days)
