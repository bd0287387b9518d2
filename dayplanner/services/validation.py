"""Interval validation plus bucket materialization and conflict checks."""

from __future__ import annotations

import logging
from datetime import datetime

from dayplanner.domain.errors import InvalidInterval
from dayplanner.domain.models import Day
from dayplanner.services.buckets import DayBucketStore
from dayplanner.services.conflicts import assert_no_conflict
from dayplanner.services.timestamps import dates_touched

logger = logging.getLogger(__name__)


def validate_and_bucket(
    owner_id: str,
    start_utc: datetime,
    end_utc: datetime,
    exclude_event_id: str | None = None,
    *,
    buckets: DayBucketStore,
    store,
) -> list[Day]:
    """Return the owner's buckets for ``[start_utc, end_utc)`` after checking them.

    Raises ``InvalidInterval`` unless start < end, and ``SchedulingConflict``
    on the first bucket holding an overlapping event. Events and links are
    never modified here; linking is the caller's job.
    """
    if not start_utc < end_utc:
        raise InvalidInterval(start_utc, end_utc)

    dates = dates_touched(start_utc, end_utc)
    days = buckets.get_or_create_dates(dates, owner_id)
    logger.debug(
        "Validating %s - %s for owner %s against %d bucket(s)",
        start_utc.isoformat(),
        end_utc.isoformat(),
        owner_id,
        len(days),
    )

    for day in days:
        assert_no_conflict(
            start_utc, end_utc, exclude_event_id, day, store.events.list_for_day(day.id)
        )
    return days
