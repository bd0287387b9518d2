"""Get-or-create access to per-owner Day buckets."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, timedelta

from dayplanner.domain.errors import BucketCreationRace
from dayplanner.domain.models import Day

logger = logging.getLogger(__name__)

DEFAULT_CREATE_RETRIES = 3


class DayBucketStore:
    """Idempotent bucket materialization on top of a store's day repository.

    At most one bucket exists per ``(date, owner_id)``: the store enforces a
    unique key and this class turns a lost insert race into a re-fetch of
    the row the other writer created. Every call runs inside
    ``store.transaction()``, joining the caller's transaction when one is open.
    """

    def __init__(self, store, retries: int = DEFAULT_CREATE_RETRIES) -> None:
        self.store = store
        self.retries = max(1, retries)

    def get(self, day_id: str) -> Day | None:
        with self.store.transaction():
            return self.store.days.get(day_id)

    def get_or_create(self, day_date: date, owner_id: str) -> Day:
        with self.store.transaction():
            return self._get_or_create(day_date, owner_id)

    def _get_or_create(self, day_date: date, owner_id: str) -> Day:
        attempts = 0
        while True:
            existing = self.store.days.find(day_date, owner_id)
            if existing is not None:
                return existing
            try:
                day = self.store.days.add(Day(date=day_date, owner_id=owner_id))
            except BucketCreationRace:
                attempts += 1
                if attempts >= self.retries:
                    raise
                logger.warning(
                    "Lost creation race for day %s / owner %s; re-fetching (attempt %d/%d)",
                    day_date,
                    owner_id,
                    attempts,
                    self.retries,
                )
                continue
            logger.debug("Created day bucket %s for %s / owner %s", day.id, day_date, owner_id)
            return day

    def get_or_create_dates(self, dates: Iterable[date], owner_id: str) -> list[Day]:
        """Fetch existing buckets in one query and create only the missing ones.

        Returns one bucket per distinct date, ordered by date.
        """
        wanted = sorted(set(dates))
        if not wanted:
            return []

        with self.store.transaction():
            return self._get_or_create_dates(wanted, owner_id)

    def _get_or_create_dates(self, wanted: list[date], owner_id: str) -> list[Day]:
        by_date = {day.date: day for day in self.store.days.find_many(wanted, owner_id)}
        missing = [Day(date=d, owner_id=owner_id) for d in wanted if d not in by_date]
        if missing:
            try:
                created = self.store.days.add_all(missing)
            except BucketCreationRace:
                logger.warning(
                    "Batch bucket insert raced for owner %s; retrying per date",
                    owner_id,
                )
                created = [self._get_or_create(day.date, owner_id) for day in missing]
            logger.debug(
                "Materialized %d new day bucket(s) for owner %s", len(created), owner_id
            )
            by_date.update((day.date, day) for day in created)

        return [by_date[d] for d in wanted]

    def get_or_create_range(self, start_date: date, end_date: date, owner_id: str) -> list[Day]:
        """Buckets for every date in ``[start_date, end_date]`` inclusive."""
        if end_date < start_date:
            raise ValueError(f"end_date {end_date} is before start_date {start_date}")
        span = (end_date - start_date).days
        return self.get_or_create_dates(
            (start_date + timedelta(days=offset) for offset in range(span + 1)), owner_id
        )

    def save_all(self, days: Iterable[Day]) -> list[Day]:
        with self.store.transaction():
            return self.store.days.save_all(days)
