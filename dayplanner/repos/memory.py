"""In-memory repositories for events, day buckets and their links."""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import date, datetime

from dayplanner.domain.errors import BucketCreationRace
from dayplanner.domain.models import Day, Event, new_id


class EventDayRepository:
    """Set-backed join relation between events and day buckets."""

    def __init__(self) -> None:
        self._links: set[tuple[str, str]] = set()

    def link(self, event_id: str, day_id: str) -> None:
        self._links.add((event_id, day_id))

    def unlink(self, event_id: str, day_id: str) -> None:
        self._links.discard((event_id, day_id))

    def unlink_event(self, event_id: str) -> None:
        self._links = {link for link in self._links if link[0] != event_id}

    def day_ids_for_event(self, event_id: str) -> set[str]:
        return {day_id for eid, day_id in self._links if eid == event_id}

    def event_ids_for_day(self, day_id: str) -> set[str]:
        return {event_id for event_id, did in self._links if did == day_id}


class EventRepository:
    """Dict-backed store for Event instances, keyed by id.

    Stored instances are private copies; callers mutate what they get back
    and persist it explicitly with :meth:`save`.
    """

    def __init__(self, links: EventDayRepository) -> None:
        self._store: dict[str, Event] = {}
        self._links = links

    def get(self, event_id: str) -> Event | None:
        event = self._store.get(event_id)
        return event.model_copy() if event is not None else None

    def save(self, event: Event) -> Event:
        if event.id is None:
            event.id = new_id()
        self._store[event.id] = event.model_copy()
        return event

    def delete(self, event_id: str) -> None:
        self._store.pop(event_id, None)

    def list_for_owner(self, owner_id: str) -> list[Event]:
        return self._sorted(e for e in self._store.values() if e.owner_id == owner_id)

    def list_for_day(self, day_id: str) -> list[Event]:
        ids = self._links.event_ids_for_day(day_id)
        return self._sorted(self._store[eid] for eid in ids if eid in self._store)

    def list_overlapping(self, owner_id: str, start: datetime, end: datetime) -> list[Event]:
        return self._sorted(
            e
            for e in self._store.values()
            if e.owner_id == owner_id and e.start_time < end and e.end_time > start
        )

    @staticmethod
    def _sorted(events: Iterable[Event]) -> list[Event]:
        return [e.model_copy() for e in sorted(events, key=lambda e: (e.start_time, e.id))]


class DayRepository:
    """Dict-backed store for Day buckets with a unique index on (date, owner_id)."""

    def __init__(self, lock: threading.RLock | None = None) -> None:
        self._store: dict[str, Day] = {}
        self._index: dict[tuple[date, str], str] = {}
        # Shared with the owning MemoryStore so key checks and inserts are atomic.
        self._lock = lock or threading.RLock()

    def get(self, day_id: str) -> Day | None:
        day = self._store.get(day_id)
        return day.model_copy() if day is not None else None

    def find(self, day_date: date, owner_id: str) -> Day | None:
        day_id = self._index.get((day_date, owner_id))
        return self.get(day_id) if day_id is not None else None

    def find_many(self, dates: Iterable[date], owner_id: str) -> list[Day]:
        found = [self.find(d, owner_id) for d in sorted(set(dates))]
        return [day for day in found if day is not None]

    def add(self, day: Day) -> Day:
        return self.add_all([day])[0]

    def add_all(self, days: list[Day]) -> list[Day]:
        """Insert new buckets, all or nothing."""
        with self._lock:
            keys: set[tuple[date, str]] = set()
            for day in days:
                key = (day.date, day.owner_id)
                if key in self._index or key in keys:
                    raise BucketCreationRace(day.date, day.owner_id)
                keys.add(key)
            for day in days:
                self._put(day)
        return list(days)

    def save_all(self, days: Iterable[Day]) -> list[Day]:
        saved = []
        with self._lock:
            for day in days:
                owner_of_key = self._index.get((day.date, day.owner_id))
                if owner_of_key is not None and owner_of_key != day.id:
                    raise BucketCreationRace(day.date, day.owner_id)
                self._put(day)
                saved.append(day)
        return saved

    def _put(self, day: Day) -> None:
        previous = self._store.get(day.id)
        if previous is not None:
            self._index.pop((previous.date, previous.owner_id), None)
        self._store[day.id] = day.model_copy()
        self._index[(day.date, day.owner_id)] = day.id


class MemoryStore:
    """Bundles the repositories behind one transactional boundary.

    ``transaction()`` holds a store-wide lock for its whole span, so
    validation and persistence of concurrent calls are serialized. On error
    every repository is restored to its state at the start of the outermost
    transaction.
    """

    def __init__(self) -> None:
        self.links = EventDayRepository()
        self.events = EventRepository(self.links)
        self._lock = threading.RLock()
        self.days = DayRepository(self._lock)
        self._depth = 0

    @contextmanager
    def transaction(self) -> Iterator[MemoryStore]:
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            snapshot = self._snapshot()
            self._depth = 1
            try:
                yield self
            except BaseException:
                self._restore(snapshot)
                raise
            finally:
                self._depth = 0

    def _snapshot(self) -> tuple:
        return (
            dict(self.events._store),
            dict(self.days._store),
            dict(self.days._index),
            set(self.links._links),
        )

    def _restore(self, snapshot: tuple) -> None:
        events, days, index, links = snapshot
        self.events._store = events
        self.days._store = days
        self.days._index = index
        self.links._links = links
