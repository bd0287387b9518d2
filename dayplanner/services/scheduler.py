"""Create/update orchestration for events and their day buckets."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date
from typing import Any

from dayplanner.domain.errors import EventNotFound
from dayplanner.domain.models import Day, Event, EventPatch, EventView
from dayplanner.services.buckets import DayBucketStore
from dayplanner.services.patching import apply_patch
from dayplanner.services.timestamps import Timestamp, day_window, normalize, to_zone, zone_label
from dayplanner.services.validation import validate_and_bucket

logger = logging.getLogger(__name__)


def _require_id(value: str | None, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} must be a non-empty string")
    return value


class EventScheduler:
    """Drives the event lifecycle against a store.

    Every public call runs inside ``store.transaction()``: bucket creation,
    conflict validation, event persistence and linking commit together or
    not at all. Event/day membership is only ever changed through
    :meth:`_sync_links`.
    """

    def __init__(self, store, buckets: DayBucketStore | None = None) -> None:
        self.store = store
        self.buckets = buckets or DayBucketStore(store)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(
        self,
        owner_id: str,
        name: str,
        start_time: Timestamp,
        end_time: Timestamp,
        description: str | None = None,
    ) -> Event:
        _require_id(owner_id, "Owner ID")
        start_utc = normalize(start_time)
        end_utc = normalize(end_time)
        display_zone = zone_label(start_time)

        logger.info(
            "Creating event %r for owner %s from %s to %s (UTC %s to %s)",
            name,
            owner_id,
            start_time,
            end_time,
            start_utc.isoformat(),
            end_utc.isoformat(),
        )

        with self.store.transaction():
            days = validate_and_bucket(
                owner_id, start_utc, end_utc, None, buckets=self.buckets, store=self.store
            )
            event = Event(
                name=name,
                start_time=start_utc,
                end_time=end_utc,
                display_zone=display_zone,
                owner_id=owner_id,
                description=description,
            )
            saved = self.store.events.save(event)
            self._sync_links(saved, days)
            self.buckets.save_all(days)

        logger.info("Event %r created with ID %s on %d day(s)", name, saved.id, len(days))
        return saved

    def update(self, event_id: str, patch: EventPatch | Mapping[str, Any]) -> Event:
        _require_id(event_id, "Event ID")
        if not isinstance(patch, EventPatch):
            patch = EventPatch.model_validate(patch)

        with self.store.transaction():
            event = self._load(event_id, "update")
            result = apply_patch(event, patch, buckets=self.buckets, store=self.store)

            if not result.updated:
                logger.info("No changes detected for event ID %s; skipping update", event_id)
                return event

            if result.new_days is not None:
                self._sync_links(event, result.new_days)
                self.buckets.save_all(result.new_days)

            saved = self.store.events.save(event)

        logger.info("Event with ID %s saved after update", event_id)
        return saved

    def delete(self, event_id: str) -> None:
        """Remove an event and detach it from every bucket. Buckets are kept."""
        _require_id(event_id, "Event ID")
        with self.store.transaction():
            self._load(event_id, "delete")
            self.store.links.unlink_event(event_id)
            self.store.events.delete(event_id)
        logger.info("Deleted event with ID %s", event_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, event_id: str) -> Event:
        _require_id(event_id, "Event ID")
        with self.store.transaction():
            return self._load(event_id, "fetch")

    def list_for_owner(self, owner_id: str) -> list[Event]:
        _require_id(owner_id, "Owner ID")
        with self.store.transaction():
            return self.store.events.list_for_owner(owner_id)

    def list_for_day(self, day_id: str) -> list[Event]:
        _require_id(day_id, "Day ID")
        with self.store.transaction():
            return self.store.events.list_for_day(day_id)

    def list_on_date(self, owner_id: str, local_date: date, zone: str = "UTC") -> list[Event]:
        """Events of *owner_id* overlapping the calendar day *local_date* in *zone*."""
        _require_id(owner_id, "Owner ID")
        start_utc, end_utc = day_window(local_date, zone)
        logger.debug(
            "Fetching events for %s in zone %s, UTC range %s to %s",
            local_date,
            zone,
            start_utc.isoformat(),
            end_utc.isoformat(),
        )
        with self.store.transaction():
            return self.store.events.list_overlapping(owner_id, start_utc, end_utc)

    def days_for(self, event_id: str) -> list[Day]:
        """Buckets *event_id* is linked to, ordered by date."""
        _require_id(event_id, "Event ID")
        with self.store.transaction():
            day_ids = self.store.links.day_ids_for_event(event_id)
            days = [self.store.days.get(day_id) for day_id in day_ids]
        return sorted((day for day in days if day is not None), key=lambda day: day.date)

    def day_ids_for(self, event_id: str) -> list[str]:
        return [day.id for day in self.days_for(event_id)]

    def view(self, event: Event, zone: str | None = None) -> EventView:
        """Render *event* in *zone*, defaulting to the zone it was authored in."""
        target = zone or event.display_zone
        return EventView(
            id=event.id,
            name=event.name,
            description=event.description,
            owner_id=event.owner_id,
            start_time=to_zone(event.start_time, target),
            end_time=to_zone(event.end_time, target),
            display_zone=event.display_zone,
            day_ids=self.day_ids_for(event.id),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load(self, event_id: str, action: str) -> Event:
        event = self.store.events.get(event_id)
        if event is None:
            logger.warning("Attempted to %s non-existent event with ID %s", action, event_id)
            raise EventNotFound(event_id)
        return event

    def _sync_links(self, event: Event, days: list[Day]) -> None:
        current = self.store.links.day_ids_for_event(event.id)
        wanted = {day.id for day in days}
        for day_id in current - wanted:
            self.store.links.unlink(event.id, day_id)
        for day_id in wanted - current:
            self.store.links.link(event.id, day_id)
        logger.debug(
            "Event %s linked to %d day(s): +%d -%d",
            event.id,
            len(wanted),
            len(wanted - current),
            len(current - wanted),
        )
