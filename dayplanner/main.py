"""Composition root: builds a ready-to-use EventScheduler."""

from __future__ import annotations

import logging

from dayplanner.config import PlannerSettings, get_settings
from dayplanner.repos.memory import MemoryStore
from dayplanner.repos.sql import create_sql_store
from dayplanner.services.buckets import DayBucketStore
from dayplanner.services.scheduler import EventScheduler

logger = logging.getLogger(__name__)


def configure_logging(settings: PlannerSettings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_store(settings: PlannerSettings):
    """Return the store selected by ``settings.backend``."""
    if settings.backend == "sql":
        return create_sql_store(settings)
    return MemoryStore()


def create_scheduler(settings: PlannerSettings | None = None, store=None) -> EventScheduler:
    """Wire store, bucket store and scheduler from *settings* (defaults to env)."""
    settings = settings or get_settings()
    store = store if store is not None else create_store(settings)
    buckets = DayBucketStore(store, retries=settings.bucket_create_retries)
    logger.debug("Scheduler wired with %s backend", type(store).__name__)
    return EventScheduler(store, buckets=buckets)
