"""SQLAlchemy-backed repositories for events, day buckets and their links.

Repositories never open sessions themselves; they work inside the session of
the current ``SqlStore.transaction()``. Day rows touched during validation
are read ``FOR UPDATE`` so concurrent writers for the same owner/date
serialize on them, and the ``uq_days_date_owner`` constraint backs the
create-then-retry discipline of ``DayBucketStore``.
"""

from __future__ import annotations

import datetime as dt
import logging
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager, nullcontext

from dateutil import tz
from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Engine,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    create_engine,
    delete,
    event,
    select,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from dayplanner.config import PlannerSettings
from dayplanner.domain.errors import BucketCreationRace
from dayplanner.domain.models import (
    DESCRIPTION_MAX_LENGTH,
    NAME_MAX_LENGTH,
    Day,
    Event,
    new_id,
)

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class EventRow(Base):
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(String(NAME_MAX_LENGTH), nullable=False)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    start_time: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    display_zone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    description: Mapped[str | None] = mapped_column(
        String(DESCRIPTION_MAX_LENGTH), nullable=True
    )

    __table_args__ = (Index("idx_events_owner_start", "owner_id", "start_time"),)

    def __repr__(self) -> str:
        return f"<EventRow(id={self.id}, name='{self.name}')>"


class DayRow(Base):
    __tablename__ = "days"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (UniqueConstraint("date", "owner_id", name="uq_days_date_owner"),)

    def __repr__(self) -> str:
        return f"<DayRow(id={self.id}, date={self.date}, owner_id='{self.owner_id}')>"


class EventDayRow(Base):
    __tablename__ = "event_day"

    event_id: Mapped[str] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), primary_key=True
    )
    day_id: Mapped[str] = mapped_column(ForeignKey("days.id"), primary_key=True)

    __table_args__ = (Index("idx_event_day_day", "day_id"),)


# ---------------------------------------------------------------------------
# Row <-> model mapping
# ---------------------------------------------------------------------------


def _utc(value: dt.datetime) -> dt.datetime:
    # SQLite hands back naive values; everything is written in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=tz.UTC)
    return value.astimezone(tz.UTC)


def _event_from_row(row: EventRow) -> Event:
    return Event(
        id=row.id,
        name=row.name,
        owner_id=row.owner_id,
        start_time=_utc(row.start_time),
        end_time=_utc(row.end_time),
        display_zone=row.display_zone,
        description=row.description,
    )


def _day_from_row(row: DayRow) -> Day:
    return Day(id=row.id, date=row.date, owner_id=row.owner_id, archived=row.archived)


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class SqlEventDayRepository:
    def __init__(self, store: SqlStore) -> None:
        self._store = store

    def link(self, event_id: str, day_id: str) -> None:
        session = self._store.session
        if session.get(EventDayRow, (event_id, day_id)) is None:
            session.add(EventDayRow(event_id=event_id, day_id=day_id))
            session.flush()

    def unlink(self, event_id: str, day_id: str) -> None:
        self._store.session.execute(
            delete(EventDayRow).where(
                EventDayRow.event_id == event_id, EventDayRow.day_id == day_id
            )
        )

    def unlink_event(self, event_id: str) -> None:
        self._store.session.execute(delete(EventDayRow).where(EventDayRow.event_id == event_id))

    def day_ids_for_event(self, event_id: str) -> set[str]:
        stmt = select(EventDayRow.day_id).where(EventDayRow.event_id == event_id)
        return set(self._store.session.scalars(stmt))

    def event_ids_for_day(self, day_id: str) -> set[str]:
        stmt = select(EventDayRow.event_id).where(EventDayRow.day_id == day_id)
        return set(self._store.session.scalars(stmt))


class SqlEventRepository:
    def __init__(self, store: SqlStore) -> None:
        self._store = store

    def get(self, event_id: str) -> Event | None:
        row = self._store.session.get(EventRow, event_id)
        return _event_from_row(row) if row is not None else None

    def save(self, event: Event) -> Event:
        session = self._store.session
        row = session.get(EventRow, event.id) if event.id is not None else None
        if row is None:
            if event.id is None:
                event.id = new_id()
            row = EventRow(id=event.id)
            session.add(row)
        row.name = event.name
        row.owner_id = event.owner_id
        row.start_time = event.start_time
        row.end_time = event.end_time
        row.display_zone = event.display_zone
        row.description = event.description
        session.flush()
        return event

    def delete(self, event_id: str) -> None:
        session = self._store.session
        row = session.get(EventRow, event_id)
        if row is not None:
            session.delete(row)
            session.flush()

    def list_for_owner(self, owner_id: str) -> list[Event]:
        stmt = (
            select(EventRow)
            .where(EventRow.owner_id == owner_id)
            .order_by(EventRow.start_time, EventRow.id)
        )
        return [_event_from_row(row) for row in self._store.session.scalars(stmt)]

    def list_for_day(self, day_id: str) -> list[Event]:
        stmt = (
            select(EventRow)
            .join(EventDayRow, EventDayRow.event_id == EventRow.id)
            .where(EventDayRow.day_id == day_id)
            .order_by(EventRow.start_time, EventRow.id)
        )
        return [_event_from_row(row) for row in self._store.session.scalars(stmt)]

    def list_overlapping(
        self, owner_id: str, start: dt.datetime, end: dt.datetime
    ) -> list[Event]:
        stmt = (
            select(EventRow)
            .where(
                EventRow.owner_id == owner_id,
                EventRow.start_time < end,
                EventRow.end_time > start,
            )
            .order_by(EventRow.start_time, EventRow.id)
        )
        return [_event_from_row(row) for row in self._store.session.scalars(stmt)]


class SqlDayRepository:
    def __init__(self, store: SqlStore) -> None:
        self._store = store

    def get(self, day_id: str) -> Day | None:
        row = self._store.session.get(DayRow, day_id)
        return _day_from_row(row) if row is not None else None

    def find(self, day_date: dt.date, owner_id: str) -> Day | None:
        stmt = (
            select(DayRow)
            .where(DayRow.date == day_date, DayRow.owner_id == owner_id)
            .with_for_update()
        )
        row = self._store.session.scalars(stmt).first()
        return _day_from_row(row) if row is not None else None

    def find_many(self, dates: Iterable[dt.date], owner_id: str) -> list[Day]:
        wanted = sorted(set(dates))
        if not wanted:
            return []
        stmt = (
            select(DayRow)
            .where(DayRow.owner_id == owner_id, DayRow.date.in_(wanted))
            .order_by(DayRow.date)
            .with_for_update()
        )
        return [_day_from_row(row) for row in self._store.session.scalars(stmt)]

    def add(self, day: Day) -> Day:
        return self.add_all([day])[0]

    def add_all(self, days: list[Day]) -> list[Day]:
        """Insert new buckets in one savepoint, all or nothing."""
        session = self._store.session
        try:
            with session.begin_nested():
                session.add_all(
                    DayRow(id=day.id, date=day.date, owner_id=day.owner_id, archived=day.archived)
                    for day in days
                )
        except IntegrityError as exc:
            first = days[0]
            raise BucketCreationRace(first.date, first.owner_id) from exc
        return list(days)

    def save_all(self, days: Iterable[Day]) -> list[Day]:
        session = self._store.session
        saved = []
        for day in days:
            row = session.get(DayRow, day.id)
            if row is None:
                self.add(day)
            else:
                row.archived = day.archived
            saved.append(day)
        session.flush()
        return saved


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class SqlStore:
    """Unit of work over an engine; one session per thread per transaction.

    SQLite gives no isolation between threads sharing its connection, so on
    that dialect whole transactions are serialized behind ``_write_lock``.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._write_lock = threading.Lock() if engine.dialect.name == "sqlite" else None
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        self._local = threading.local()
        self.events = SqlEventRepository(self)
        self.days = SqlDayRepository(self)
        self.links = SqlEventDayRepository(self)

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)

    @property
    def session(self) -> Session:
        session = getattr(self._local, "session", None)
        if session is None:
            raise RuntimeError("No active transaction; wrap the call in store.transaction()")
        return session

    @contextmanager
    def transaction(self) -> Iterator[SqlStore]:
        if getattr(self._local, "session", None) is not None:
            yield self
            return

        lock = self._write_lock if self._write_lock is not None else nullcontext()
        with lock, self._session_factory() as session, session.begin():
            self._local.session = session
            try:
                yield self
            finally:
                self._local.session = None


def _enable_sqlite_savepoints(engine: Engine) -> None:
    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(settings: PlannerSettings) -> Engine:
    """Create the engine for ``settings.database_url``."""
    if not settings.is_sqlite:
        return create_engine(settings.database_url, echo=settings.sql_echo, pool_pre_ping=True)

    kwargs: dict = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in settings.database_url or settings.database_url.endswith("://"):
        kwargs["poolclass"] = StaticPool
    engine = create_engine(settings.database_url, echo=settings.sql_echo, **kwargs)
    _enable_sqlite_savepoints(engine)
    return engine


def create_sql_store(settings: PlannerSettings) -> SqlStore:
    store = SqlStore(build_engine(settings))
    store.create_schema()
    logger.info("SQL store ready (%s)", store.engine.url.render_as_string(hide_password=True))
    return store
