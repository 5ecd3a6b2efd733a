"""SQLAlchemy-backed event storage."""

from __future__ import annotations

import asyncio
import typing as typ

from sqlalchemy import BigInteger, Index, Integer, String, Text, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from hindsight.common.time import from_unix_seconds, unix_seconds
from hindsight.events.models import EnrichedEvent, NameAndVersion

from .protocol import StorageError

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

    from .protocol import EventFilter


class Base(DeclarativeBase):
    """Base declarative class for event models."""


class EventRecord(Base):
    """One anonymized request, keyed by the per-day visitor key."""

    __tablename__ = "hindsight_events"
    __table_args__ = (Index("ix_hindsight_events_time_host", "time", "req_host"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    time: Mapped[int] = mapped_column(BigInteger)
    unique_visitor: Mapped[str] = mapped_column(String(64))
    req_host: Mapped[str] = mapped_column(Text())
    req_path: Mapped[str] = mapped_column(Text())
    req_method: Mapped[str] = mapped_column(String(32))
    res_status: Mapped[int] = mapped_column(Integer)
    res_duration_ms: Mapped[int] = mapped_column(BigInteger)
    res_bytes_written: Mapped[int] = mapped_column(BigInteger)
    browser_kind: Mapped[str] = mapped_column(String(16))
    browser_name: Mapped[str] = mapped_column(Text())
    browser_version: Mapped[str] = mapped_column(Text())
    os_name: Mapped[str] = mapped_column(Text())
    os_version: Mapped[str] = mapped_column(Text())
    location_country_code: Mapped[str] = mapped_column(String(8))
    location_time_zone: Mapped[str] = mapped_column(String(64))

    @classmethod
    def from_event(cls, event: EnrichedEvent) -> EventRecord:
        """Build a row from an enriched event."""
        return cls(
            time=unix_seconds(event.time),
            unique_visitor=event.key,
            req_host=event.host,
            req_path=event.path,
            req_method=event.method,
            res_status=event.status_code,
            res_duration_ms=event.duration_ms,
            res_bytes_written=event.bytes_written,
            browser_kind=event.device,
            browser_name=event.browser.name,
            browser_version=event.browser.version,
            os_name=event.os.name,
            os_version=event.os.version,
            location_country_code=event.country_code,
            location_time_zone=event.time_zone,
        )

    def to_event(self) -> EnrichedEvent:
        """Rebuild the enriched event; ``time`` has whole-second precision."""
        return EnrichedEvent(
            key=self.unique_visitor,
            time=from_unix_seconds(self.time),
            host=self.req_host,
            path=self.req_path,
            method=self.req_method,
            device=self.browser_kind,
            browser=NameAndVersion(self.browser_name, self.browser_version),
            os=NameAndVersion(self.os_name, self.os_version),
            country_code=self.location_country_code,
            time_zone=self.location_time_zone,
            status_code=self.res_status,
            duration_ms=self.res_duration_ms,
            bytes_written=self.res_bytes_written,
        )


async def init_event_storage(engine: AsyncEngine) -> None:
    """Create the events table if it is absent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


class SQLEventStorage:
    """Event storage over an async SQLAlchemy session factory.

    Writes are serialized through one lock so SQLite, which accepts a single
    writer, never sees concurrent inserts from independent connections.
    Each event is committed on its own, so a failure leaves the earlier
    events of a batch in place.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Store the session factory used for reads and writes."""
        self._session_factory = session_factory
        self._write_lock = asyncio.Lock()

    async def store(self, events: cabc.Sequence[EnrichedEvent]) -> None:
        """Insert ``events`` in order."""
        total = len(events)
        async with self._write_lock, self._session_factory() as session:
            for index, event in enumerate(events):
                session.add(EventRecord.from_event(event))
                try:
                    await session.commit()
                except SQLAlchemyError as exc:
                    await session.rollback()
                    raise StorageError.insert_failed(index, total) from exc

    async def fetch(
        self,
        start: dt.datetime,
        until: dt.datetime,
        event_filter: EventFilter | None = None,
    ) -> list[EnrichedEvent]:
        """Return events whose second-precision time lies in the interval."""
        stmt = (
            select(EventRecord)
            .where(EventRecord.time.between(unix_seconds(start), unix_seconds(until)))
            .order_by(EventRecord.time, EventRecord.id)
        )
        if event_filter is not None and event_filter.hosts:
            stmt = stmt.where(EventRecord.req_host.in_(event_filter.hosts))
        try:
            async with self._session_factory() as session:
                records = (await session.scalars(stmt)).all()
        except SQLAlchemyError as exc:
            raise StorageError.query_failed() from exc
        return [record.to_event() for record in records]
