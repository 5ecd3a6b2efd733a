"""Unit tests for the in-memory and SQL event stores."""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import typing as typ

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from hindsight.events.models import EnrichedEvent, NameAndVersion
from hindsight.storage import (
    EventFilter,
    EventRecord,
    MemoryEventStorage,
    SQLEventStorage,
    StorageError,
)

if typ.TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncSession

_BASE_TIME = dt.datetime(2024, 3, 1, 12, 0, 0, tzinfo=dt.UTC)


def _event(
    *, minutes: int = 0, host: str = "example.com", key: str = "k1"
) -> EnrichedEvent:
    return EnrichedEvent(
        key=key,
        time=_BASE_TIME + dt.timedelta(minutes=minutes),
        host=host,
        path="/",
        method="GET",
        device="desktop",
        browser=NameAndVersion("Firefox", "123.0"),
        os=NameAndVersion("Linux", ""),
        country_code="XX",
        time_zone="UTC",
        status_code=200,
        duration_ms=3,
        bytes_written=42,
    )


class TestMemoryEventStorage:
    """List-backed storage."""

    @pytest.mark.asyncio
    async def test_store_appends_in_order(self) -> None:
        """Events are kept in insertion order."""
        storage = MemoryEventStorage()
        first, second = _event(key="a"), _event(key="b")

        await storage.store([first])
        await storage.store([second])

        assert storage.events == [first, second]

    @pytest.mark.asyncio
    async def test_fetch_filters_by_interval_and_host(self) -> None:
        """Fetch applies the closed interval and host filter."""
        storage = MemoryEventStorage()
        inside = _event(minutes=5)
        other_host = _event(minutes=5, host="other.example")
        outside = _event(minutes=90)
        await storage.store([inside, other_host, outside])

        found = await storage.fetch(
            _BASE_TIME,
            _BASE_TIME + dt.timedelta(hours=1),
            EventFilter(hosts=("example.com",)),
        )

        assert found == [inside]


class TestSQLEventStorage:
    """SQLAlchemy storage over aiosqlite."""

    @pytest.mark.asyncio
    async def test_store_and_fetch_round_trip(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Stored events are read back with every column intact."""
        storage = SQLEventStorage(session_factory)
        event = _event()

        await storage.store([event])
        found = await storage.fetch(_BASE_TIME, _BASE_TIME)

        assert found == [event]

    @pytest.mark.asyncio
    async def test_time_is_stored_as_unix_seconds(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """The time column holds whole seconds since the epoch."""
        storage = SQLEventStorage(session_factory)
        event = dc.replace(_event(), time=_BASE_TIME + dt.timedelta(microseconds=900))

        await storage.store([event])

        async with session_factory() as session:
            stored = await session.scalar(select(EventRecord.time))
        assert stored == int(_BASE_TIME.timestamp())

    @pytest.mark.asyncio
    async def test_fetch_orders_and_filters(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Fetch returns matching events ordered by time."""
        storage = SQLEventStorage(session_factory)
        late = _event(minutes=30, key="late")
        early = _event(minutes=10, key="early")
        await storage.store([late, early, _event(minutes=10, host="b.example")])

        found = await storage.fetch(
            _BASE_TIME,
            _BASE_TIME + dt.timedelta(hours=1),
            EventFilter(hosts=("example.com",)),
        )

        assert [event.key for event in found] == ["early", "late"]

    @pytest.mark.asyncio
    async def test_batch_insert_counts_rows(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Every event of a batch becomes one row."""
        storage = SQLEventStorage(session_factory)

        await storage.store([_event(minutes=i) for i in range(5)])

        async with session_factory() as session:
            count = await session.scalar(select(func.count(EventRecord.id)))
        assert count == 5

    @pytest.mark.asyncio
    async def test_failures_raise_storage_error(self, tmp_path: Path) -> None:
        """Database errors surface as StorageError naming the failing event."""
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
        storage = SQLEventStorage(async_sessionmaker(engine, expire_on_commit=False))
        try:
            with pytest.raises(StorageError) as excinfo:
                await storage.store([_event(), _event()])
            with pytest.raises(StorageError):
                await storage.fetch(_BASE_TIME, _BASE_TIME)
        finally:
            await engine.dispose()

        assert excinfo.value.stored == 0
        assert str(excinfo.value) == "failed to store event 1/2"
