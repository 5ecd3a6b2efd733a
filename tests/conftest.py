"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from hindsight.enrichment import Enricher, NullGeoLocator
from hindsight.ingestion import IngestionPipeline
from hindsight.storage import MemoryEventStorage, init_event_storage
from tests.helpers.event_builders import TEST_SEED

if typ.TYPE_CHECKING:
    from pathlib import Path


async def _setup_sqlite(tmp_path: Path) -> AsyncEngine:
    """Create a SQLite engine with the event table in place."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'hindsight_test.db'}"
    )
    try:
        await init_event_storage(engine)
    except Exception:
        await engine.dispose()
        raise
    return engine


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a fresh async session factory backed by sqlite."""
    engine = await _setup_sqlite(tmp_path)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest.fixture
def memory_storage() -> MemoryEventStorage:
    """Return an empty in-memory event store."""
    return MemoryEventStorage()


@pytest.fixture
def pipeline(memory_storage: MemoryEventStorage) -> IngestionPipeline:
    """Return a pipeline writing to ``memory_storage`` without geo-IP data."""
    return IngestionPipeline(
        seed=TEST_SEED,
        enricher=Enricher(NullGeoLocator()),
        storage=memory_storage,
    )
