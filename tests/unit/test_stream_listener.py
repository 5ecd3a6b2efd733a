"""Unit tests for the persistent-connection stream listener."""

from __future__ import annotations

import asyncio
import typing as typ

import pytest

from hindsight.enrichment import Enricher, NullGeoLocator
from hindsight.ingestion import (
    IngestionPipeline,
    ListenerNotStartedError,
    StreamIngestionListener,
)
from hindsight.storage import MemoryEventStorage, StorageError
from tests.helpers.event_builders import TEST_SEED, wire_line

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from hindsight.events.models import EnrichedEvent


class _FlakyStorage(MemoryEventStorage):
    """Fails the first ``failures`` store calls."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures

    async def store(self, events: cabc.Sequence[EnrichedEvent]) -> None:
        if self.failures > 0:
            self.failures -= 1
            raise StorageError.insert_failed(0, len(events))
        await super().store(events)


async def _wait_for(predicate: cabc.Callable[[], bool], timeout: float = 2.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


async def _closed_by_peer(reader: asyncio.StreamReader) -> bool:
    async with asyncio.timeout(2):
        try:
            return await reader.read() == b""
        except ConnectionResetError:
            return True


async def _connect(
    listener: StreamIngestionListener,
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    host, port = listener.address
    return await asyncio.open_connection(host, port)


def _listener(
    storage: MemoryEventStorage, *, line_limit: int = 64 * 1024
) -> StreamIngestionListener:
    pipeline = IngestionPipeline(
        seed=TEST_SEED, enricher=Enricher(NullGeoLocator()), storage=storage
    )
    return StreamIngestionListener(
        pipeline, host="127.0.0.1", port=0, line_limit=line_limit
    )


def test_address_requires_start() -> None:
    """The bound address is unavailable before start()."""
    with pytest.raises(ListenerNotStartedError):
        _ = _listener(MemoryEventStorage()).address


@pytest.mark.asyncio
async def test_concurrent_connections_store_every_event() -> None:
    """N producers sending M events each yield N*M stored events in order."""
    storage = MemoryEventStorage()
    producers, per_producer = 4, 25

    async def produce(listener: StreamIngestionListener, index: int) -> None:
        _, writer = await _connect(listener)
        for seq in range(per_producer):
            writer.write(wire_line(Path=f"/p{index}/{seq}"))
        await writer.drain()
        writer.close()
        await writer.wait_closed()

    async with _listener(storage) as listener:
        await asyncio.gather(*(produce(listener, i) for i in range(producers)))
        await _wait_for(lambda: len(storage.events) == producers * per_producer)

    for index in range(producers):
        paths = [e.path for e in storage.events if e.path.startswith(f"/p{index}/")]
        assert paths == [f"/p{index}/{seq}" for seq in range(per_producer)], (
            "events of one connection must be stored in wire order"
        )


@pytest.mark.asyncio
async def test_blank_lines_are_skipped() -> None:
    """Empty and whitespace-only lines are ignored."""
    storage = MemoryEventStorage()
    async with _listener(storage) as listener:
        _, writer = await _connect(listener)
        writer.write(b"\n  \r\n" + wire_line() + b"\n")
        await writer.drain()
        await _wait_for(lambda: len(storage.events) == 1)
        writer.close()


@pytest.mark.asyncio
async def test_invalid_line_ends_only_that_connection() -> None:
    """A rejected line closes its own connection; others keep streaming."""
    storage = MemoryEventStorage()
    async with _listener(storage) as listener:
        bad_reader, bad_writer = await _connect(listener)
        _, good_writer = await _connect(listener)

        bad_writer.write(
            wire_line(Path="/before") + b"{oops}\n" + wire_line(Path="/after")
        )
        await bad_writer.drain()
        assert await _closed_by_peer(bad_reader), "listener should close the session"

        good_writer.write(wire_line(Path="/good"))
        await good_writer.drain()
        await _wait_for(lambda: len(storage.events) == 2)
        good_writer.close()

    assert sorted(event.path for event in storage.events) == ["/before", "/good"]


@pytest.mark.asyncio
async def test_storage_failure_does_not_end_session() -> None:
    """A failed store is logged and the next line is still processed."""
    storage = _FlakyStorage(failures=1)
    async with _listener(storage) as listener:
        _, writer = await _connect(listener)
        writer.write(wire_line(Path="/lost") + wire_line(Path="/kept"))
        await writer.drain()
        await _wait_for(lambda: len(storage.events) == 1)
        writer.close()

    assert [event.path for event in storage.events] == ["/kept"]


@pytest.mark.asyncio
async def test_overlong_line_ends_connection() -> None:
    """Lines beyond the limit end the session without storing anything."""
    storage = MemoryEventStorage()
    async with _listener(storage, line_limit=256) as listener:
        reader, writer = await _connect(listener)
        writer.write(wire_line(Path="/" + "x" * 512))
        await writer.drain()
        assert await _closed_by_peer(reader)
        writer.close()

    assert storage.events == []


@pytest.mark.asyncio
async def test_stop_closes_idle_connections() -> None:
    """stop() closes open connections and waits for their sessions."""
    listener = _listener(MemoryEventStorage())
    await listener.start()
    reader, writer = await _connect(listener)
    await _wait_for(lambda: listener.open_connections == 1)

    await listener.stop()

    assert listener.open_connections == 0
    assert await _closed_by_peer(reader)
    writer.close()


@pytest.mark.asyncio
async def test_stop_closes_connection_accepted_just_before() -> None:
    """A connection whose session has not started yet is still closed."""
    listener = _listener(MemoryEventStorage())
    await listener.start()
    reader, writer = await _connect(listener)

    async with asyncio.timeout(2):
        await listener.stop()

    assert listener.open_connections == 0
    assert await _closed_by_peer(reader)
    writer.close()
