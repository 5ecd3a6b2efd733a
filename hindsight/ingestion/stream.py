"""Persistent-connection ingestion over newline-delimited JSON.

Each accepted connection runs its own task that reads one event per line and
feeds it through the :class:`~hindsight.ingestion.pipeline.IngestionPipeline`.
There is no per-line acknowledgement. A line that fails validation ends only
that producer's session; a storage failure is logged and the session carries
on with the next line.

Usage
-----
Run a listener until shutdown::

    listener = StreamIngestionListener(pipeline, host="127.0.0.1", port=8765)
    await listener.start()
    ...
    await listener.stop()

"""

from __future__ import annotations

import asyncio
import contextlib
import typing as typ

from hindsight.events.errors import EventValidationError
from hindsight.storage.protocol import StorageError

from .observability import IngestionEventLogger

if typ.TYPE_CHECKING:
    import types

    from .pipeline import IngestionPipeline

DEFAULT_LINE_LIMIT = 64 * 1024

# Loop passes between an accept and its session callback registering.
_ACCEPT_PASSES = 4


class ListenerNotStartedError(RuntimeError):
    """Raised when the listener address is requested before ``start``."""

    def __init__(self) -> None:
        """Attach a fixed message."""
        super().__init__("stream listener has not been started")


def _peer_name(writer: asyncio.StreamWriter) -> str:
    peer = writer.get_extra_info("peername")
    if isinstance(peer, tuple) and len(peer) >= 2:  # noqa: PLR2004 - (host, port, ...)
        return f"{peer[0]}:{peer[1]}"
    return str(peer)


class StreamIngestionListener:
    """TCP listener accepting newline-delimited JSON events."""

    def __init__(
        self,
        pipeline: IngestionPipeline,
        *,
        host: str,
        port: int,
        line_limit: int = DEFAULT_LINE_LIMIT,
        event_logger: IngestionEventLogger | None = None,
    ) -> None:
        """Configure the bind address and the pipeline lines are fed into."""
        self._pipeline = pipeline
        self._host = host
        self._port = port
        self._line_limit = line_limit
        self._events = event_logger or IngestionEventLogger()
        self._server: asyncio.Server | None = None
        self._writers: set[asyncio.StreamWriter] = set()
        self._sessions: set[asyncio.Task[None]] = set()

    @property
    def address(self) -> tuple[str, int]:
        """Return the bound ``(host, port)``; useful when binding port 0."""
        if self._server is None or not self._server.sockets:
            raise ListenerNotStartedError
        sockname = self._server.sockets[0].getsockname()
        return (sockname[0], sockname[1])

    @property
    def open_connections(self) -> int:
        """Return the number of producer sessions still running."""
        return len(self._sessions)

    async def start(self) -> None:
        """Bind the listening socket and begin accepting connections.

        Raises
        ------
        OSError
            If the address cannot be bound.

        """
        self._server = await asyncio.start_server(
            self._handle_connection,
            self._host,
            self._port,
            limit=self._line_limit,
        )
        host, port = self.address
        self._events.listener_started(f"{host}:{port}")

    async def stop(self) -> None:
        """Stop accepting, close every open connection, and await sessions.

        Sessions are not cancelled: closing a socket makes its read loop see
        end-of-stream, and any storage write already in flight completes or
        fails on its own terms.
        """
        if self._server is None:
            return
        server = self._server
        host, port = self.address
        server.close()
        closing = 0
        while True:
            for _ in range(_ACCEPT_PASSES):
                await asyncio.sleep(0)
            writers = list(self._writers)
            if not writers:
                break
            closing += len(writers)
            for writer in writers:
                writer.close()
            await asyncio.wait(set(self._sessions))
        await server.wait_closed()
        self._server = None
        self._events.listener_stopped(f"{host}:{port}", closing)

    async def __aenter__(self) -> StreamIngestionListener:
        """Start the listener."""
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: types.TracebackType | None,
    ) -> None:
        """Stop the listener."""
        await self.stop()

    async def _handle_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        task = asyncio.current_task()
        if task is not None:
            self._sessions.add(task)
        self._writers.add(writer)
        peer = _peer_name(writer)
        self._events.connection_opened(peer)
        ingested = 0
        try:
            ingested = await self._read_events(reader, peer)
        finally:
            self._writers.discard(writer)
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()
            self._events.connection_closed(peer, ingested)
            if task is not None:
                self._sessions.discard(task)

    async def _read_events(self, reader: asyncio.StreamReader, peer: str) -> int:
        """Consume lines until end-of-stream or invalid input."""
        ingested = 0
        while True:
            try:
                raw = await reader.readline()
            except (ValueError, ConnectionError) as exc:
                # readline raises ValueError once a line exceeds the limit.
                self._events.connection_read_failed(peer, exc)
                return ingested
            if not raw:
                return ingested
            line = raw.rstrip(b"\r\n")
            if not line.strip():
                continue
            try:
                event = self._pipeline.prepare(line)
            except EventValidationError as exc:
                self._events.event_rejected(peer, exc, line)
                return ingested
            try:
                await self._pipeline.store(event)
            except StorageError as exc:
                self._events.store_failed(peer, exc)
                continue
            ingested += 1
            self._events.event_ingested(peer, event.key)
