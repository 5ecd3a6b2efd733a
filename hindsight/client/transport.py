"""Delivery of captured events to the collector.

Two transports share one interface:

``StreamTransport``
    Keeps a persistent TCP connection to the collector's stream listener and
    writes one JSON line per event. A single background task owns the
    connection, so events leave in submission order.
``HTTPTransport``
    Sends each ``record`` call as one ``POST /api/ingest`` request, using
    NDJSON when several events travel together.

Delivery is at-most-once and best effort. Failures never reach the
instrumented request; they are handed to the ``on_error`` callback, which
logs a warning by default.

Usage
-----
Deliver events over a persistent stream::

    async with StreamTransport("127.0.0.1", 8765) as transport:
        transport.submit(event)

"""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import contextlib
import importlib.metadata
import platform
import typing as typ
from http import HTTPStatus

import httpx
import msgspec

from hindsight.events.models import RawEvent
from hindsight.logging import get_logger, log_warning

from .errors import DeliveryError

if typ.TYPE_CHECKING:
    import types

__all__ = [
    "ErrorCallback",
    "HTTPTransport",
    "StreamTransport",
    "Transport",
    "encode_line",
    "log_delivery_error",
    "user_agent",
]

logger = get_logger(__name__)

ErrorCallback = cabc.Callable[[DeliveryError], None]
Encoder = cabc.Callable[[RawEvent], bytes]
Dialer = cabc.Callable[
    [], cabc.Awaitable[tuple[asyncio.StreamReader, asyncio.StreamWriter]]
]

DEFAULT_QUEUE_SIZE = 1024
MAX_ATTEMPTS = 3
CONNECT_TIMEOUT_S = 0.1
WRITE_TIMEOUT_S = 0.005
CLOSE_TIMEOUT_S = 1.0
ERROR_BODY_LIMIT = 1024

_ENCODE_ERRORS = (msgspec.EncodeError, OverflowError, TypeError, ValueError)


class Transport(typ.Protocol):
    """Interface shared by the capture client's transports."""

    def submit(self, event: RawEvent) -> None:
        """Hand ``event`` off for delivery without waiting."""
        ...

    async def record(self, *events: RawEvent) -> None:
        """Deliver ``events``; failures go to the error callback."""
        ...

    async def aclose(self) -> None:
        """Flush pending work and release connections."""
        ...


def log_delivery_error(error: DeliveryError) -> None:
    """Log a delivery failure at WARNING; the default error callback."""
    log_warning(
        logger,
        "[client.delivery.failed] retryable=%s error=%s",
        error.retryable,
        error,
    )


def encode_line(event: RawEvent) -> bytes:
    """Encode ``event`` as one newline-terminated JSON line."""
    return msgspec.json.encode(event) + b"\n"


def _package_version() -> str:
    try:
        return importlib.metadata.version("hindsight")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0"


def user_agent() -> str:
    """Return the ``User-Agent`` the HTTP transport identifies itself with."""
    return (
        f"Hindsight-Python-Client/{_package_version()} "
        f"Python/{platform.python_version()}"
    )


class _TransportContext:
    async def aclose(self) -> None:
        raise NotImplementedError

    async def __aenter__(self) -> typ.Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: types.TracebackType | None,
    ) -> None:
        await self.aclose()


class HTTPTransport(_TransportContext):
    """One-shot HTTP delivery to ``POST /api/ingest``.

    Requests carry ``Prefer: return=minimal``; the collector then answers
    ``204 No Content`` on success. Any other status is a failure, reported
    with at most 1 KiB of the response body.

    Parameters
    ----------
    endpoint
        Full URL of the collector's ingest endpoint.
    token
        Optional bearer token sent as ``Authorization``.
    timeout_s
        Request timeout for the owned client.
    http_client
        Pre-configured client; the transport only closes clients it created.
    on_error
        Callback receiving each :class:`DeliveryError`.

    """

    def __init__(
        self,
        endpoint: str,
        *,
        token: str | None = None,
        timeout_s: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        """Configure the endpoint, credentials, and HTTP client."""
        self._endpoint = endpoint
        self._on_error = on_error or log_delivery_error
        self._headers = {
            "Prefer": "return=minimal",
            "User-Agent": user_agent(),
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout_s)
        self._tasks: set[asyncio.Task[None]] = set()

    def submit(self, event: RawEvent) -> None:
        """Schedule delivery of ``event`` on the running loop."""
        task = asyncio.get_running_loop().create_task(self.record(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def record(self, *events: RawEvent) -> None:
        """Send ``events`` in one request."""
        if not events:
            return
        try:
            lines = [encode_line(event) for event in events]
        except _ENCODE_ERRORS as exc:
            self._on_error(DeliveryError.encoding(exc))
            return

        if len(lines) == 1:
            content, content_type = lines[0].rstrip(b"\n"), "application/json"
        else:
            content, content_type = b"".join(lines), "application/x-ndjson"
        headers = {**self._headers, "Content-Type": content_type}

        try:
            async with self._client.stream(
                "POST", self._endpoint, content=content, headers=headers
            ) as response:
                if response.status_code == HTTPStatus.NO_CONTENT:
                    return
                body = await _read_excerpt(response)
        except httpx.HTTPError as exc:
            self._on_error(DeliveryError.network(exc))
            return
        self._on_error(DeliveryError.http_status(response.status_code, body))

    async def aclose(self) -> None:
        """Wait for submitted deliveries, then close an owned client."""
        if self._tasks:
            await asyncio.gather(*self._tasks)
        if self._owns_client:
            await self._client.aclose()


async def _read_excerpt(response: httpx.Response) -> str:
    buffer = bytearray()
    async for chunk in response.aiter_bytes():
        buffer.extend(chunk)
        if len(buffer) >= ERROR_BODY_LIMIT:
            break
    return bytes(buffer[:ERROR_BODY_LIMIT]).decode("utf-8", errors="replace")


class StreamTransport(_TransportContext):
    """Persistent-connection delivery to the collector's stream listener.

    Events wait in a bounded queue drained by one background task. For each
    event the task makes at most ``max_attempts`` attempts; an attempt dials
    when no connection is open (bounded by ``connect_timeout_s``) and writes
    the line (bounded by ``write_timeout_s``). A failed attempt aborts the
    connection. When every attempt fails the event is dropped and reported.

    Parameters
    ----------
    host, port
        Address of the stream listener.
    dialer
        Coroutine factory opening a connection; defaults to
        :func:`asyncio.open_connection` on ``host`` and ``port``.
    encoder
        Serializer producing one newline-terminated line per event.
    on_error
        Callback receiving each :class:`DeliveryError`.

    """

    def __init__(  # noqa: PLR0913 - tuning knobs are keyword-only
        self,
        host: str,
        port: int,
        *,
        dialer: Dialer | None = None,
        encoder: Encoder = encode_line,
        on_error: ErrorCallback | None = None,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        max_attempts: int = MAX_ATTEMPTS,
        connect_timeout_s: float = CONNECT_TIMEOUT_S,
        write_timeout_s: float = WRITE_TIMEOUT_S,
    ) -> None:
        """Configure the collector address, retry bounds, and queue size."""
        self._dialer = dialer or (lambda: asyncio.open_connection(host, port))
        self._encoder = encoder
        self._on_error = on_error or log_delivery_error
        self._queue: asyncio.Queue[RawEvent | None] = asyncio.Queue(queue_size)
        self._queue_size = queue_size
        self._max_attempts = max_attempts
        self._connect_timeout_s = connect_timeout_s
        self._write_timeout_s = write_timeout_s
        self._writer: asyncio.StreamWriter | None = None
        self._worker: asyncio.Task[None] | None = None
        self._closed = False

    def submit(self, event: RawEvent) -> None:
        """Queue ``event`` without waiting; a full queue drops it."""
        if self._closed:
            self._on_error(DeliveryError.closed())
            return
        self._ensure_worker()
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self._on_error(DeliveryError.queue_full(self._queue_size))

    async def record(self, *events: RawEvent) -> None:
        """Queue ``events`` in order, waiting for queue space."""
        if self._closed:
            for _ in events:
                self._on_error(DeliveryError.closed())
            return
        self._ensure_worker()
        for event in events:
            await self._queue.put(event)

    async def aclose(self) -> None:
        """Deliver everything already queued, then close the connection."""
        if self._closed:
            return
        self._closed = True
        if self._worker is not None:
            await self._queue.put(None)
            await self._worker
            self._worker = None
        await self._disconnect()

    def _ensure_worker(self) -> None:
        if self._worker is None:
            self._worker = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            await self._deliver(event)

    async def _deliver(self, event: RawEvent) -> None:
        try:
            line = self._encoder(event)
        except _ENCODE_ERRORS as exc:
            self._on_error(DeliveryError.encoding(exc))
            return

        last_error: BaseException | None = None
        for _ in range(self._max_attempts):
            try:
                writer = await self._connection()
                writer.write(line)
                await asyncio.wait_for(writer.drain(), self._write_timeout_s)
            except (OSError, TimeoutError) as exc:
                last_error = exc
                self._abort()
            else:
                return
        self._on_error(
            DeliveryError.attempts_exhausted(self._max_attempts, last_error)
        )

    async def _connection(self) -> asyncio.StreamWriter:
        if self._writer is None or self._writer.is_closing():
            _, self._writer = await asyncio.wait_for(
                self._dialer(), self._connect_timeout_s
            )
        return self._writer

    def _abort(self) -> None:
        # Drops unsent bytes without waiting on the peer.
        writer, self._writer = self._writer, None
        if writer is not None:
            writer.transport.abort()

    async def _disconnect(self) -> None:
        writer, self._writer = self._writer, None
        if writer is None:
            return
        writer.close()
        with contextlib.suppress(OSError):
            try:
                await asyncio.wait_for(writer.wait_closed(), CLOSE_TIMEOUT_S)
            except TimeoutError:
                writer.transport.abort()
