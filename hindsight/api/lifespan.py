"""ASGI lifespan hooks that run the collector's background services.

Falcon forwards ASGI ``lifespan`` messages to middleware implementing
``process_startup`` and ``process_shutdown``. The collector uses them to
create the event table, start the stream listener in the server's event
loop, and release the database engine and geo-IP reader on shutdown.
"""

from __future__ import annotations

import typing as typ

from hindsight.logging import get_logger, log_info
from hindsight.storage.sql import init_event_storage

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from hindsight.ingestion.stream import StreamIngestionListener

__all__ = ["CollectorLifespan"]

logger = get_logger(__name__)


class _Closeable(typ.Protocol):
    def close(self) -> None: ...


class CollectorLifespan:
    """Falcon middleware owning the collector's long-lived resources.

    Parameters
    ----------
    listener
        Stream listener started alongside the HTTP server, if any.
    engine
        Database engine whose schema is created at startup and which is
        disposed at shutdown, if any.
    closeables
        Extra resources closed at shutdown, such as the geo-IP reader.

    """

    def __init__(
        self,
        *,
        listener: StreamIngestionListener | None = None,
        engine: AsyncEngine | None = None,
        closeables: typ.Sequence[_Closeable] = (),
    ) -> None:
        """Store the resources managed across the application lifespan."""
        self._listener = listener
        self._engine = engine
        self._closeables = tuple(closeables)
        self._ready = False

    @property
    def ready(self) -> bool:
        """Return whether startup completed and shutdown has not begun."""
        return self._ready

    async def process_startup(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Create storage and start the stream listener."""
        if self._engine is not None:
            await init_event_storage(self._engine)
        if self._listener is not None:
            await self._listener.start()
        self._ready = True
        log_info(logger, "Collector started")

    async def process_shutdown(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Stop the listener, then release storage and lookup resources."""
        self._ready = False
        try:
            if self._listener is not None:
                await self._listener.stop()
        finally:
            if self._engine is not None:
                await self._engine.dispose()
            for resource in self._closeables:
                resource.close()
        log_info(logger, "Collector stopped")
