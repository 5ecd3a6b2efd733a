"""Storage capability the ingestion pipeline writes through."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from hindsight.events.models import EnrichedEvent


class StorageError(RuntimeError):
    """Raised when events cannot be persisted or read back.

    Attributes
    ----------
    stored
        Number of events from the failing batch persisted before the error.

    """

    def __init__(self, message: str, *, stored: int = 0) -> None:
        """Initialise with a message and the count persisted so far."""
        self.stored = stored
        super().__init__(message)

    @classmethod
    def insert_failed(cls, index: int, total: int) -> StorageError:
        """Return an error for the event at zero-based ``index`` of ``total``."""
        return cls(f"failed to store event {index + 1}/{total}", stored=index)

    @classmethod
    def query_failed(cls) -> StorageError:
        """Return an error for a failed event query."""
        return cls("error querying for events")


@dc.dataclass(frozen=True, slots=True)
class EventFilter:
    """Optional restrictions applied by :meth:`EventStorage.fetch`."""

    hosts: tuple[str, ...] = ()


class EventStorage(typ.Protocol):
    """Persistence for enriched events.

    Implementations must tolerate concurrent ``store`` calls from independent
    ingestion tasks.
    """

    async def store(self, events: cabc.Sequence[EnrichedEvent]) -> None:
        """Persist ``events`` in order, raising :class:`StorageError` on failure.

        A failure may leave earlier events of the batch persisted.
        """
        ...

    async def fetch(
        self,
        start: dt.datetime,
        until: dt.datetime,
        event_filter: EventFilter | None = None,
    ) -> list[EnrichedEvent]:
        """Return events with ``start <= time <= until`` matching the filter."""
        ...
