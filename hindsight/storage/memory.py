"""In-process event storage."""

from __future__ import annotations

import asyncio
import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from hindsight.events.models import EnrichedEvent

    from .protocol import EventFilter


class MemoryEventStorage:
    """:class:`~hindsight.storage.protocol.EventStorage` held in a list.

    Useful for tests and for embedding the collector where persistence is
    handled elsewhere.
    """

    def __init__(self) -> None:
        """Start with no events."""
        self._events: list[EnrichedEvent] = []
        self._lock = asyncio.Lock()

    @property
    def events(self) -> list[EnrichedEvent]:
        """Return a snapshot of the stored events in insertion order."""
        return list(self._events)

    async def store(self, events: cabc.Sequence[EnrichedEvent]) -> None:
        """Append ``events``."""
        async with self._lock:
            self._events.extend(events)

    async def fetch(
        self,
        start: dt.datetime,
        until: dt.datetime,
        event_filter: EventFilter | None = None,
    ) -> list[EnrichedEvent]:
        """Return stored events inside the closed interval."""
        hosts = event_filter.hosts if event_filter is not None else ()
        async with self._lock:
            return [
                event
                for event in self._events
                if start <= event.time <= until and (not hosts or event.host in hosts)
            ]
