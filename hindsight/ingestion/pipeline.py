"""Validation, anonymization, enrichment, and storage of one wire event."""

from __future__ import annotations

import typing as typ

from hindsight.events.anonymizer import event_key
from hindsight.events.validation import decode_event

if typ.TYPE_CHECKING:
    from hindsight.enrichment.enricher import Enricher
    from hindsight.events.models import EnrichedEvent
    from hindsight.storage.protocol import EventStorage


class IngestionPipeline:
    """Turn wire lines into stored, anonymized events.

    ``prepare`` is synchronous and raises
    :class:`~hindsight.events.errors.EventValidationError` for producer
    mistakes; ``store`` awaits the storage sink and raises
    :class:`~hindsight.storage.protocol.StorageError` for collector faults.
    Keeping the two steps apart lets callers react to each failure class
    differently.
    """

    def __init__(self, *, seed: str, enricher: Enricher, storage: EventStorage) -> None:
        """Store the salt seed and collaborators."""
        self._seed = seed
        self._enricher = enricher
        self._storage = storage

    @property
    def storage(self) -> EventStorage:
        """Return the storage sink events are written to."""
        return self._storage

    def prepare(self, data: bytes | str) -> EnrichedEvent:
        """Decode one JSON event and build its storage record."""
        event = decode_event(data)
        return self._enricher.enrich(event, event_key(self._seed, event))

    async def store(self, event: EnrichedEvent) -> None:
        """Persist one prepared event."""
        await self._storage.store((event,))

    async def ingest(self, data: bytes | str) -> EnrichedEvent:
        """Prepare and persist one JSON event."""
        event = self.prepare(data)
        await self.store(event)
        return event
