"""Event storage: the capability protocol plus in-memory and SQL variants."""

from __future__ import annotations

from .memory import MemoryEventStorage
from .protocol import EventFilter, EventStorage, StorageError
from .sql import EventRecord, SQLEventStorage, init_event_storage

__all__ = [
    "EventFilter",
    "EventRecord",
    "EventStorage",
    "MemoryEventStorage",
    "SQLEventStorage",
    "StorageError",
    "init_event_storage",
]
