"""Collector ingestion: the shared pipeline and the persistent stream listener."""

from __future__ import annotations

from .observability import IngestionEventLogger, IngestionEventType
from .pipeline import IngestionPipeline
from .stream import DEFAULT_LINE_LIMIT, ListenerNotStartedError, StreamIngestionListener

__all__ = [
    "DEFAULT_LINE_LIMIT",
    "IngestionEventLogger",
    "IngestionEventType",
    "IngestionPipeline",
    "ListenerNotStartedError",
    "StreamIngestionListener",
]
