"""Structured log events for collector ingestion.

Events are emitted as ``[event.type] key=value`` lines through femtologging
so aggregators can parse connection lifecycles, rejected producer input, and
storage failures without a separate metrics pipeline.
"""

from __future__ import annotations

import enum
import typing as typ

from hindsight.logging import get_logger, log_debug, log_error, log_info, log_warning

if typ.TYPE_CHECKING:
    from hindsight.events.errors import EventValidationError
    from hindsight.storage.protocol import StorageError

logger = get_logger(__name__)

_MAX_LOGGED_LINE = 256


class IngestionEventType(enum.StrEnum):
    """Structured log event types for ingestion observability."""

    LISTENER_STARTED = "ingestion.listener.started"
    LISTENER_STOPPED = "ingestion.listener.stopped"
    CONNECTION_OPENED = "ingestion.connection.opened"
    CONNECTION_CLOSED = "ingestion.connection.closed"
    CONNECTION_READ_FAILED = "ingestion.connection.read_failed"
    EVENT_REJECTED = "ingestion.event.rejected"
    EVENT_INGESTED = "ingestion.event.ingested"
    STORE_FAILED = "ingestion.store.failed"
    BATCH_COMPLETED = "ingestion.batch.completed"


def _excerpt(line: bytes) -> str:
    text = line[:_MAX_LOGGED_LINE].decode("utf-8", errors="replace")
    return text if len(line) <= _MAX_LOGGED_LINE else f"{text}..."


class IngestionEventLogger:
    """Emit structured ingestion events.

    Producer mistakes log at WARNING; storage failures are the collector's
    own fault and log at ERROR.
    """

    def listener_started(self, address: str) -> None:
        """Log that the stream listener accepts connections."""
        log_info(
            logger, "[%s] address=%s", IngestionEventType.LISTENER_STARTED, address
        )

    def listener_stopped(self, address: str, open_connections: int) -> None:
        """Log listener shutdown and the number of connections it closed."""
        log_info(
            logger,
            "[%s] address=%s closed_connections=%d",
            IngestionEventType.LISTENER_STOPPED,
            address,
            open_connections,
        )

    def connection_opened(self, peer: str) -> None:
        """Log a newly accepted producer connection."""
        log_debug(logger, "[%s] peer=%s", IngestionEventType.CONNECTION_OPENED, peer)

    def connection_closed(self, peer: str, ingested: int) -> None:
        """Log the end of a producer session."""
        log_debug(
            logger,
            "[%s] peer=%s ingested=%d",
            IngestionEventType.CONNECTION_CLOSED,
            peer,
            ingested,
        )

    def connection_read_failed(self, peer: str, error: BaseException) -> None:
        """Log a read failure that ended a session."""
        log_warning(
            logger,
            "[%s] peer=%s error=%s",
            IngestionEventType.CONNECTION_READ_FAILED,
            peer,
            error,
        )

    def event_rejected(
        self, source: str, error: EventValidationError, line: bytes
    ) -> None:
        """Log producer input that failed validation."""
        log_warning(
            logger,
            "[%s] source=%s issue=%s field=%s error=%s line=%r",
            IngestionEventType.EVENT_REJECTED,
            source,
            error.issue,
            error.field,
            error,
            _excerpt(line),
        )

    def event_ingested(self, source: str, key: str) -> None:
        """Log a stored event at DEBUG."""
        log_debug(
            logger,
            "[%s] source=%s key=%s",
            IngestionEventType.EVENT_INGESTED,
            source,
            key,
        )

    def store_failed(self, source: str, error: StorageError) -> None:
        """Log a storage failure attributed to the collector."""
        log_error(
            logger,
            "[%s] source=%s error=%s",
            IngestionEventType.STORE_FAILED,
            source,
            error,
            exc_info=error,
        )

    def batch_completed(self, source: str, ingested: int, *, ok: bool) -> None:
        """Log the outcome of an HTTP submission."""
        log_info(
            logger,
            "[%s] source=%s ok=%s ingested=%d",
            IngestionEventType.BATCH_COMPLETED,
            source,
            ok,
            ingested,
        )
