"""HTTP ingestion endpoint.

``POST /api/ingest`` accepts either one JSON event (``application/json``) or
newline-delimited events (``application/x-ndjson``). NDJSON lines are handled
strictly in order: the first invalid line aborts the request and the response
reports how many events were ingested before it. Storage failures inside a
batch are logged and do not stop later lines.

Producers that send ``Prefer: return=minimal`` receive ``204 No Content`` on
success instead of the JSON summary.
"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

from hindsight.events.errors import EventValidationError
from hindsight.ingestion.observability import IngestionEventLogger
from hindsight.ingestion.stream import DEFAULT_LINE_LIMIT
from hindsight.storage.protocol import StorageError

from .errors import IngestRejectedError, summary_media

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from hindsight.ingestion.pipeline import IngestionPipeline

__all__ = ["INGEST_PATH", "IngestResource"]

INGEST_PATH = "/api/ingest"

_SINGLE_TYPES = frozenset({"application/json", "text/json"})
_NDJSON_TYPES = frozenset({"application/x-ndjson", "application/ndjson"})
_MINIMAL_PREFERENCE = "return=minimal"


def _media_type(content_type: str | None) -> str:
    """Return the bare media type, ignoring parameters such as charset."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def _prefers_minimal(req: Request) -> bool:
    prefer = req.get_header("Prefer") or ""
    return any(
        token.strip().lower() == _MINIMAL_PREFERENCE for token in prefer.split(",")
    )


class IngestResource:
    """Falcon resource feeding submitted events through the pipeline."""

    def __init__(
        self,
        pipeline: IngestionPipeline,
        *,
        line_limit: int = DEFAULT_LINE_LIMIT,
        event_logger: IngestionEventLogger | None = None,
    ) -> None:
        """Store the pipeline and the maximum accepted NDJSON line length."""
        self._pipeline = pipeline
        self._line_limit = line_limit
        self._events = event_logger or IngestionEventLogger()

    async def on_post(self, req: Request, resp: Response) -> None:
        """Handle POST /api/ingest.

        Raises
        ------
        IngestRejectedError
            For unknown content types, invalid events, and storage failures
            of single-event submissions.

        """
        media_type = _media_type(req.content_type)
        if media_type in _SINGLE_TYPES:
            ingested = await self._ingest_single(req)
        elif media_type in _NDJSON_TYPES:
            ingested = await self._ingest_lines(req)
        else:
            raise IngestRejectedError.unsupported_content_type(req.content_type)

        self._events.batch_completed(INGEST_PATH, ingested, ok=True)
        if _prefers_minimal(req):
            resp.status = HTTPStatus.NO_CONTENT
            resp.set_header("Preference-Applied", _MINIMAL_PREFERENCE)
            return
        resp.status = HTTPStatus.OK
        resp.media = summary_media(HTTPStatus.OK, ingested=ingested)

    async def _ingest_single(self, req: Request) -> int:
        body = await req.stream.read()
        try:
            event = self._pipeline.prepare(body)
        except EventValidationError as exc:
            self._events.event_rejected(INGEST_PATH, exc, body)
            raise IngestRejectedError.invalid_event(exc) from exc
        try:
            await self._pipeline.store(event)
        except StorageError as exc:
            self._events.store_failed(INGEST_PATH, exc)
            raise IngestRejectedError.storage_failed(exc) from exc
        return 1

    async def _ingest_lines(self, req: Request) -> int:
        body = await req.stream.read()
        ingested = 0
        for raw in body.split(b"\n"):
            line = raw.rstrip(b"\r")
            if len(line) > self._line_limit:
                raise IngestRejectedError.line_too_long(self._line_limit, ingested)
            if not line.strip():
                continue
            try:
                event = self._pipeline.prepare(line)
            except EventValidationError as exc:
                self._events.event_rejected(INGEST_PATH, exc, line)
                raise IngestRejectedError.invalid_line(exc, ingested) from exc
            try:
                await self._pipeline.store(event)
            except StorageError as exc:
                self._events.store_failed(INGEST_PATH, exc)
            ingested += 1
        return ingested
