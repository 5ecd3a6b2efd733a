"""Ingestion failures and the Falcon error handler that reports them.

Failed submissions are answered with the same JSON summary as successful
ones: ``{"OK": false, "Status": <code>, "Ingested": <n>, "Error": <msg>}``,
where ``Ingested`` counts events handed to storage before the failure.

Usage
-----
Register the handler on the Falcon app::

    app.add_error_handler(IngestRejectedError, handle_ingest_rejected)

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

__all__ = ["IngestRejectedError", "handle_ingest_rejected", "summary_media"]


def summary_media(
    status: HTTPStatus,
    *,
    ingested: int | None,
    error: str | None = None,
) -> dict[str, object]:
    """Build the JSON body describing an ingestion outcome."""
    media: dict[str, object] = {
        "OK": status is HTTPStatus.OK,
        "Status": int(status),
    }
    if ingested is not None:
        media["Ingested"] = ingested
    if error is not None:
        media["Error"] = error
    return media


class IngestRejectedError(Exception):
    """Raised by the ingest resource when a submission cannot be completed.

    Attributes
    ----------
    status
        HTTP status reported to the producer.
    ingested
        Events stored before the failure, or ``None`` when the body was
        never inspected.
    reason
        Human-readable description of the failure.

    """

    def __init__(
        self,
        status: HTTPStatus,
        reason: str,
        *,
        ingested: int | None = 0,
    ) -> None:
        """Initialise with the response status, reason, and ingested count."""
        self.status = status
        self.reason = reason
        self.ingested = ingested
        super().__init__(reason)

    @classmethod
    def invalid_event(cls, exc: Exception) -> IngestRejectedError:
        """Return an error for a single JSON body that failed validation."""
        return cls(HTTPStatus.BAD_REQUEST, str(exc))

    @classmethod
    def invalid_line(cls, exc: Exception, ingested: int) -> IngestRejectedError:
        """Return an error for an NDJSON line that failed validation."""
        return cls(HTTPStatus.UNPROCESSABLE_ENTITY, str(exc), ingested=ingested)

    @classmethod
    def line_too_long(cls, limit: int, ingested: int) -> IngestRejectedError:
        """Return an error for an NDJSON line longer than ``limit`` bytes."""
        return cls(
            HTTPStatus.BAD_REQUEST,
            f"line exceeds {limit} bytes",
            ingested=ingested,
        )

    @classmethod
    def storage_failed(cls, exc: Exception) -> IngestRejectedError:
        """Return an error for a single event the collector failed to store."""
        return cls(HTTPStatus.INTERNAL_SERVER_ERROR, str(exc))

    @classmethod
    def unsupported_content_type(cls, content_type: str | None) -> IngestRejectedError:
        """Return an error for bodies that are neither JSON nor NDJSON."""
        return cls(
            HTTPStatus.NOT_ACCEPTABLE,
            f"Unknown content type: {content_type or '(none)'}",
            ingested=None,
        )


async def handle_ingest_rejected(
    _req: Request,
    resp: Response,
    ex: IngestRejectedError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``IngestRejectedError`` to its status and JSON summary.

    Parameters
    ----------
    _req
        Falcon request (unused).
    resp
        Falcon response whose status and media are set.
    ex
        The rejection carrying status, reason, and ingested count.
    _params
        URI template parameters (unused).

    """
    resp.status = ex.status
    resp.media = summary_media(ex.status, ingested=ex.ingested, error=ex.reason)
