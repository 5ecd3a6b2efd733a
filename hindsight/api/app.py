"""Application factory for the Hindsight collector's Falcon ASGI app.

Usage
-----
Create a health-only app (no ingestion)::

    app = create_app()

Create a collector app::

    from hindsight.api.app import AppDependencies, create_app

    deps = AppDependencies(pipeline=pipeline, lifespan=lifespan)
    app = create_app(deps)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from hindsight.api.errors import IngestRejectedError, handle_ingest_rejected
from hindsight.api.health.resources import HealthResource, ReadyResource
from hindsight.api.ingest import INGEST_PATH, IngestResource

if typ.TYPE_CHECKING:
    from hindsight.api.lifespan import CollectorLifespan
    from hindsight.ingestion.observability import IngestionEventLogger
    from hindsight.ingestion.pipeline import IngestionPipeline

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the collector's Falcon ASGI application.

    Attributes
    ----------
    pipeline
        Ingestion pipeline shared with the stream listener. When ``None``
        only the health endpoints are registered.
    lifespan
        Middleware starting and stopping background services; its
        ``ready`` flag drives ``/ready``.
    event_logger
        Structured logger for ingestion events.

    """

    pipeline: IngestionPipeline | None = None
    lifespan: CollectorLifespan | None = None
    event_logger: IngestionEventLogger | None = None


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Parameters
    ----------
    dependencies
        Optional application dependencies. When ``None``, only
        ``/health`` and ``/ready`` are available.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    deps = dependencies or AppDependencies()
    middleware: list[object] = []
    if deps.lifespan is not None:
        middleware.append(deps.lifespan)

    app = falcon.asgi.App(middleware=middleware)  # type: ignore[no-matching-overload]  # Falcon stubs

    lifespan = deps.lifespan
    app.add_route("/health", HealthResource())
    app.add_route(
        "/ready",
        ReadyResource(None if lifespan is None else lambda: lifespan.ready),
    )

    if deps.pipeline is not None:
        app.add_route(
            INGEST_PATH,
            IngestResource(deps.pipeline, event_logger=deps.event_logger),
        )

    app.add_error_handler(IngestRejectedError, handle_ingest_rejected)
    return app
