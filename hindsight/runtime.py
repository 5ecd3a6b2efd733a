"""Hindsight collector runtime entrypoint.

``hindsight.runtime:create_app`` is the Granian application factory. It
wires configuration, storage, enrichment, and both ingestion paths into one
Falcon ASGI app; the stream listener starts from the ASGI lifespan so it
shares the server's event loop with ``POST /api/ingest``.

Configuration is driven by ``HINDSIGHT_*`` environment variables, see
:class:`hindsight.config.CollectorConfig`.

Run the collector directly with ``python -m hindsight.runtime``.
"""

from __future__ import annotations

import typing as typ

from hindsight.config import CollectorConfig
from hindsight.errors import ConfigError
from hindsight.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

    from hindsight.enrichment.geoip import MaxMindGeoLocator, NullGeoLocator

__all__ = ["build_app", "create_app", "main"]

logger = get_logger(__name__)


def _open_geolocator(config: CollectorConfig) -> MaxMindGeoLocator | NullGeoLocator:
    from hindsight.enrichment.geoip import MaxMindGeoLocator, NullGeoLocator

    if config.geoip_database is None:
        log_warning(
            logger,
            "HINDSIGHT_GEOIP_DATABASE not set; locations will be recorded as unknown",
        )
        return NullGeoLocator()
    return MaxMindGeoLocator.open(config.geoip_database)


def build_app(config: CollectorConfig) -> falcon.asgi.App:
    """Assemble the collector application for ``config``.

    Returns
    -------
    falcon.asgi.App
        App serving health probes and ``POST /api/ingest`` whose lifespan
        starts the stream listener.

    Raises
    ------
    ConfigError
        If the salt seed cannot be resolved.

    """
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from hindsight.api.app import AppDependencies, create_app as _create_api_app
    from hindsight.api.lifespan import CollectorLifespan
    from hindsight.enrichment.enricher import Enricher
    from hindsight.ingestion.observability import IngestionEventLogger
    from hindsight.ingestion.pipeline import IngestionPipeline
    from hindsight.ingestion.stream import StreamIngestionListener
    from hindsight.storage.sql import SQLEventStorage

    seed = config.resolve_seed()
    engine = create_async_engine(config.database_url)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    geolocator = _open_geolocator(config)

    pipeline = IngestionPipeline(
        seed=seed,
        enricher=Enricher(geolocator),
        storage=SQLEventStorage(session_factory),
    )
    event_logger = IngestionEventLogger()
    listener = StreamIngestionListener(
        pipeline,
        host=config.stream_host,
        port=config.stream_port,
        event_logger=event_logger,
    )
    lifespan = CollectorLifespan(
        listener=listener,
        engine=engine,
        closeables=(geolocator,),
    )
    return _create_api_app(
        AppDependencies(pipeline=pipeline, lifespan=lifespan, event_logger=event_logger)
    )


def create_app() -> falcon.asgi.App:
    """Create the collector application from environment configuration."""
    return build_app(CollectorConfig.from_env())


def main() -> None:
    """Start the collector using Granian.

    Granian runs a single worker: the stream listener binds one port and
    SQLite tolerates a single writer.
    """
    from granian import Granian
    from granian.constants import Interfaces

    try:
        config = CollectorConfig.from_env()
    except ConfigError as exc:
        log_error(logger, "Invalid collector configuration: %s", exc)
        raise SystemExit(1) from exc

    normalized_level, invalid_level = configure_logging(config.log_level)
    if invalid_level:
        log_warning(
            logger,
            "Invalid HINDSIGHT_LOG_LEVEL %r, falling back to %s",
            config.log_level,
            normalized_level,
        )

    log_info(
        logger,
        "Starting Hindsight collector on %s:%d, stream on %s:%d (log_level=%s)",
        config.host,
        config.port,
        config.stream_host,
        config.stream_port,
        normalized_level,
    )

    server = Granian(
        "hindsight.runtime:create_app",
        address=config.host,
        port=config.port,
        interface=Interfaces.ASGI,
        factory=True,
        workers=1,
    )
    server.serve()


if __name__ == "__main__":
    main()
