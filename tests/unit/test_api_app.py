"""Unit tests for the collector app factory, health probes, and lifespan."""

from __future__ import annotations

import asyncio
import typing as typ

import falcon.asgi
import falcon.testing
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from hindsight.api.app import AppDependencies, create_app
from hindsight.api.health.resources import ReadyResource
from hindsight.api.lifespan import CollectorLifespan
from hindsight.enrichment import Enricher, NullGeoLocator
from hindsight.ingestion import IngestionPipeline, StreamIngestionListener
from hindsight.storage import SQLEventStorage
from tests.helpers.event_builders import EVENT_TIME, TEST_SEED, wire_line

if typ.TYPE_CHECKING:
    from pathlib import Path


class _Closeable:
    def __init__(self) -> None:
        self.closed = False

    def close(self) -> None:
        self.closed = True


def test_health_only_app_has_no_ingest_route() -> None:
    """Without a pipeline only the probes are served."""
    client = falcon.testing.TestClient(create_app())

    assert client.simulate_get("/health").json == {"status": "ok"}
    assert client.simulate_get("/ready").json == {"status": "ready"}
    assert client.simulate_post("/api/ingest").status_code == 404


@pytest.mark.parametrize(
    ("ready", "status_code", "body"),
    [
        (True, 200, {"status": "ready"}),
        (False, 503, {"status": "starting"}),
    ],
)
def test_ready_follows_probe(
    *, ready: bool, status_code: int, body: dict[str, str]
) -> None:
    """The readiness probe decides between 200 and 503."""
    app = falcon.asgi.App()
    app.add_route("/ready", ReadyResource(lambda: ready))

    result = falcon.testing.TestClient(app).simulate_get("/ready")

    assert result.status_code == status_code
    assert result.json == body


def test_ready_is_503_before_lifespan_startup() -> None:
    """/ready reports starting until the lifespan has run."""
    lifespan = CollectorLifespan()
    client = falcon.testing.TestClient(create_app(AppDependencies(lifespan=lifespan)))

    assert client.simulate_get("/ready").status_code == 503
    assert client.simulate_get("/health").status_code == 200


@pytest.mark.asyncio
async def test_lifespan_runs_stream_listener_and_storage(tmp_path: Path) -> None:
    """Startup creates the table and starts the listener; shutdown releases all."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'life.db'}")
    storage = SQLEventStorage(async_sessionmaker(engine, expire_on_commit=False))
    pipeline = IngestionPipeline(
        seed=TEST_SEED, enricher=Enricher(NullGeoLocator()), storage=storage
    )
    listener = StreamIngestionListener(pipeline, host="127.0.0.1", port=0)
    geolocator = _Closeable()
    lifespan = CollectorLifespan(
        listener=listener, engine=engine, closeables=(geolocator,)
    )
    app = create_app(AppDependencies(pipeline=pipeline, lifespan=lifespan))

    async with falcon.testing.ASGIConductor(app) as conductor:
        assert (await conductor.simulate_get("/ready")).status_code == 200

        host, port = listener.address
        _, writer = await asyncio.open_connection(host, port)
        writer.write(wire_line(Path="/via-stream"))
        await writer.drain()
        async with asyncio.timeout(2):
            while not await storage.fetch(EVENT_TIME, EVENT_TIME):
                await asyncio.sleep(0.01)
        writer.close()

        posted = await conductor.simulate_post(
            "/api/ingest",
            body=wire_line(Path="/via-http"),
            headers={"Content-Type": "application/json"},
        )
        assert posted.json["Ingested"] == 1
        paths = sorted(e.path for e in await storage.fetch(EVENT_TIME, EVENT_TIME))
        assert paths == ["/via-http", "/via-stream"]

    assert not lifespan.ready
    assert listener.open_connections == 0
    assert geolocator.closed
