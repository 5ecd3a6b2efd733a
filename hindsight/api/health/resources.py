"""Health probe resources for liveness and readiness checks.

``/health`` only proves the process answers HTTP. ``/ready`` additionally
consults a readiness probe, which the collector wires to the stream
listener so orchestrators hold traffic until both ingestion paths accept
events.

Usage
-----
Register health endpoints on the Falcon app::

    from hindsight.api.health.resources import HealthResource, ReadyResource

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(lambda: lifespan.ready))

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from falcon.asgi import Request, Response

__all__ = ["HealthResource", "ReadyResource"]


class HealthResource:
    """Liveness probe resource returning ``{"status": "ok"}``."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health requests.

        Parameters
        ----------
        _req
            Falcon request (unused).
        resp
            Falcon response populated with liveness status.

        """
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness probe resource.

    Responds ``200 {"status": "ready"}`` when the probe reports ready and
    ``503 {"status": "starting"}`` otherwise. Without a probe the service is
    always considered ready.
    """

    def __init__(self, probe: cabc.Callable[[], bool] | None = None) -> None:
        """Store the readiness probe."""
        self._probe = probe

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready requests.

        Parameters
        ----------
        _req
            Falcon request (unused).
        resp
            Falcon response populated with readiness status.

        """
        if self._probe is None or self._probe():
            resp.media = {"status": "ready"}
            resp.status = HTTPStatus.OK
            return
        resp.media = {"status": "starting"}
        resp.status = HTTPStatus.SERVICE_UNAVAILABLE
