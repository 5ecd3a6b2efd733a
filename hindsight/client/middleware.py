"""ASGI middleware capturing per-request telemetry.

``CaptureMiddleware`` wraps any ASGI application. It observes the response
messages the application sends (without altering them), then hands one
:class:`~hindsight.events.models.RawEvent` per HTTP request to a transport.
Delivery is fire-and-forget: the served request never waits for, or sees,
the collector.

Usage
-----
Wrap an application::

    transport = StreamTransport("127.0.0.1", 8765)
    app = CaptureMiddleware(app, transport, trust_proxy=True)

"""

from __future__ import annotations

import dataclasses as dc
import ipaddress
import time
import typing as typ

from hindsight.common.time import utcnow
from hindsight.events.models import RawEvent
from hindsight.logging import get_logger, log_exception

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from .transport import Transport

__all__ = ["UNKNOWN_IP", "CaptureMiddleware", "remote_ip"]

logger = get_logger(__name__)

Scope = typ.MutableMapping[str, typ.Any]
Message = typ.MutableMapping[str, typ.Any]
Receive = typ.Callable[[], typ.Awaitable[Message]]
Send = typ.Callable[[Message], typ.Awaitable[None]]
ASGIApp = typ.Callable[[Scope, Receive, Send], typ.Awaitable[None]]

UNKNOWN_IP = "0.0.0.0"  # noqa: S104 - placeholder address, never bound

_DEFAULT_PORTS = {"http": 80, "https": 443}


def _header(scope: Scope, name: bytes) -> str | None:
    for key, value in scope.get("headers") or ():
        if key.lower() == name:
            return value.decode("latin-1")
    return None


def _parse_ip(value: str | None) -> str | None:
    if not value:
        return None
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None


def remote_ip(scope: Scope, *, trust_proxy: bool = False) -> str:
    """Return the client address for an HTTP scope.

    With ``trust_proxy`` the first ``X-Forwarded-For`` entry wins when it
    parses as an address. Otherwise, or when it does not, the socket peer is
    used; :data:`UNKNOWN_IP` stands in when neither is usable.
    """
    if trust_proxy:
        forwarded = _header(scope, b"x-forwarded-for")
        if forwarded is not None:
            candidate = _parse_ip(forwarded.split(",", 1)[0])
            if candidate is not None:
                return candidate
    client = scope.get("client")
    if client:
        candidate = _parse_ip(client[0])
        if candidate is not None:
            return candidate
    return UNKNOWN_IP


def _request_host(scope: Scope) -> str:
    host = _header(scope, b"host")
    if host:
        return host
    server = scope.get("server")
    if not server:
        return ""
    name, port = server[0], server[1]
    if port is None or _DEFAULT_PORTS.get(scope.get("scheme", "http")) == port:
        return name
    return f"{name}:{port}"


def _request_path(scope: Scope) -> str:
    raw_path = scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else scope.get("path", "")
    query = scope.get("query_string") or b""
    if query:
        return f"{path}?{query.decode('latin-1')}"
    return path


@dc.dataclass(slots=True)
class _ResponseState:
    status_code: int | None = None
    bytes_written: int = 0


class CaptureMiddleware:
    """Record one event per HTTP request served by the wrapped application.

    Parameters
    ----------
    app
        The ASGI application to wrap.
    transport
        Where captured events are submitted.
    trust_proxy
        Take the client address from ``X-Forwarded-For`` when present.
    clock
        Source of the event timestamp; must return aware datetimes.

    """

    def __init__(
        self,
        app: ASGIApp,
        transport: Transport,
        *,
        trust_proxy: bool = False,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Wrap ``app`` and remember where events go."""
        self.app = app
        self._transport = transport
        self._trust_proxy = trust_proxy
        self._clock = clock

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Serve the request, observing status and body size on the way out."""
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started_at = self._clock()
        started = time.monotonic()
        state = _ResponseState()

        async def observe(message: Message) -> None:
            kind = message["type"]
            if kind == "http.response.start":
                state.status_code = message["status"]
            elif kind == "http.response.body":
                state.bytes_written += len(message.get("body", b""))
            await send(message)

        try:
            await self.app(scope, receive, observe)
        finally:
            # Without a response start there is no status worth reporting.
            if state.status_code is not None:
                elapsed_ms = int((time.monotonic() - started) * 1000)
                self._hand_off(self._build_event(scope, state, started_at, elapsed_ms))

    def _hand_off(self, event: RawEvent) -> None:
        try:
            self._transport.submit(event)
        except Exception as exc:  # noqa: BLE001 - never surfaces in the request
            log_exception(logger, "[client.capture.failed] submit raised", exc)

    def _build_event(
        self,
        scope: Scope,
        state: _ResponseState,
        started_at: dt.datetime,
        elapsed_ms: int,
    ) -> RawEvent:
        return RawEvent(
            time=started_at,
            ip=remote_ip(scope, trust_proxy=self._trust_proxy),
            host=_request_host(scope),
            method=scope.get("method", ""),
            path=_request_path(scope),
            user_agent=_header(scope, b"user-agent") or "",
            status_code=state.status_code or 0,
            bytes_written=state.bytes_written,
            duration_ms=elapsed_ms,
        )
