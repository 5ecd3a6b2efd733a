"""Capture client: ASGI middleware plus stream and HTTP delivery transports.

Usage
-----
Instrument an ASGI application::

    from hindsight.client import CaptureMiddleware, StreamTransport

    transport = StreamTransport("127.0.0.1", 8765)
    app = CaptureMiddleware(app, transport)

"""

from __future__ import annotations

from .errors import DeliveryError
from .middleware import UNKNOWN_IP, CaptureMiddleware, remote_ip
from .transport import (
    HTTPTransport,
    StreamTransport,
    Transport,
    encode_line,
    log_delivery_error,
    user_agent,
)

__all__ = [
    "UNKNOWN_IP",
    "CaptureMiddleware",
    "DeliveryError",
    "HTTPTransport",
    "StreamTransport",
    "Transport",
    "encode_line",
    "log_delivery_error",
    "user_agent",
]
