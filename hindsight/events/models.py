"""Event shapes shared by the capture client and the collector.

``RawEvent`` is the wire representation: a msgspec struct whose snake_case
attributes are renamed to the nine keys producers and the collector agree on.
``NormalizedEvent`` is what survives validation, and ``EnrichedEvent`` is the
anonymized, storage-ready record.
"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt

import msgspec

_WIRE_NAMES: dict[str, str] = {
    "time": "Time",
    "ip": "IP",
    "host": "Host",
    "method": "Method",
    "path": "Path",
    "user_agent": "UserAgent",
    "status_code": "StatusCode",
    "bytes_written": "BytesWritten",
    "duration_ms": "Duration",
}

WIRE_FIELDS: tuple[str, ...] = tuple(_WIRE_NAMES.values())


class RawEvent(msgspec.Struct, kw_only=True, rename=_WIRE_NAMES):
    """Telemetry for one served request, as sent to the collector.

    Attributes
    ----------
    time : datetime.datetime
        Timezone-aware start of the request, encoded as RFC 3339.
    ip : str
        Client address.
    host : str
        Requested host name.
    method : str
        HTTP method.
    path : str
        Request path including the query string.
    user_agent : str
        Raw ``User-Agent`` header value.
    status_code : int
        Final response status; the last value set wins.
    bytes_written : int
        Sum of all response body writes.
    duration_ms : int
        Whole milliseconds between request start and completion, sent as
        ``Duration``.

    """

    time: dt.datetime
    ip: str
    host: str
    method: str
    path: str
    user_agent: str
    status_code: int = 0
    bytes_written: int = 0
    duration_ms: int = 0


@dc.dataclass(frozen=True, slots=True)
class NormalizedEvent:
    """Schema-checked event with ranges enforced and ``time`` in UTC."""

    time: dt.datetime
    ip: str
    host: str
    method: str
    path: str
    user_agent: str
    status_code: int
    bytes_written: int
    duration_ms: int


@dc.dataclass(frozen=True, slots=True)
class NameAndVersion:
    """Product name and version pair decoded from a user agent."""

    name: str = ""
    version: str = ""

    def __str__(self) -> str:
        """Render as ``"name version"``."""
        return f"{self.name} {self.version}"


@dc.dataclass(frozen=True, slots=True)
class EnrichedEvent:
    """Anonymized, storage-ready event.

    ``key`` replaces the client address, host, and user agent; nothing in the
    record allows recovering them without the salt seed.
    """

    key: str
    time: dt.datetime
    host: str
    path: str
    method: str
    device: str
    browser: NameAndVersion
    os: NameAndVersion
    country_code: str
    time_zone: str
    status_code: int
    duration_ms: int
    bytes_written: int
