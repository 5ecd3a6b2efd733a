"""Mapping of normalized events onto storage-ready records."""

from __future__ import annotations

import typing as typ

from hindsight.events.models import EnrichedEvent

from .geoip import GeoLookupError, LookupResult
from .useragent import decode_user_agent

if typ.TYPE_CHECKING:
    from hindsight.events.models import NormalizedEvent

    from .geoip import GeoLocator

UNKNOWN_COUNTRY = "XX"
UNKNOWN_TIMEZONE = "UTC"

_UNKNOWN_LOCATION = LookupResult(
    country_code=UNKNOWN_COUNTRY,
    timezone=UNKNOWN_TIMEZONE,
)


class Enricher:
    """Attach device, browser, and location details to a keyed event.

    Lookup failures never reject an event: an unresolvable address is
    recorded with :data:`UNKNOWN_COUNTRY` and :data:`UNKNOWN_TIMEZONE`.
    """

    def __init__(self, geolocator: GeoLocator) -> None:
        """Store the geolocation collaborator."""
        self._geolocator = geolocator

    def locate(self, ip: str) -> LookupResult:
        """Return the location for ``ip`` or the unknown sentinels."""
        try:
            found = self._geolocator.geolocate(ip)
        except GeoLookupError:
            return _UNKNOWN_LOCATION
        return LookupResult(
            country_code=found.country_code or UNKNOWN_COUNTRY,
            timezone=found.timezone or UNKNOWN_TIMEZONE,
        )

    def enrich(self, event: NormalizedEvent, key: str) -> EnrichedEvent:
        """Build the storage record for ``event`` under visitor ``key``."""
        agent = decode_user_agent(event.user_agent)
        location = self.locate(event.ip)
        return EnrichedEvent(
            key=key,
            time=event.time,
            host=event.host,
            path=event.path,
            method=event.method,
            device=agent.device.value,
            browser=agent.browser,
            os=agent.os,
            country_code=location.country_code,
            time_zone=location.timezone,
            status_code=event.status_code,
            duration_ms=event.duration_ms,
            bytes_written=event.bytes_written,
        )
