"""Enrichment collaborators: user-agent classification and geo-IP lookup."""

from __future__ import annotations

from .enricher import UNKNOWN_COUNTRY, UNKNOWN_TIMEZONE, Enricher
from .geoip import (
    GeoLocator,
    GeoLookupError,
    LookupResult,
    MaxMindGeoLocator,
    NullGeoLocator,
)
from .useragent import Device, UserAgentInfo, decode_user_agent

__all__ = [
    "UNKNOWN_COUNTRY",
    "UNKNOWN_TIMEZONE",
    "Device",
    "Enricher",
    "GeoLocator",
    "GeoLookupError",
    "LookupResult",
    "MaxMindGeoLocator",
    "NullGeoLocator",
    "UserAgentInfo",
    "decode_user_agent",
]
