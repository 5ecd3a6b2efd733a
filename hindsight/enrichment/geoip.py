"""Geo-IP lookup collaborators.

The collector depends on geolocation only through :class:`GeoLocator`.
:class:`MaxMindGeoLocator` reads a GeoLite2 City database with ``maxminddb``;
the database is opened once by the caller at startup rather than lazily on
first lookup, so a missing or corrupt file aborts startup instead of failing
ingestion later.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import maxminddb

if typ.TYPE_CHECKING:
    from pathlib import Path


@dc.dataclass(frozen=True, slots=True)
class LookupResult:
    """Country and timezone for an address."""

    country_code: str
    timezone: str


class GeoLookupError(LookupError):
    """Raised when an address cannot be geolocated."""

    @classmethod
    def unknown(cls, ip: str) -> GeoLookupError:
        """Return an error for an address absent from the database."""
        return cls(f"unknown IP address {ip!r}")

    @classmethod
    def unavailable(cls) -> GeoLookupError:
        """Return an error used when no database is configured."""
        return cls("no geo-IP database configured")


class GeoLocator(typ.Protocol):
    """Interface for resolving an address to country and timezone."""

    def geolocate(self, ip: str) -> LookupResult:
        """Return location details or raise :class:`GeoLookupError`."""
        ...


class NullGeoLocator:
    """Locator used when no database is configured; every lookup fails."""

    def geolocate(self, ip: str) -> LookupResult:
        """Raise :class:`GeoLookupError` unconditionally."""
        del ip
        raise GeoLookupError.unavailable()

    def close(self) -> None:
        """Release nothing."""


def _nested_str(record: dict[str, typ.Any], section: str, key: str) -> str:
    value = record.get(section)
    if not isinstance(value, dict):
        return ""
    found = value.get(key)
    return found if isinstance(found, str) else ""


class MaxMindGeoLocator:
    """:class:`GeoLocator` backed by a MaxMind GeoLite2 City database."""

    def __init__(self, reader: maxminddb.Reader) -> None:
        """Wrap an open ``maxminddb`` reader."""
        self._reader = reader

    @classmethod
    def open(cls, path: Path | str) -> MaxMindGeoLocator:
        """Load the database at ``path``.

        Raises
        ------
        OSError
            If the file cannot be read.
        maxminddb.InvalidDatabaseError
            If the file is not a MaxMind database.

        """
        return cls(maxminddb.open_database(str(path)))

    def geolocate(self, ip: str) -> LookupResult:
        """Return the country code and timezone recorded for ``ip``."""
        try:
            record = self._reader.get(ip)
        except ValueError as exc:
            raise GeoLookupError.unknown(ip) from exc
        if not isinstance(record, dict):
            raise GeoLookupError.unknown(ip)
        return LookupResult(
            country_code=_nested_str(record, "country", "iso_code"),
            timezone=_nested_str(record, "location", "time_zone"),
        )

    def close(self) -> None:
        """Close the underlying database reader."""
        self._reader.close()
