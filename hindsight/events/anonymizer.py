"""Daily-rotating visitor keys.

A visitor key hashes the host, client address, and user agent together with a
salt derived from the configured seed and the UTC epoch day of the event.
Keys are stable for one visitor within a day and unlinkable across days
without the seed.
"""

from __future__ import annotations

import base64
import functools
import hashlib
import typing as typ

from hindsight.common.time import SECONDS_PER_DAY, unix_seconds

if typ.TYPE_CHECKING:
    import datetime as dt

    from .models import NormalizedEvent


def day_bucket(when: dt.datetime) -> int:
    """Return the number of whole UTC days between the epoch and ``when``."""
    return unix_seconds(when) // SECONDS_PER_DAY


@functools.lru_cache(maxsize=16)
def _salt_for_day(seed: str, day: int) -> bytes:
    return hashlib.sha256(f"{seed}:{day}".encode()).digest()


def daily_salt(seed: str, when: dt.datetime) -> bytes:
    """Return the salt for the day bucket containing ``when``."""
    return _salt_for_day(seed, day_bucket(when))


def visitor_key(
    seed: str,
    *,
    host: str,
    ip: str,
    user_agent: str,
    when: dt.datetime,
) -> str:
    """Derive the opaque per-day visitor key.

    Parameters
    ----------
    seed
        Long-lived secret from configuration.
    host, ip, user_agent
        Identity fields of the request.
    when
        Timezone-aware event time selecting the day bucket.

    Returns
    -------
    str
        43 characters of unpadded URL-safe base64 over a SHA-256 digest.

    """
    digest = hashlib.sha256()
    digest.update(f"{host}\n{ip}\n{user_agent}\n".encode())
    digest.update(daily_salt(seed, when))
    return base64.urlsafe_b64encode(digest.digest()).rstrip(b"=").decode("ascii")


def event_key(seed: str, event: NormalizedEvent) -> str:
    """Return the visitor key for a normalized event."""
    return visitor_key(
        seed,
        host=event.host,
        ip=event.ip,
        user_agent=event.user_agent,
        when=event.time,
    )


__all__ = ["daily_salt", "day_bucket", "event_key", "visitor_key"]
