"""Collector configuration loaded from environment variables.

Usage
-----
Load the configuration and resolve the salt seed::

    config = CollectorConfig.from_env()
    seed = config.resolve_seed()

The salt seed is secret. When ``HINDSIGHT_SALT_SEED`` is unset the collector
generates one on first start and persists it to ``HINDSIGHT_SALT_SEED_FILE``
so visitor keys stay stable across restarts within a day.
"""

from __future__ import annotations

import base64
import dataclasses as dc
import os
import secrets
from pathlib import Path

from hindsight.errors import ConfigError
from hindsight.logging import get_logger, log_info

__all__ = ["CollectorConfig", "generate_seed", "load_or_create_seed"]

logger = get_logger(__name__)

_MIN_PORT = 1
_MAX_PORT = 65535
_SEED_BYTES = 16


def _env(name: str, default: str) -> str:
    raw = os.environ.get(name, "").strip()
    return raw or default


def _parse_port(env_var: str, default: int) -> int:
    raw = os.environ.get(env_var, "").strip()
    if not raw:
        return default
    try:
        port = int(raw)
    except ValueError as exc:
        raise ConfigError.invalid_port(env_var, raw) from exc
    if not (_MIN_PORT <= port <= _MAX_PORT):
        raise ConfigError.invalid_port(env_var, raw)
    return port


def generate_seed() -> str:
    """Return a fresh random seed as unpadded URL-safe base64."""
    raw = secrets.token_bytes(_SEED_BYTES)
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def load_or_create_seed(path: Path) -> str:
    """Read the seed stored at ``path``, creating it on first use.

    Raises
    ------
    ConfigError
        If the file is empty or cannot be read or written.

    """
    try:
        if path.exists():
            seed = path.read_text(encoding="utf-8").strip()
            if not seed:
                raise ConfigError.empty_seed(path)
            return seed
        seed = generate_seed()
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("x", encoding="utf-8") as handle:
            handle.write(f"{seed}\n")
        path.chmod(0o600)
    except OSError as exc:
        raise ConfigError.seed_unavailable(path, exc) from exc
    log_info(logger, "Generated new salt seed at %s", path)
    return seed


@dc.dataclass(frozen=True, slots=True)
class CollectorConfig:
    """Runtime configuration for the collector.

    Attributes
    ----------
    host
        HTTP bind address.
    port
        HTTP listen port.
    stream_host
        Bind address of the persistent stream listener.
    stream_port
        Listen port of the persistent stream listener.
    database_url
        SQLAlchemy async database URL.
    geoip_database
        Optional path to a MaxMind City database; without it every event is
        attributed to the unknown location.
    salt_seed
        Explicit salt seed; overrides ``salt_seed_file`` when set.
    salt_seed_file
        Where a generated seed is persisted.
    log_level
        Requested log level name.

    """

    host: str = "127.0.0.1"
    port: int = 8080
    stream_host: str = "127.0.0.1"
    stream_port: int = 8765
    database_url: str = "sqlite+aiosqlite:///hindsight.db"
    geoip_database: Path | None = None
    salt_seed: str | None = dc.field(default=None, repr=False)
    salt_seed_file: Path = Path("hindsight.seed")
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> CollectorConfig:
        """Create configuration from ``HINDSIGHT_*`` environment variables.

        Raises
        ------
        ConfigError
            If a port variable is not an integer in 1-65535.

        """
        defaults = cls()
        geoip_raw = os.environ.get("HINDSIGHT_GEOIP_DATABASE", "").strip()
        seed_raw = os.environ.get("HINDSIGHT_SALT_SEED", "").strip()
        return cls(
            host=_env("HINDSIGHT_HOST", defaults.host),
            port=_parse_port("HINDSIGHT_PORT", defaults.port),
            stream_host=_env("HINDSIGHT_STREAM_HOST", defaults.stream_host),
            stream_port=_parse_port("HINDSIGHT_STREAM_PORT", defaults.stream_port),
            database_url=_env("HINDSIGHT_DATABASE_URL", defaults.database_url),
            geoip_database=Path(geoip_raw) if geoip_raw else None,
            salt_seed=seed_raw or None,
            salt_seed_file=Path(
                _env("HINDSIGHT_SALT_SEED_FILE", str(defaults.salt_seed_file))
            ),
            log_level=_env("HINDSIGHT_LOG_LEVEL", defaults.log_level),
        )

    def resolve_seed(self) -> str:
        """Return the configured seed, loading or creating the seed file."""
        if self.salt_seed is not None:
            return self.salt_seed
        return load_or_create_seed(self.salt_seed_file)
