"""Collector configuration errors."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from pathlib import Path


class ConfigError(RuntimeError):
    """Raised when collector configuration is invalid or unusable."""

    @classmethod
    def invalid_port(cls, env_var: str, raw: str) -> ConfigError:
        """Return an error for a port outside 1-65535 or not an integer."""
        return cls(f"{env_var} must be an integer in 1-65535, got: {raw!r}")

    @classmethod
    def empty_seed(cls, path: Path) -> ConfigError:
        """Return an error for a seed file that exists but holds no seed."""
        return cls(f"salt seed file {path} is empty")

    @classmethod
    def seed_unavailable(cls, path: Path, exc: OSError) -> ConfigError:
        """Return an error for a seed file that cannot be read or written."""
        return cls(f"salt seed file {path} is unusable: {exc}")


__all__ = ["ConfigError"]
