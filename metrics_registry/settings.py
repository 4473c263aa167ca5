"""
Registry and exposition configuration.

Environment variables control behavior:
- METRICS_PROCESS_COLLECTOR: Register the process collector in the default registry (default: true)
- METRICS_PROCESS_NAMESPACE: Prefix for process metric names (default: none)
- METRICS_DEFAULT_FORMAT: "text" or "protobuf" when no format is negotiated (default: text)
- METRICS_HOST / METRICS_PORT: Exposition server bind address (default: 127.0.0.1:9100)
"""

from __future__ import annotations

import os
from dataclasses import dataclass

FORMATS = ("text", "protobuf")


def _opt(name: str, default: str) -> str:
    """Get optional environment variable with default."""
    return os.getenv(name, default)


def _opt_bool(name: str, default: bool) -> bool:
    """Parse boolean environment variable."""
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def _opt_int(name: str, default: int) -> int:
    """Parse integer environment variable."""
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    try:
        return int(v)
    except ValueError:
        raise RuntimeError(f"Env var {name} must be an integer, got {v!r}")


@dataclass(frozen=True)
class Settings:
    """Registry and exposition configuration."""

    PROCESS_COLLECTOR: bool = True
    PROCESS_NAMESPACE: str = ""

    DEFAULT_FORMAT: str = "text"
    HOST: str = "127.0.0.1"
    PORT: int = 9100

    @staticmethod
    def load() -> Settings:
        """Load settings from environment variables."""
        fmt = _opt("METRICS_DEFAULT_FORMAT", "text").strip().lower()
        if fmt not in FORMATS:
            raise RuntimeError(f"METRICS_DEFAULT_FORMAT must be one of {FORMATS}, got {fmt!r}")
        return Settings(
            PROCESS_COLLECTOR=_opt_bool("METRICS_PROCESS_COLLECTOR", True),
            PROCESS_NAMESPACE=_opt("METRICS_PROCESS_NAMESPACE", ""),
            DEFAULT_FORMAT=fmt,
            HOST=_opt("METRICS_HOST", "127.0.0.1"),
            PORT=_opt_int("METRICS_PORT", 9100),
        )

    @staticmethod
    def load_process() -> Settings:
        """
        Load only the process collector settings.

        Used when the default registry is created; exposition settings keep
        their defaults, so a bad METRICS_DEFAULT_FORMAT or METRICS_PORT only
        fails the server and CLI.
        """
        return Settings(
            PROCESS_COLLECTOR=_opt_bool("METRICS_PROCESS_COLLECTOR", True),
            PROCESS_NAMESPACE=_opt("METRICS_PROCESS_NAMESPACE", ""),
        )
