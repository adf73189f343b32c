"""
Relay configuration.

Sources (priority order):
    1. CLI flags (applied by the caller with dataclasses.replace)
    2. Environment: WORMDROP_HOST, WORMDROP_PORT (or PORT), WORMDROP_MAX_SIZE,
       WORMDROP_TTL_MS, WORMDROP_SWEEP_INTERVAL_MS
    3. Defaults from wormdrop/__init__.py
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from wormdrop import (
    RELAY_DEFAULT_HOST,
    RELAY_DEFAULT_PORT,
    RELAY_MAX_SIZE,
    RELAY_SWEEP_INTERVAL_MS,
    RELAY_TTL_MS,
)


def _env_int(name: str, default: int, fallback: str | None = None) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw and fallback:
        name, raw = fallback, os.environ.get(fallback, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class RelayConfig:
    """Everything needed to run a relay. All limits are independent."""

    host: str = RELAY_DEFAULT_HOST
    port: int = RELAY_DEFAULT_PORT
    max_size: int = RELAY_MAX_SIZE
    ttl_ms: int = RELAY_TTL_MS
    sweep_interval_ms: int = RELAY_SWEEP_INTERVAL_MS

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 65535:
            raise ValueError(f"Invalid port: {self.port}")
        if self.max_size < 0:
            raise ValueError("max_size must not be negative")
        if self.ttl_ms <= 0:
            raise ValueError("ttl_ms must be positive")
        if self.sweep_interval_ms <= 0:
            raise ValueError("sweep_interval_ms must be positive")

    @classmethod
    def from_env(cls) -> RelayConfig:
        """Build a config from environment variables, defaults elsewhere."""
        return cls(
            host=os.environ.get("WORMDROP_HOST", "").strip() or RELAY_DEFAULT_HOST,
            port=_env_int("WORMDROP_PORT", RELAY_DEFAULT_PORT, fallback="PORT"),
            max_size=_env_int("WORMDROP_MAX_SIZE", RELAY_MAX_SIZE),
            ttl_ms=_env_int("WORMDROP_TTL_MS", RELAY_TTL_MS),
            sweep_interval_ms=_env_int(
                "WORMDROP_SWEEP_INTERVAL_MS", RELAY_SWEEP_INTERVAL_MS
            ),
        )
