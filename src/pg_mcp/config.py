"""Server settings read from environment variables.

Environment Variables:
    DATABASE_URL: Fallback connection URL used when pg_connect gets no 'url'
    PG_MCP_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL (default: INFO)
    PG_MCP_POOL_MAX_SIZE: Physical connections per identifier (default: 5, range 1-100)
    PG_MCP_POOL_IDLE_TIMEOUT: Idle connection lifetime in seconds (default: 30, range 1-3600)
    PG_MCP_CONNECT_TIMEOUT: Connection timeout in seconds (default: 10, range 1-300)

Invalid numeric values fall back to their defaults; out-of-range values are
clamped.
"""

import logging
import os
from collections.abc import Mapping

from pydantic import BaseModel, Field

from .engine.target import PoolOptions

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class Settings(BaseModel):
    """Process-wide server configuration."""

    database_url: str | None = Field(default=None, description="Fallback connection URL")
    log_level: str = Field(default="INFO", description="Root log level")
    pool_max_size: int = Field(default=5, ge=1, le=100)
    pool_idle_timeout: int = Field(default=30, ge=1, le=3600)
    connect_timeout: int = Field(default=10, ge=1, le=300)

    def pool_options(self) -> PoolOptions:
        return PoolOptions(
            max_size=self.pool_max_size,
            idle_timeout=float(self.pool_idle_timeout),
            connect_timeout=float(self.connect_timeout),
        )


def _read_int(env: Mapping[str, str], name: str, default: int, low: int, high: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid {name} '{raw}', using default {default}")
        return default
    return max(low, min(high, value))


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from the environment (os.environ when env is None)."""
    env = os.environ if env is None else env

    log_level = env.get("PG_MCP_LOG_LEVEL", "INFO").upper()
    if log_level not in VALID_LOG_LEVELS:
        logger.warning(
            f"Invalid PG_MCP_LOG_LEVEL '{log_level}'. "
            f"Valid levels: {', '.join(sorted(VALID_LOG_LEVELS))}. Using INFO."
        )
        log_level = "INFO"

    return Settings(
        database_url=env.get("DATABASE_URL") or None,
        log_level=log_level,
        pool_max_size=_read_int(env, "PG_MCP_POOL_MAX_SIZE", 5, 1, 100),
        pool_idle_timeout=_read_int(env, "PG_MCP_POOL_IDLE_TIMEOUT", 30, 1, 3600),
        connect_timeout=_read_int(env, "PG_MCP_CONNECT_TIMEOUT", 10, 1, 300),
    )


__all__ = ["Settings", "VALID_LOG_LEVELS", "load_settings"]
