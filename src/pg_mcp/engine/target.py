"""Connection target resolution.

A connect request names its database in one of three ways, resolved with this
precedence:

1. An explicit connection URL passed by the caller
2. The process-wide fallback URL (DATABASE_URL)
3. The explicit parameter set (host, database, user, password, port, ssl)

The parameter set is usable only when host, database, user and password are all
present. When nothing resolves, InvalidTargetError is raised before any network
I/O takes place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from .exceptions import InvalidTargetError

DEFAULT_PORT = 5432
REDACTION_MARKER = "***"


class TargetSource(str, Enum):
    """Where a resolved target came from."""

    URL = "url"
    ENVIRONMENT = "environment"
    PARAMETERS = "parameters"


@dataclass(frozen=True)
class PoolOptions:
    """Pool sizing and timeout settings applied to every connection.

    Attributes:
        max_size: Maximum number of physical connections per identifier
        idle_timeout: Seconds an idle connection is kept before being closed
        connect_timeout: Seconds allowed for establishing a connection
    """

    max_size: int = 5
    idle_timeout: float = 30.0
    connect_timeout: float = 10.0


@dataclass(frozen=True)
class ConnectionTarget:
    """A resolved database target: either a DSN or an explicit parameter set."""

    source: TargetSource
    dsn: str | None = None
    host: str | None = None
    port: int = DEFAULT_PORT
    database: str | None = None
    user: str | None = None
    password: str | None = field(default=None, repr=False)
    ssl: bool = False

    def __post_init__(self) -> None:
        """Validate that the target carries exactly one usable form."""
        if self.source in (TargetSource.URL, TargetSource.ENVIRONMENT):
            if not self.dsn:
                raise ValueError(f"{self.source.value} target requires 'dsn'")
        elif not (self.host and self.database and self.user and self.password):
            raise ValueError("parameter target requires host, database, user and password")

    def connect_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for the driver's pool constructor."""
        if self.dsn:
            return {"dsn": self.dsn}
        return {
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "user": self.user,
            "password": self.password,
            # Encrypt without certificate verification
            "ssl": "require" if self.ssl else False,
        }

    def describe(self) -> str:
        """Human-readable target with credentials redacted (safe for logs)."""
        if self.dsn:
            return redact_dsn(self.dsn)
        return f"postgresql://{self.user}:{REDACTION_MARKER}@{self.host}:{self.port}/{self.database}"


def redact_dsn(dsn: str) -> str:
    """Replace the password in a connection URL with a redaction marker.

    Example:
        redact_dsn("postgresql://bob:secret@db:5432/app")
        # "postgresql://bob:***@db:5432/app"
    """
    try:
        parts = urlsplit(dsn)
    except ValueError:
        return REDACTION_MARKER
    if parts.password is None:
        return dsn
    host = parts.hostname or ""
    if parts.port is not None:
        host = f"{host}:{parts.port}"
    netloc = f"{parts.username or ''}:{REDACTION_MARKER}@{host}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def resolve_target(
    *,
    url: str | None = None,
    fallback_url: str | None = None,
    host: str | None = None,
    port: int | None = None,
    database: str | None = None,
    user: str | None = None,
    password: str | None = None,
    ssl: bool = False,
) -> ConnectionTarget:
    """Resolve the caller's connection fields into a single target.

    Args:
        url: Explicit connection URL from the caller
        fallback_url: Process-wide fallback URL (DATABASE_URL)
        host, port, database, user, password, ssl: Explicit parameter set

    Returns:
        ConnectionTarget built from the highest-precedence usable form

    Raises:
        InvalidTargetError: If no form resolves
    """
    if url:
        return ConnectionTarget(source=TargetSource.URL, dsn=url)
    if fallback_url:
        return ConnectionTarget(source=TargetSource.ENVIRONMENT, dsn=fallback_url)
    if host and database and user and password:
        return ConnectionTarget(
            source=TargetSource.PARAMETERS,
            host=host,
            port=port if port is not None else DEFAULT_PORT,
            database=database,
            user=user,
            password=password,
            ssl=ssl,
        )
    raise InvalidTargetError()


__all__ = [
    "DEFAULT_PORT",
    "ConnectionTarget",
    "PoolOptions",
    "TargetSource",
    "redact_dsn",
    "resolve_target",
]
