"""Exception hierarchy for the PostgreSQL gateway.

Every failure surfaced to an MCP caller derives from PgMcpError so the tool
layer can convert it into a labeled failure payload.

Exception Hierarchy:
    PgMcpError (base)
    ├── ConnectionExistsError (identifier already registered)
    ├── ConnectionNotFoundError (identifier not registered)
    ├── InvalidTargetError (no usable connection target)
    ├── ReadOnlyViolationError (mutating statement on read-only connection)
    ├── BackendError (any failure reported by the database layer)
    └── RegistryClosedError (connect after shutdown began)

Example:
    >>> try:
    ...     entry = registry.get("analytics")
    ... except ConnectionNotFoundError as e:
    ...     print(e.error_type, e)
"""

from __future__ import annotations


class PgMcpError(Exception):
    """Base exception for all gateway errors.

    Attributes:
        error_type: Stable label reported to callers in failure payloads
    """

    error_type: str = "Error"


class ConnectionExistsError(PgMcpError):
    """A connect request named an identifier that is already in use."""

    error_type = "AlreadyExists"

    def __init__(self, connection_id: str) -> None:
        self.connection_id = connection_id
        super().__init__(
            f"Connection '{connection_id}' already exists. Disconnect first to reconnect."
        )


class ConnectionNotFoundError(PgMcpError):
    """The requested connection identifier is not registered."""

    error_type = "NotFound"

    def __init__(self, connection_id: str) -> None:
        self.connection_id = connection_id
        super().__init__(
            f"Connection '{connection_id}' not found. Connect first using pg_connect."
        )


class InvalidTargetError(PgMcpError):
    """No connection URL, fallback URL or complete parameter set was supplied."""

    error_type = "InvalidTarget"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or (
                "Either 'url', DATABASE_URL environment variable, or all of "
                "'host', 'database', 'user', 'password' must be provided."
            )
        )


class ReadOnlyViolationError(PgMcpError):
    """A blocked statement was submitted on a read-only connection.

    Attributes:
        connection_id: Connection the statement was submitted on
        keyword: Leading keyword that triggered the block
    """

    error_type = "ReadOnlyViolation"

    def __init__(self, connection_id: str, keyword: str | None = None) -> None:
        self.connection_id = connection_id
        self.keyword = keyword
        detail = f" ({keyword} statement)" if keyword else ""
        super().__init__(
            f"Query blocked{detail}: connection '{connection_id}' is in READ-ONLY mode. "
            "INSERT, UPDATE, DELETE, and DDL operations are not allowed."
        )


class BackendError(PgMcpError):
    """The database layer reported a failure.

    The original driver exception is preserved as ``__cause__``.
    """

    error_type = "BackendError"


class RegistryClosedError(PgMcpError):
    """The registry is shutting down and accepts no new connections."""

    error_type = "ShuttingDown"

    def __init__(self) -> None:
        super().__init__("Server is shutting down; new connections are not accepted.")


__all__ = [
    "BackendError",
    "ConnectionExistsError",
    "ConnectionNotFoundError",
    "InvalidTargetError",
    "PgMcpError",
    "ReadOnlyViolationError",
    "RegistryClosedError",
]
