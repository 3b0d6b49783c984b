"""Connection registry: caller-named pooled connections and their lifecycle.

The registry maps caller-chosen identifiers to live connection pools. It is
owned by the server lifespan (see server.app_lifespan) and shared by every tool
through AppContext.

Concurrency:
    - Registry mutations run under an asyncio.Lock.
    - A connect reserves its identifier before any network I/O, so a second
      connect on the same identifier fails with ConnectionExistsError even while
      the first is still probing. Connects on different identifiers proceed
      concurrently.
    - Pools are closed outside the lock; closing waits for in-flight queries.

Lifecycle:
    connect -> (probe ok) -> registered -> disconnect | shutdown_all -> closed
    connect -> (probe fails) -> pool closed, BackendError raised
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

import asyncpg

from .exceptions import (
    BackendError,
    ConnectionExistsError,
    ConnectionNotFoundError,
    RegistryClosedError,
)
from .target import ConnectionTarget, PoolOptions

logger = logging.getLogger(__name__)

PROBE_QUERY = "SELECT version()"


class ConnectionPool(Protocol):
    """Driver capabilities the gateway relies on (satisfied by asyncpg.Pool)."""

    async def fetch(self, query: str, *args: Any) -> list[Any]: ...

    async def fetchval(self, query: str, *args: Any) -> Any: ...

    def acquire(self) -> Any: ...

    async def close(self) -> None: ...

    def terminate(self) -> None: ...


PoolFactory = Callable[[ConnectionTarget, PoolOptions], Awaitable[ConnectionPool]]


async def create_asyncpg_pool(target: ConnectionTarget, options: PoolOptions) -> ConnectionPool:
    """Create an asyncpg pool for the target.

    Pool settings:
        - min_size: 1
        - max_size: options.max_size
        - max_inactive_connection_lifetime: options.idle_timeout
        - timeout (connect): options.connect_timeout
    """
    pool: ConnectionPool = await asyncpg.create_pool(
        **target.connect_kwargs(),
        min_size=1,
        max_size=options.max_size,
        max_inactive_connection_lifetime=options.idle_timeout,
        timeout=options.connect_timeout,
    )
    return pool


@dataclass(frozen=True)
class ConnectionEntry:
    """A registered connection.

    Attributes:
        identifier: Caller-chosen connection ID
        pool: Exclusively owned connection pool
        read_only: Whether mutating statements are blocked (fixed at connect time)
        server_version: Result of the liveness probe
        target: Redacted description of the target
    """

    identifier: str
    pool: ConnectionPool = field(repr=False)
    read_only: bool
    server_version: str
    target: str

    def summary(self) -> ConnectionSummary:
        return ConnectionSummary(
            identifier=self.identifier,
            read_only=self.read_only,
            server_version=self.server_version,
        )


@dataclass(frozen=True)
class ConnectionSummary:
    """Confirmation returned by a successful connect."""

    identifier: str
    read_only: bool
    server_version: str


class ConnectionRegistry:
    """Lock-guarded registry of pooled connections keyed by identifier.

    Usage:
        registry = ConnectionRegistry(pool_options=PoolOptions(max_size=5))
        summary = await registry.connect("main", target, read_only=True)
        entry = registry.get("main")
        await registry.disconnect("main")
        await registry.shutdown_all()
    """

    def __init__(
        self,
        *,
        pool_options: PoolOptions | None = None,
        pool_factory: PoolFactory | None = None,
    ) -> None:
        self.pool_options = pool_options or PoolOptions()
        self._pool_factory: PoolFactory = pool_factory or create_asyncpg_pool
        self._entries: dict[str, ConnectionEntry] = {}
        self._pending: set[str] = set()
        self._lock = asyncio.Lock()
        self._closed = False

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def closed(self) -> bool:
        return self._closed

    async def connect(
        self,
        connection_id: str,
        target: ConnectionTarget,
        *,
        read_only: bool = True,
    ) -> ConnectionSummary:
        """Open a pool for the target, probe it, and register it.

        Args:
            connection_id: Caller-chosen unique identifier
            target: Resolved connection target
            read_only: Block mutating statements on this connection

        Returns:
            ConnectionSummary with the server version

        Raises:
            ConnectionExistsError: If the identifier is registered or connecting
            RegistryClosedError: If shutdown has begun
            BackendError: If the pool cannot be opened or the probe fails
        """
        async with self._lock:
            if self._closed:
                raise RegistryClosedError()
            if connection_id in self._entries or connection_id in self._pending:
                raise ConnectionExistsError(connection_id)
            self._pending.add(connection_id)

        try:
            pool, server_version = await self._open_pool(connection_id, target)

            try:
                async with self._lock:
                    registered = not self._closed
                    if registered:
                        entry = ConnectionEntry(
                            identifier=connection_id,
                            pool=pool,
                            read_only=read_only,
                            server_version=server_version,
                            target=target.describe(),
                        )
                        self._entries[connection_id] = entry
            except BaseException:
                # Cancelled while waiting for the lock: the pool is not registered
                pool.terminate()
                raise

            if not registered:
                await self._close_quietly(connection_id, pool)
                raise RegistryClosedError()
        finally:
            self._pending.discard(connection_id)

        mode = " (read-only)" if read_only else ""
        logger.info(f"Connected '{connection_id}' to {entry.target}{mode}")
        return entry.summary()

    async def disconnect(self, connection_id: str) -> None:
        """Remove the entry and close its pool.

        Raises:
            ConnectionNotFoundError: If the identifier is not registered
            BackendError: If the pool fails to close cleanly (it is terminated)
        """
        async with self._lock:
            entry = self._entries.pop(connection_id, None)
        if entry is None:
            raise ConnectionNotFoundError(connection_id)

        try:
            await entry.pool.close()
        except Exception as e:
            entry.pool.terminate()
            raise BackendError(f"Failed to close connection '{connection_id}': {e}") from e

        logger.info(f"Disconnected '{connection_id}'")

    def get(self, connection_id: str) -> ConnectionEntry:
        """Look up a registered connection.

        Raises:
            ConnectionNotFoundError: If the identifier is not registered
        """
        entry = self._entries.get(connection_id)
        if entry is None:
            raise ConnectionNotFoundError(connection_id)
        return entry

    async def shutdown_all(self) -> None:
        """Close every pool and refuse further connects.

        Best effort: close failures are logged, never raised.
        """
        async with self._lock:
            self._closed = True
            entries = list(self._entries.values())
            self._entries.clear()

        if not entries:
            return

        await asyncio.gather(
            *(self._close_quietly(entry.identifier, entry.pool) for entry in entries)
        )
        logger.info(f"Closed {len(entries)} connection(s) on shutdown")

    async def _open_pool(
        self, connection_id: str, target: ConnectionTarget
    ) -> tuple[ConnectionPool, str]:
        """Create the pool and run the liveness probe; never leaks a pool."""
        logger.debug(f"Opening pool '{connection_id}' for {target.describe()}")
        try:
            pool = await self._pool_factory(target, self.pool_options)
        except Exception as e:
            raise BackendError(
                f"Failed to connect '{connection_id}' to {target.describe()}: {e}"
            ) from e

        try:
            server_version = await pool.fetchval(PROBE_QUERY)
        except Exception as e:
            await self._close_quietly(connection_id, pool)
            raise BackendError(f"Connection probe failed for '{connection_id}': {e}") from e
        except BaseException:
            pool.terminate()
            raise

        return pool, str(server_version)

    async def _close_quietly(self, connection_id: str, pool: ConnectionPool) -> None:
        try:
            await pool.close()
        except Exception as e:
            logger.warning(f"Error closing pool '{connection_id}': {e}")
            pool.terminate()


__all__ = [
    "PROBE_QUERY",
    "ConnectionEntry",
    "ConnectionPool",
    "ConnectionRegistry",
    "ConnectionSummary",
    "PoolFactory",
    "create_asyncpg_pool",
]
