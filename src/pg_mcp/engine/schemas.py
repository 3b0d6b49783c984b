"""Schema listing for a registered connection."""

from __future__ import annotations

from dataclasses import dataclass

from .exceptions import BackendError
from .registry import ConnectionEntry

SYSTEM_SCHEMAS: tuple[str, ...] = ("pg_catalog", "information_schema", "pg_toast")

LIST_SCHEMAS_QUERY = """
    SELECT schema_name,
           schema_owner
    FROM information_schema.schemata
    WHERE schema_name NOT IN ('pg_catalog', 'information_schema', 'pg_toast')
    ORDER BY schema_name
"""


@dataclass(frozen=True)
class SchemaInfo:
    """A user schema and its owner."""

    name: str
    owner: str


async def list_schemas(entry: ConnectionEntry) -> list[SchemaInfo]:
    """Return the non-system schemas visible to the connection, ordered by name.

    Raises:
        BackendError: If the catalog query fails
    """
    try:
        rows = await entry.pool.fetch(LIST_SCHEMAS_QUERY)
    except Exception as e:
        raise BackendError(str(e)) from e
    return [SchemaInfo(name=row["schema_name"], owner=row["schema_owner"]) for row in rows]


__all__ = ["LIST_SCHEMAS_QUERY", "SYSTEM_SCHEMAS", "SchemaInfo", "list_schemas"]
