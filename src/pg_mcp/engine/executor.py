"""Query execution against a registered connection.

The executor applies the read-only guard, runs the statement on a pooled
connection and shapes the outcome as one of two result variants, chosen by the
command verb the backend reports for the executed statement:

    - RowsResult: the backend reported SELECT; rows and field metadata returned
    - CommandResult: anything else; command verb and affected row count returned

Statements are prepared, so positional parameters use PostgreSQL's $1, $2 syntax.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from .classifier import classify
from .exceptions import BackendError, ReadOnlyViolationError
from .registry import ConnectionEntry

logger = logging.getLogger(__name__)

ROW_COMMANDS = frozenset({"SELECT"})


@dataclass(frozen=True)
class FieldInfo:
    """Result column metadata."""

    name: str
    type_id: int


@dataclass
class RowsResult:
    """Row-returning outcome.

    Attributes:
        rows: Result rows as dicts keyed by column name
        row_count: Number of rows returned
        fields: Column names and type OIDs in result order
    """

    rows: list[dict[str, Any]] = field(default_factory=list)
    row_count: int = 0
    fields: list[FieldInfo] = field(default_factory=list)


@dataclass
class CommandResult:
    """Non-row outcome (DML, DDL, utility commands).

    Attributes:
        command: Command verb reported by the backend (e.g. "INSERT")
        row_count: Rows affected, or None when the command reports no count
    """

    command: str
    row_count: int | None = None


QueryResult = RowsResult | CommandResult


async def execute_query(
    entry: ConnectionEntry,
    sql: str,
    params: Sequence[Any] | None = None,
) -> QueryResult:
    """Execute a statement on the entry's pool.

    Args:
        entry: Registered connection
        sql: SQL statement
        params: Optional positional parameters

    Returns:
        RowsResult or CommandResult

    Raises:
        ReadOnlyViolationError: Blocked statement on a read-only connection
        BackendError: The database rejected or failed the statement
    """
    if entry.read_only:
        classification = classify(sql)
        if classification.blocked:
            logger.warning(
                f"Blocked {classification.keyword} statement on read-only connection "
                f"'{entry.identifier}'"
            )
            raise ReadOnlyViolationError(entry.identifier, classification.keyword)

    args = tuple(params) if params else ()

    try:
        async with entry.pool.acquire() as conn:
            statement = await conn.prepare(sql)
            records = await statement.fetch(*args)
            status = statement.get_statusmsg()
            attributes = statement.get_attributes()
    except Exception as e:
        raise BackendError(str(e)) from e

    command, count = parse_status(status)
    logger.debug(f"Executed on '{entry.identifier}': {status}")

    if command in ROW_COMMANDS:
        rows = [dict(record) for record in records]
        return RowsResult(
            rows=rows,
            row_count=count if count is not None else len(rows),
            fields=[FieldInfo(name=attr.name, type_id=attr.type.oid) for attr in attributes],
        )
    return CommandResult(command=command, row_count=count)


def parse_status(status: str | None) -> tuple[str, int | None]:
    """Split a PostgreSQL command status into verb and row count.

    Status format: "COMMAND [OID] [COUNT]"
    Examples:
        - "SELECT 2" -> ("SELECT", 2)
        - "INSERT 0 1" -> ("INSERT", 1)
        - "CREATE TABLE" -> ("CREATE", None)
    """
    if not status:
        return "", None

    parts = status.split()
    command = parts[0].upper()
    if len(parts) >= 2 and parts[-1].isdigit():
        return command, int(parts[-1])
    return command, None


__all__ = [
    "CommandResult",
    "FieldInfo",
    "QueryResult",
    "RowsResult",
    "execute_query",
    "parse_status",
]
