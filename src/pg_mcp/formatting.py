"""Shared formatting utilities for MCP tool responses.

Tool payloads are plain dicts. Every value placed in a payload must be
JSON-serializable, so database values (Decimal, datetime, UUID, ranges, ...)
are converted here before they leave the server. Binary values (bytea) are
hex-encoded.
"""

from typing import Any

from pydantic_core import to_jsonable_python

from .engine import CommandResult, ConnectionSummary, DdlDump, PgMcpError, RowsResult, SchemaInfo

# =============================================================================
# Success payloads
# =============================================================================


def format_connect_success(summary: ConnectionSummary) -> dict[str, Any]:
    """Format a successful connect as a payload with a confirmation message."""
    mode_text = " (READ-ONLY MODE)" if summary.read_only else ""
    return {
        "status": "success",
        "connection_id": summary.identifier,
        "read_only": summary.read_only,
        "server_version": summary.server_version,
        "message": (
            f"Connected to PostgreSQL successfully!{mode_text}\n"
            f"Connection ID: {summary.identifier}\n"
            f"Server: {summary.server_version}"
        ),
    }


def format_disconnect_success(connection_id: str) -> dict[str, Any]:
    return {
        "status": "success",
        "connection_id": connection_id,
        "message": f"Disconnected from '{connection_id}' successfully.",
    }


def format_query_result(result: RowsResult | CommandResult) -> dict[str, Any]:
    """Format either result variant.

    Rows:
        {"status", "rows", "row_count", "fields": [{"name", "type_id"}]}
    Command:
        {"status", "command", "row_count", "message"}
    """
    if isinstance(result, RowsResult):
        return {
            "status": "success",
            "rows": to_jsonable_python(result.rows, fallback=str, bytes_mode="hex"),
            "row_count": result.row_count,
            "fields": [{"name": f.name, "type_id": f.type_id} for f in result.fields],
        }
    return {
        "status": "success",
        "command": result.command,
        "row_count": result.row_count,
        "message": (
            f"Query executed successfully.\n"
            f"Command: {result.command}\n"
            f"Rows affected: {result.row_count}"
        ),
    }


def format_schema_list(schemas: list[SchemaInfo]) -> dict[str, Any]:
    return {
        "status": "success",
        "schemas": [{"name": s.name, "owner": s.owner} for s in schemas],
    }


def format_ddl_dump(dump: DdlDump) -> dict[str, Any]:
    """Format a DDL dump with per-kind object counts."""
    return {
        "status": "success",
        "schema": dump.schema,
        "ddl": dump.to_sql(),
        "object_counts": dump.counts(),
    }


# =============================================================================
# Failure payloads
# =============================================================================


def format_error(error: Exception) -> dict[str, Any]:
    """Convert an exception into a labeled failure payload.

    Gateway errors keep their taxonomy label; anything else is reported as an
    internal error with its message.
    """
    error_type = error.error_type if isinstance(error, PgMcpError) else "InternalError"
    return {
        "status": "failure",
        "error_type": error_type,
        "error": f"Error: {error}",
    }


__all__ = [
    "format_connect_success",
    "format_ddl_dump",
    "format_disconnect_success",
    "format_error",
    "format_query_result",
    "format_schema_list",
]
