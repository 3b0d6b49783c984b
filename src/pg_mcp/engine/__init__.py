"""PostgreSQL gateway engine.

Core components, leaves first:
    - classifier: read-only statement classification
    - target: connection target resolution and credential redaction
    - registry: caller-named connection pools and their lifecycle
    - executor: read-only guard, execution and result shaping
    - schemas: schema listing
    - ddl: DDL reconstruction from catalog introspection
"""

from .classifier import StatementClassification, classify, is_blocked
from .ddl import DdlDump, DdlFragment, DdlReconstructor, ObjectKind, dump_ddl
from .exceptions import (
    BackendError,
    ConnectionExistsError,
    ConnectionNotFoundError,
    InvalidTargetError,
    PgMcpError,
    ReadOnlyViolationError,
    RegistryClosedError,
)
from .executor import CommandResult, FieldInfo, QueryResult, RowsResult, execute_query
from .registry import ConnectionEntry, ConnectionRegistry, ConnectionSummary
from .schemas import SchemaInfo, list_schemas
from .target import ConnectionTarget, PoolOptions, TargetSource, resolve_target

__all__ = [
    # Classification
    "StatementClassification",
    "classify",
    "is_blocked",
    # Targets
    "ConnectionTarget",
    "PoolOptions",
    "TargetSource",
    "resolve_target",
    # Registry
    "ConnectionEntry",
    "ConnectionRegistry",
    "ConnectionSummary",
    # Execution
    "CommandResult",
    "FieldInfo",
    "QueryResult",
    "RowsResult",
    "execute_query",
    # Introspection
    "SchemaInfo",
    "list_schemas",
    "DdlDump",
    "DdlFragment",
    "DdlReconstructor",
    "ObjectKind",
    "dump_ddl",
    # Errors
    "BackendError",
    "ConnectionExistsError",
    "ConnectionNotFoundError",
    "InvalidTargetError",
    "PgMcpError",
    "ReadOnlyViolationError",
    "RegistryClosedError",
]
