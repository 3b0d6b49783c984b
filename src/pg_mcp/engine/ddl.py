"""DDL reconstruction from the PostgreSQL catalog.

Rebuilds a schema script from introspection queries in seven passes. Pass order
is fixed so that every statement only references objects emitted before it:

    1. enums                 CREATE TYPE ... AS ENUM
    2. sequences             CREATE SEQUENCE
    3. tables                CREATE TABLE (columns + primary key)
    4. foreign keys          ALTER TABLE ... FOREIGN KEY (after all tables exist)
    5. unique constraints    ALTER TABLE ... UNIQUE
    6. indexes               pg_get_indexdef() verbatim (non-unique, non-primary)
    7. views                 CREATE VIEW

Within a pass objects are ordered by schema, then name. Each object is preceded
by a one-line "-- KIND: name" comment and objects are separated by blank lines.

Security:
    - The schema filter is always passed as a bound parameter ($1).
    - Identifiers written into the script are quoted with quote_ident rules and
      enum labels with quote_literal rules, so names containing quotes,
      semicolons or upper case survive intact.

Failure of any query aborts the whole dump; no partial script is returned.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .exceptions import BackendError, PgMcpError
from .registry import ConnectionEntry

logger = logging.getLogger(__name__)

_EXCLUDED_SCHEMAS = "('pg_catalog', 'information_schema', 'pg_toast')"

# ============================================================================
# Catalog queries ({condition} is the schema filter on the given column)
# ============================================================================

ENUMS_QUERY = """
    SELECT n.nspname AS schema,
           t.typname AS name,
           ARRAY_AGG(e.enumlabel ORDER BY e.enumsortorder) AS labels
    FROM pg_type t
    JOIN pg_namespace n ON t.typnamespace = n.oid
    JOIN pg_enum e ON t.oid = e.enumtypid
    WHERE t.typtype = 'e'
      AND {condition}
    GROUP BY n.nspname, t.typname
    ORDER BY n.nspname, t.typname
"""

SEQUENCES_QUERY = """
    SELECT schemaname AS schema,
           sequencename AS name,
           start_value,
           increment_by,
           min_value,
           max_value,
           cycle
    FROM pg_sequences
    WHERE {condition}
    ORDER BY schemaname, sequencename
"""

TABLES_QUERY = """
    SELECT n.nspname AS schema,
           c.relname AS name,
           c.oid AS table_oid
    FROM pg_class c
    JOIN pg_namespace n ON c.relnamespace = n.oid
    WHERE c.relkind = 'r'
      AND {condition}
    ORDER BY n.nspname, c.relname
"""

COLUMNS_QUERY = """
    SELECT a.attname AS name,
           pg_catalog.format_type(a.atttypid, a.atttypmod) AS data_type,
           a.attnotnull AS not_null,
           pg_get_expr(d.adbin, d.adrelid) AS default_value
    FROM pg_attribute a
    LEFT JOIN pg_attrdef d ON a.attrelid = d.adrelid AND a.attnum = d.adnum
    WHERE a.attrelid = $1
      AND a.attnum > 0
      AND NOT a.attisdropped
    ORDER BY a.attnum
"""

PRIMARY_KEY_QUERY = """
    SELECT a.attname AS name
    FROM pg_index i
    JOIN pg_attribute a ON a.attrelid = i.indrelid AND a.attnum = ANY(i.indkey)
    WHERE i.indrelid = $1
      AND i.indisprimary
    ORDER BY array_position(i.indkey::int2[], a.attnum)
"""

FOREIGN_KEYS_QUERY = """
    SELECT n.nspname AS schema,
           t.relname AS table_name,
           c.conname AS constraint_name,
           fn.nspname AS foreign_schema,
           ft.relname AS foreign_table,
           ARRAY(
               SELECT a.attname
               FROM unnest(c.conkey) WITH ORDINALITY AS k(attnum, ord)
               JOIN pg_attribute a ON a.attrelid = c.conrelid AND a.attnum = k.attnum
               ORDER BY k.ord
           ) AS columns,
           ARRAY(
               SELECT a.attname
               FROM unnest(c.confkey) WITH ORDINALITY AS k(attnum, ord)
               JOIN pg_attribute a ON a.attrelid = c.confrelid AND a.attnum = k.attnum
               ORDER BY k.ord
           ) AS foreign_columns,
           c.confupdtype::text AS update_action,
           c.confdeltype::text AS delete_action
    FROM pg_constraint c
    JOIN pg_class t ON t.oid = c.conrelid
    JOIN pg_namespace n ON n.oid = t.relnamespace
    JOIN pg_class ft ON ft.oid = c.confrelid
    JOIN pg_namespace fn ON fn.oid = ft.relnamespace
    WHERE c.contype = 'f'
      AND {condition}
    ORDER BY n.nspname, t.relname, c.conname
"""

UNIQUE_QUERY = """
    SELECT n.nspname AS schema,
           t.relname AS table_name,
           i.relname AS constraint_name,
           ARRAY_AGG(a.attname ORDER BY array_position(ix.indkey::int2[], a.attnum)) AS columns
    FROM pg_index ix
    JOIN pg_class t ON t.oid = ix.indrelid
    JOIN pg_class i ON i.oid = ix.indexrelid
    JOIN pg_namespace n ON n.oid = t.relnamespace
    JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = ANY(ix.indkey)
    WHERE ix.indisunique AND NOT ix.indisprimary
      AND {condition}
    GROUP BY n.nspname, t.relname, i.relname
    ORDER BY n.nspname, t.relname, i.relname
"""

INDEXES_QUERY = """
    SELECT n.nspname AS schema,
           t.relname AS table_name,
           i.relname AS index_name,
           pg_get_indexdef(ix.indexrelid) AS index_def
    FROM pg_index ix
    JOIN pg_class t ON t.oid = ix.indrelid
    JOIN pg_class i ON i.oid = ix.indexrelid
    JOIN pg_namespace n ON n.oid = t.relnamespace
    WHERE NOT ix.indisunique AND NOT ix.indisprimary
      AND {condition}
    ORDER BY n.nspname, t.relname, i.relname
"""

VIEWS_QUERY = """
    SELECT schemaname AS schema,
           viewname AS name,
           definition
    FROM pg_views
    WHERE {condition}
    ORDER BY schemaname, viewname
"""

# pg_constraint.confupdtype / confdeltype codes
REFERENTIAL_ACTIONS: dict[str, str] = {
    "a": "NO ACTION",
    "r": "RESTRICT",
    "c": "CASCADE",
    "n": "SET NULL",
    "d": "SET DEFAULT",
}


# ============================================================================
# Quoting helpers
# ============================================================================

_SIMPLE_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")

# Keywords that PostgreSQL's quote_ident() always quotes (every category except
# unreserved): reserved, type/function-name and column-name keywords
QUOTED_KEYWORDS = frozenset(
    """
    all analyse analyze and any array as asc asymmetric authorization between
    bigint binary bit boolean both case cast char character check coalesce
    collate collation column concurrently constraint create cross current_catalog
    current_date current_role current_schema current_time current_timestamp
    current_user dec decimal default deferrable desc distinct do else end except
    exists extract false fetch float for foreign freeze from full grant greatest
    group grouping having ilike in initially inner inout int integer intersect
    interval into is isnull join json json_array json_arrayagg json_exists
    json_object json_objectagg json_query json_scalar json_serialize json_table
    json_value lateral leading least left like limit localtime localtimestamp
    merge_action national natural nchar none normalize not notnull null nullif
    numeric offset on only or order out outer overlaps overlay placing position
    precision primary real references returning right row select session_user
    setof similar smallint some substring symmetric system_user table tablesample
    then time timestamp to trailing treat trim true union unique user using
    values varchar variadic verbose when where window with xmlattributes
    xmlconcat xmlelement xmlexists xmlforest xmlnamespaces xmlparse xmlpi xmlroot
    xmlserialize xmltable
    """.split()
)


def quote_ident(name: str) -> str:
    """Quote an identifier unless it is a plain lower-case name and not a keyword.

    Examples:
        quote_ident("orders") -> orders
        quote_ident("user") -> "user"
        quote_ident("Orders") -> "Orders"
        quote_ident('we"ird') -> "we""ird"
    """
    if _SIMPLE_IDENTIFIER.match(name) and name not in QUOTED_KEYWORDS:
        return name
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """Quote a string literal, doubling embedded single quotes."""
    return "'" + value.replace("'", "''") + "'"


def qualified_name(schema: str, name: str) -> str:
    return f"{quote_ident(schema)}.{quote_ident(name)}"


def _column_list(columns: list[str]) -> str:
    return ", ".join(quote_ident(column) for column in columns)


# ============================================================================
# Result types
# ============================================================================


class ObjectKind(str, Enum):
    """Categories of emitted objects, in emission order."""

    ENUM = "ENUM"
    SEQUENCE = "SEQUENCE"
    TABLE = "TABLE"
    FOREIGN_KEY = "FK"
    UNIQUE = "UNIQUE"
    INDEX = "INDEX"
    VIEW = "VIEW"


@dataclass(frozen=True)
class DdlFragment:
    """One emitted object: identifying comment plus statement."""

    kind: ObjectKind
    name: str
    statement: str

    def render(self) -> str:
        # Keep the comment on a single line whatever the object name contains
        label = " ".join(self.name.splitlines())
        return f"-- {self.kind.value}: {label}\n{self.statement}"


@dataclass
class DdlDump:
    """Ordered fragments of a reconstructed schema script."""

    fragments: list[DdlFragment] = field(default_factory=list)
    schema: str | None = None

    def to_sql(self) -> str:
        """Join fragments into one script separated by blank lines."""
        if not self.fragments:
            return ""
        return "\n\n".join(fragment.render() for fragment in self.fragments) + "\n"

    def counts(self) -> dict[str, int]:
        """Number of emitted objects per kind, in emission order."""
        totals = {kind.name.lower(): 0 for kind in ObjectKind}
        for fragment in self.fragments:
            totals[fragment.kind.name.lower()] += 1
        return totals


# ============================================================================
# Reconstructor
# ============================================================================


class DdlReconstructor:
    """Runs the seven introspection passes on a single connection.

    Example:
        async with pool.acquire() as conn:
            dump = await DdlReconstructor(conn, schema="public").run()
        print(dump.to_sql())
    """

    def __init__(self, conn: Any, schema: str | None = None) -> None:
        self._conn = conn
        self.schema = schema or None

    async def run(self) -> DdlDump:
        """Execute every pass in order and collect the fragments."""
        fragments: list[DdlFragment] = []
        passes = (
            self.enums,
            self.sequences,
            self.tables,
            self.foreign_keys,
            self.unique_constraints,
            self.indexes,
            self.views,
        )
        for run_pass in passes:
            fragments.extend(await run_pass())
        return DdlDump(fragments=fragments, schema=self.schema)

    async def enums(self) -> list[DdlFragment]:
        fragments = []
        for row in await self._fetch_filtered(ENUMS_QUERY, "n.nspname"):
            name = qualified_name(row["schema"], row["name"])
            labels = ", ".join(quote_literal(label) for label in row["labels"])
            fragments.append(
                DdlFragment(ObjectKind.ENUM, name, f"CREATE TYPE {name} AS ENUM ({labels});")
            )
        return fragments

    async def sequences(self) -> list[DdlFragment]:
        fragments = []
        for row in await self._fetch_filtered(SEQUENCES_QUERY, "schemaname"):
            name = qualified_name(row["schema"], row["name"])
            statement = (
                f"CREATE SEQUENCE {name} START {row['start_value']} "
                f"INCREMENT {row['increment_by']} MINVALUE {row['min_value']} "
                f"MAXVALUE {row['max_value']}{' CYCLE' if row['cycle'] else ''};"
            )
            fragments.append(DdlFragment(ObjectKind.SEQUENCE, name, statement))
        return fragments

    async def tables(self) -> list[DdlFragment]:
        fragments = []
        for table in await self._fetch_filtered(TABLES_QUERY, "n.nspname"):
            name = qualified_name(table["schema"], table["name"])
            lines = []
            for column in await self._conn.fetch(COLUMNS_QUERY, table["table_oid"]):
                line = f"  {quote_ident(column['name'])} {column['data_type']}"
                if column["default_value"]:
                    line += f" DEFAULT {column['default_value']}"
                if column["not_null"]:
                    line += " NOT NULL"
                lines.append(line)

            primary_key = await self._conn.fetch(PRIMARY_KEY_QUERY, table["table_oid"])
            if primary_key:
                lines.append(f"  PRIMARY KEY ({_column_list([r['name'] for r in primary_key])})")

            body = ",\n".join(lines)
            fragments.append(
                DdlFragment(ObjectKind.TABLE, name, f"CREATE TABLE {name} (\n{body}\n);")
            )
        return fragments

    async def foreign_keys(self) -> list[DdlFragment]:
        fragments = []
        for row in await self._fetch_filtered(FOREIGN_KEYS_QUERY, "n.nspname"):
            table = qualified_name(row["schema"], row["table_name"])
            foreign_table = qualified_name(row["foreign_schema"], row["foreign_table"])
            constraint = quote_ident(row["constraint_name"])
            on_update = REFERENTIAL_ACTIONS.get(row["update_action"], "NO ACTION")
            on_delete = REFERENTIAL_ACTIONS.get(row["delete_action"], "NO ACTION")
            statement = (
                f"ALTER TABLE {table} ADD CONSTRAINT {constraint} "
                f"FOREIGN KEY ({_column_list(row['columns'])}) "
                f"REFERENCES {foreign_table}({_column_list(row['foreign_columns'])}) "
                f"ON UPDATE {on_update} ON DELETE {on_delete};"
            )
            fragments.append(DdlFragment(ObjectKind.FOREIGN_KEY, constraint, statement))
        return fragments

    async def unique_constraints(self) -> list[DdlFragment]:
        fragments = []
        for row in await self._fetch_filtered(UNIQUE_QUERY, "n.nspname"):
            table = qualified_name(row["schema"], row["table_name"])
            constraint = quote_ident(row["constraint_name"])
            statement = (
                f"ALTER TABLE {table} ADD CONSTRAINT {constraint} "
                f"UNIQUE ({_column_list(row['columns'])});"
            )
            fragments.append(DdlFragment(ObjectKind.UNIQUE, constraint, statement))
        return fragments

    async def indexes(self) -> list[DdlFragment]:
        return [
            DdlFragment(ObjectKind.INDEX, quote_ident(row["index_name"]), f"{row['index_def']};")
            for row in await self._fetch_filtered(INDEXES_QUERY, "n.nspname")
        ]

    async def views(self) -> list[DdlFragment]:
        fragments = []
        for row in await self._fetch_filtered(VIEWS_QUERY, "schemaname"):
            name = qualified_name(row["schema"], row["name"])
            definition = row["definition"].strip()
            if not definition.endswith(";"):
                definition += ";"
            fragments.append(
                DdlFragment(ObjectKind.VIEW, name, f"CREATE VIEW {name} AS\n{definition}")
            )
        return fragments

    async def _fetch_filtered(self, template: str, column: str) -> list[Any]:
        """Run a pass query restricted to the schema filter (bound as $1)."""
        if self.schema is not None:
            query = template.format(condition=f"{column} = $1")
            return await self._conn.fetch(query, self.schema)
        query = template.format(condition=f"{column} NOT IN {_EXCLUDED_SCHEMAS}")
        return await self._conn.fetch(query)


async def dump_ddl(entry: ConnectionEntry, schema: str | None = None) -> DdlDump:
    """Reconstruct the DDL script for a registered connection.

    Args:
        entry: Registered connection
        schema: Restrict every pass to this schema; all user schemas when omitted

    Returns:
        DdlDump with fragments in emission order

    Raises:
        BackendError: If any introspection query fails (no partial dump)
    """
    try:
        async with entry.pool.acquire() as conn:
            dump = await DdlReconstructor(conn, schema).run()
    except PgMcpError:
        raise
    except Exception as e:
        raise BackendError(f"DDL extraction failed: {e}") from e

    logger.debug(f"Reconstructed {len(dump.fragments)} DDL objects on '{entry.identifier}'")
    return dump


__all__ = [
    "DdlDump",
    "DdlFragment",
    "DdlReconstructor",
    "ObjectKind",
    "dump_ddl",
    "qualified_name",
    "quote_ident",
    "quote_literal",
]
