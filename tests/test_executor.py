"""Tests for query execution, the read-only guard and result shaping."""

import pytest

from pg_mcp.engine import (
    BackendError,
    CommandResult,
    ConnectionRegistry,
    ConnectionTarget,
    FieldInfo,
    ReadOnlyViolationError,
    RowsResult,
    execute_query,
)
from pg_mcp.engine.executor import parse_status


@pytest.fixture
async def read_only_entry(registry: ConnectionRegistry, url_target: ConnectionTarget):
    await registry.connect("ro", url_target, read_only=True)
    return registry.get("ro")


@pytest.fixture
async def writable_entry(registry: ConnectionRegistry, url_target: ConnectionTarget):
    await registry.connect("rw", url_target, read_only=False)
    return registry.get("rw")


class TestRowsResult:
    async def test_select_returns_rows_and_fields(self, read_only_entry) -> None:
        read_only_entry.pool.add_statement(
            "SELECT id, name FROM customers",
            "SELECT 2",
            records=[{"id": 1, "name": "Ada"}, {"id": 2, "name": "Linus"}],
            fields=[("id", 23), ("name", 25)],
        )

        result = await execute_query(read_only_entry, "SELECT id, name FROM customers")

        assert isinstance(result, RowsResult)
        assert result.rows == [{"id": 1, "name": "Ada"}, {"id": 2, "name": "Linus"}]
        assert result.row_count == 2
        assert result.fields == [FieldInfo("id", 23), FieldInfo("name", 25)]

    async def test_params_forwarded_positionally(self, read_only_entry) -> None:
        statement = read_only_entry.pool.add_statement(
            "SELECT * FROM orders WHERE id = $1 AND status = $2",
            "SELECT 0",
            fields=[("id", 23)],
        )

        result = await execute_query(
            read_only_entry,
            "SELECT * FROM orders WHERE id = $1 AND status = $2",
            [42, "open"],
        )

        assert statement.args == (42, "open")
        assert isinstance(result, RowsResult)
        assert result.rows == []
        assert result.row_count == 0

    async def test_no_params_means_no_args(self, read_only_entry) -> None:
        statement = read_only_entry.pool.add_statement("SELECT 1 AS x", "SELECT 1", [{"x": 1}])
        await execute_query(read_only_entry, "SELECT 1 AS x")
        assert statement.args == ()

    async def test_with_query_reported_as_select(self, read_only_entry) -> None:
        sql = "WITH t AS (SELECT 1 AS x) SELECT x FROM t"
        read_only_entry.pool.add_statement(sql, "SELECT 1", [{"x": 1}], [("x", 23)])

        result = await execute_query(read_only_entry, sql)

        assert isinstance(result, RowsResult)
        assert result.rows == [{"x": 1}]


class TestCommandResult:
    async def test_insert_reports_affected_count(self, writable_entry) -> None:
        writable_entry.pool.add_statement("INSERT INTO t VALUES (1), (2)", "INSERT 0 2")

        result = await execute_query(writable_entry, "INSERT INTO t VALUES (1), (2)")

        assert result == CommandResult(command="INSERT", row_count=2)

    async def test_ddl_has_no_count(self, writable_entry) -> None:
        writable_entry.pool.add_statement("CREATE TABLE t (id int)", "CREATE TABLE")

        result = await execute_query(writable_entry, "CREATE TABLE t (id int)")

        assert result == CommandResult(command="CREATE", row_count=None)

    async def test_non_select_with_returning_is_command_variant(self, writable_entry) -> None:
        sql = "DELETE FROM t WHERE id = 1 RETURNING id"
        writable_entry.pool.add_statement(sql, "DELETE 1", [{"id": 1}], [("id", 23)])

        result = await execute_query(writable_entry, sql)

        assert result == CommandResult(command="DELETE", row_count=1)


class TestReadOnlyGuard:
    @pytest.mark.parametrize(
        ("sql", "keyword"),
        [
            ("INSERT INTO t VALUES (1)", "INSERT"),
            ("  drop table t", "DROP"),
            ("GRANT SELECT ON t TO u", "GRANT"),
        ],
    )
    async def test_blocked_without_touching_backend(
        self, read_only_entry, sql: str, keyword: str
    ) -> None:
        with pytest.raises(ReadOnlyViolationError, match="READ-ONLY") as exc_info:
            await execute_query(read_only_entry, sql)

        assert exc_info.value.keyword == keyword
        assert exc_info.value.connection_id == "ro"
        assert read_only_entry.pool.acquired == 0
        assert read_only_entry.pool.prepared == []

    async def test_writable_connection_runs_mutations(self, writable_entry) -> None:
        writable_entry.pool.add_statement("DELETE FROM t", "DELETE 3")

        result = await execute_query(writable_entry, "DELETE FROM t")

        assert result == CommandResult(command="DELETE", row_count=3)
        assert writable_entry.pool.acquired == 1


class TestBackendFailures:
    async def test_prepare_error_wrapped(self, read_only_entry) -> None:
        read_only_entry.pool.prepare_error = RuntimeError('relation "missing" does not exist')

        with pytest.raises(BackendError, match="does not exist") as exc_info:
            await execute_query(read_only_entry, "SELECT * FROM missing")

        assert isinstance(exc_info.value.__cause__, RuntimeError)

    async def test_connection_usable_after_failure(self, read_only_entry) -> None:
        pool = read_only_entry.pool
        pool.prepare_error = RuntimeError("syntax error")
        with pytest.raises(BackendError):
            await execute_query(read_only_entry, "SELEC 1")

        pool.prepare_error = None
        pool.add_statement("SELECT 1", "SELECT 1", [{"?column?": 1}])
        result = await execute_query(read_only_entry, "SELECT 1")
        assert isinstance(result, RowsResult)


class TestParseStatus:
    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            ("SELECT 2", ("SELECT", 2)),
            ("INSERT 0 1", ("INSERT", 1)),
            ("UPDATE 10", ("UPDATE", 10)),
            ("CREATE TABLE", ("CREATE", None)),
            ("BEGIN", ("BEGIN", None)),
            ("", ("", None)),
            (None, ("", None)),
        ],
    )
    def test_parse(self, status, expected) -> None:
        assert parse_status(status) == expected
