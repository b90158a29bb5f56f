"""Tests for result schemas, row handling and the psycopg binding."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

import psycopg
import pytest
from conftest import FakeConnection, FakeCursor
from psycopg_pool import PoolTimeout

from postgres_exporter.context import ScrapeContext
from postgres_exporter.db import (
    Column,
    ColumnKind,
    PgConnection,
    PgConnectionProvider,
    ResultSchema,
    Rows,
)
from postgres_exporter.errors import (
    CancellationError,
    ConnectivityError,
    NoRowsError,
    QueryError,
    ScanError,
)

SCHEMA = ResultSchema(
    Column("value", ColumnKind.FLOAT),
    Column("datname", ColumnKind.TEXT, nullable=True),
    Column("started", ColumnKind.TIMESTAMP),
)


class TestResultSchema:
    def test_scan_converts_values(self) -> None:
        started = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert SCHEMA.scan((Decimal("1.5"), "db", started)) == (1.5, "db", started)
        assert SCHEMA.scan((3, None, started)) == (3.0, "", started)

    def test_naive_timestamp_is_utc(self) -> None:
        (value, _, started) = SCHEMA.scan((1.0, "db", datetime(2024, 1, 1)))
        assert started.tzinfo is timezone.utc

    def test_arity_mismatch(self) -> None:
        with pytest.raises(ScanError):
            SCHEMA.scan((1.0, "db"))

    def test_null_in_required_column(self) -> None:
        with pytest.raises(ScanError):
            SCHEMA.scan((None, "db", datetime(2024, 1, 1)))

    @pytest.mark.parametrize(
        "row",
        [
            ("1.0", "db", datetime(2024, 1, 1)),
            (True, "db", datetime(2024, 1, 1)),
            (1.0, 42, datetime(2024, 1, 1)),
            (1.0, "db", "2024-01-01"),
        ],
    )
    def test_type_mismatch(self, row) -> None:
        with pytest.raises(ScanError):
            SCHEMA.scan(row)


class TestRows:
    def test_close_on_error_inside_block(self, ctx) -> None:
        cursor = FakeCursor([(1,), (2,)])
        released = []
        with pytest.raises(RuntimeError):
            with Rows(cursor, ctx, on_close=lambda: released.append(True)) as rows:
                for _ in rows:
                    raise RuntimeError("boom")
        assert cursor.closed
        assert released == [True]

    def test_close_is_idempotent(self, ctx) -> None:
        released = []
        rows = Rows(FakeCursor([]), ctx, on_close=lambda: released.append(True))
        rows.close()
        rows.close()
        assert released == [True]

    def test_iteration_observes_cancellation(self) -> None:
        with ScrapeContext(timeout=5.0) as ctx:
            rows = Rows(FakeCursor([(1,), (2,)]), ctx)
            it = iter(rows)
            assert next(it) == (1,)
            ctx.cancel()
            with pytest.raises(CancellationError):
                next(it)

    def test_query_row_requires_a_row(self, ctx) -> None:
        conn = FakeConnection({"SELECT 1": []})
        with pytest.raises(NoRowsError):
            conn.query_row(ctx, "SELECT 1", ResultSchema(Column("x", ColumnKind.FLOAT)))
        assert conn.open_result_sets == 0

    def test_query_row_returns_first_row(self, ctx) -> None:
        conn = FakeConnection({"SELECT 1": [(1,), (2,)]})
        schema = ResultSchema(Column("x", ColumnKind.FLOAT))
        assert conn.query_row(ctx, "SELECT 1", schema) == (1.0,)
        assert conn.open_result_sets == 0


class TestPgConnection:
    def _conn(self, cursor: MagicMock) -> MagicMock:
        raw = MagicMock()
        raw.cursor.return_value = cursor
        return raw

    def test_rows_are_fetched_and_released(self, ctx) -> None:
        cursor = MagicMock()
        cursor.fetchone.side_effect = [("db1", 1), None]
        raw = self._conn(cursor)

        with PgConnection(raw).query(ctx, "SELECT datname, 1") as rows:
            assert list(rows) == [("db1", 1)]

        cursor.execute.assert_called_once_with("SELECT datname, 1", None)
        cursor.close.assert_called_once()
        raw.close.assert_not_called()

    def test_execute_error_is_query_error(self, ctx) -> None:
        cursor = MagicMock()
        cursor.execute.side_effect = psycopg.errors.UndefinedTable("relation does not exist")
        with pytest.raises(QueryError):
            PgConnection(self._conn(cursor)).query(ctx, "SELECT * FROM nope")
        cursor.close.assert_called_once()

    def test_fetch_error_is_query_error(self, ctx) -> None:
        cursor = MagicMock()
        cursor.fetchone.side_effect = psycopg.OperationalError("server closed the connection")
        with pytest.raises(QueryError):
            with PgConnection(self._conn(cursor)).query(ctx, "SELECT 1") as rows:
                list(rows)
        cursor.close.assert_called_once()

    def test_cancel_aborts_in_flight_statement(self) -> None:
        cursor = MagicMock()
        raw = self._conn(cursor)

        with ScrapeContext(timeout=5.0) as ctx:

            def execute(sql, args):
                ctx.cancel("deadline exceeded")
                raise psycopg.errors.QueryCanceled("canceling statement due to user request")

            cursor.execute.side_effect = execute
            with pytest.raises(CancellationError):
                PgConnection(raw).query(ctx, "SELECT pg_sleep(60)")

        raw.cancel_safe.assert_called_once()

    def test_server_side_timeout_is_query_error(self, ctx) -> None:
        cursor = MagicMock()
        cursor.execute.side_effect = psycopg.errors.QueryCanceled("statement timeout")
        with pytest.raises(QueryError):
            PgConnection(self._conn(cursor)).query(ctx, "SELECT pg_sleep(60)")

    def test_cancel_callback_released_with_rows(self) -> None:
        cursor = MagicMock()
        cursor.fetchone.return_value = None
        raw = self._conn(cursor)

        with ScrapeContext(timeout=5.0) as ctx:
            with PgConnection(raw).query(ctx, "SELECT 1") as rows:
                list(rows)
            ctx.cancel()

        raw.cancel_safe.assert_not_called()

    def test_broken_connection_is_query_error(self, ctx) -> None:
        raw = MagicMock()
        raw.cursor.side_effect = psycopg.OperationalError("the connection is closed")
        with pytest.raises(QueryError):
            PgConnection(raw).query(ctx, "SELECT 1")
        raw.cancel_safe.assert_not_called()


class TestPgConnectionProvider:
    @patch("postgres_exporter.db.ConnectionPool")
    def test_connection_returned_on_error(self, pool_cls, ctx) -> None:
        pool = pool_cls.return_value
        raw = MagicMock()
        pool.getconn.return_value = raw

        provider = PgConnectionProvider("postgresql:///postgres", acquire_timeout=2.0)
        with pytest.raises(RuntimeError):
            with provider.acquire(ctx):
                raise RuntimeError("collector bug")

        pool.putconn.assert_called_once_with(raw)
        timeout = pool.getconn.call_args.kwargs["timeout"]
        assert 0 < timeout <= 2.0

    @patch("postgres_exporter.db.ConnectionPool")
    def test_pool_timeout_is_connectivity_error(self, pool_cls, ctx) -> None:
        pool_cls.return_value.getconn.side_effect = PoolTimeout("couldn't get a connection")
        provider = PgConnectionProvider("postgresql:///postgres")
        with pytest.raises(ConnectivityError):
            with provider.acquire(ctx):
                pass
        pool_cls.return_value.putconn.assert_not_called()

    @patch("postgres_exporter.db.ConnectionPool")
    def test_pool_uses_autocommit_connections(self, pool_cls) -> None:
        PgConnectionProvider("postgresql:///postgres", min_size=2, max_size=1)
        kwargs = pool_cls.call_args.kwargs
        assert kwargs["kwargs"]["autocommit"] is True
        assert kwargs["open"] is False
        assert kwargs["max_size"] == 2

    @patch("postgres_exporter.db.ConnectionPool")
    def test_expired_context_is_connectivity_error(self, pool_cls) -> None:
        provider = PgConnectionProvider("postgresql:///postgres")
        with ScrapeContext(timeout=0.0) as ctx:
            with pytest.raises(ConnectivityError):
                with provider.acquire(ctx):
                    pass
        pool_cls.return_value.getconn.assert_not_called()

    @patch("postgres_exporter.db.ConnectionPool")
    def test_cancelled_connection_is_closed_before_return(self, pool_cls) -> None:
        pool = pool_cls.return_value
        raw = MagicMock()
        pool.getconn.return_value = raw

        provider = PgConnectionProvider("postgresql:///postgres")
        with ScrapeContext(timeout=5.0) as ctx:
            with provider.acquire(ctx):
                ctx.cancel("deadline exceeded")

        raw.close.assert_called_once()
        pool.putconn.assert_called_once_with(raw)

    @patch("postgres_exporter.db.ConnectionPool")
    def test_healthy_connection_is_returned_open(self, pool_cls, ctx) -> None:
        pool = pool_cls.return_value
        raw = MagicMock()
        pool.getconn.return_value = raw

        with PgConnectionProvider("postgresql:///postgres").acquire(ctx):
            pass

        raw.close.assert_not_called()
        pool.putconn.assert_called_once_with(raw)
