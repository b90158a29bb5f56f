"""Connection provider interface, result schemas and the psycopg binding.

Collectors only see :class:`Connection`: ``query`` returns a :class:`Rows`
that must be used as a context manager so the cursor is released before the
next statement is issued on the same connection.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

import psycopg
from psycopg_pool import ConnectionPool

from .context import ScrapeContext
from .errors import (
    CancellationError,
    ConnectivityError,
    ExporterError,
    NoRowsError,
    QueryError,
    ScanError,
)

log = logging.getLogger(__name__)


# ── result schemas ───────────────────────────────────────────────────


class ColumnKind(str, Enum):
    FLOAT = "float"
    TEXT = "text"
    TIMESTAMP = "timestamp"


@dataclass(frozen=True, slots=True)
class Column:
    name: str
    kind: ColumnKind
    nullable: bool = False

    def convert(self, value: Any) -> Any:
        if value is None:
            if not self.nullable:
                raise ScanError(f"column {self.name!r}: unexpected NULL")
            return "" if self.kind is ColumnKind.TEXT else None

        if self.kind is ColumnKind.FLOAT:
            # bool is an int subclass but never a valid numeric sample
            if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
                raise ScanError(
                    f"column {self.name!r}: expected number, got {type(value).__name__}"
                )
            return float(value)

        if self.kind is ColumnKind.TEXT:
            if not isinstance(value, str):
                raise ScanError(f"column {self.name!r}: expected text, got {type(value).__name__}")
            return value

        if not isinstance(value, datetime):
            raise ScanError(
                f"column {self.name!r}: expected timestamp, got {type(value).__name__}"
            )
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class ResultSchema:
    """Expected column layout of one query's result set."""

    def __init__(self, *columns: Column) -> None:
        self.columns = columns

    def __len__(self) -> int:
        return len(self.columns)

    def scan(self, row: Sequence[Any]) -> tuple[Any, ...]:
        if len(row) != len(self.columns):
            raise ScanError(
                f"expected {len(self.columns)} columns "
                f"({', '.join(c.name for c in self.columns)}), got {len(row)}"
            )
        return tuple(col.convert(value) for col, value in zip(self.columns, row))


# ── rows / connection contract ───────────────────────────────────────


class Rows:
    """Result set of one statement.

    Iterating fetches one row at a time and checks the scrape context before
    each fetch. ``close`` is idempotent and runs on leaving the ``with`` block
    whatever the exit path.
    """

    def __init__(
        self,
        cursor: Any,
        ctx: ScrapeContext,
        *,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        self._cursor = cursor
        self._ctx = ctx
        self._on_close = on_close
        self._closed = False

    def __enter__(self) -> Rows:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __iter__(self) -> Iterator[Sequence[Any]]:
        while True:
            if self._closed:
                raise QueryError("result set already closed")
            self._ctx.check()
            row = self._fetch()
            if row is None:
                return
            yield row

    def scan(self, schema: ResultSchema) -> Iterator[tuple[Any, ...]]:
        for row in self:
            yield schema.scan(row)

    def _fetch(self) -> Sequence[Any] | None:
        return self._cursor.fetchone()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._cursor.close()
        finally:
            if self._on_close is not None:
                self._on_close()


class Connection(ABC):
    """A live, already authenticated connection owned by the caller."""

    @abstractmethod
    def query(self, ctx: ScrapeContext, sql: str, args: Sequence[Any] | None = None) -> Rows:
        ...

    def query_row(
        self,
        ctx: ScrapeContext,
        sql: str,
        schema: ResultSchema,
        args: Sequence[Any] | None = None,
    ) -> tuple[Any, ...]:
        """Run a scalar query and scan its first row.

        A scalar query that returns no row at all raises NoRowsError.
        """
        with self.query(ctx, sql, args) as rows:
            for row in rows.scan(schema):
                return row
        raise NoRowsError("query returned no rows")


# ── psycopg binding ──────────────────────────────────────────────────


def _translate_error(ctx: ScrapeContext, exc: psycopg.Error) -> ExporterError:
    if isinstance(exc, psycopg.errors.QueryCanceled) and (ctx.cancelled or ctx.expired()):
        return CancellationError(ctx.reason or "deadline exceeded")
    sqlstate = getattr(exc, "sqlstate", None)
    detail = f"{exc} (sqlstate {sqlstate})" if sqlstate else str(exc)
    return QueryError(detail.strip())


class PgRows(Rows):
    def _fetch(self) -> Sequence[Any] | None:
        try:
            return super()._fetch()
        except psycopg.Error as exc:
            raise _translate_error(self._ctx, exc) from exc


class PgConnection(Connection):
    """Adapts a ``psycopg.Connection``. Never closes it."""

    def __init__(self, conn: psycopg.Connection[Any]) -> None:
        self._conn = conn

    def _cancel(self) -> None:
        self._conn.cancel_safe(timeout=5.0)

    def query(self, ctx: ScrapeContext, sql: str, args: Sequence[Any] | None = None) -> Rows:
        ctx.check()
        try:
            cursor = self._conn.cursor()
        except psycopg.Error as exc:
            raise _translate_error(ctx, exc) from exc

        unregister = ctx.on_cancel(self._cancel)
        try:
            cursor.execute(sql, args)
        except psycopg.Error as exc:
            unregister()
            cursor.close()
            raise _translate_error(ctx, exc) from exc
        return PgRows(cursor, ctx, on_close=unregister)


class PgConnectionProvider:
    """Pool of autocommit connections; one is checked out per scrape."""

    def __init__(
        self,
        dsn: str,
        *,
        min_size: int = 1,
        max_size: int = 4,
        acquire_timeout: float = 5.0,
        connect_timeout: int = 5,
        application_name: str = "postgres_exporter",
    ) -> None:
        self._acquire_timeout = acquire_timeout
        self._pool = ConnectionPool(
            conninfo=dsn,
            min_size=min_size,
            max_size=max(min_size, max_size),
            kwargs={
                "autocommit": True,
                "connect_timeout": connect_timeout,
                "application_name": application_name,
            },
            check=ConnectionPool.check_connection,
            open=False,
            name="postgres_exporter",
        )

    def open(self, *, wait: bool = False, timeout: float = 30.0) -> None:
        try:
            self._pool.open(wait=wait, timeout=timeout)
        except psycopg.OperationalError as exc:
            raise ConnectivityError(f"could not open connection pool: {exc}") from exc

    def close(self) -> None:
        self._pool.close()

    @contextmanager
    def acquire(self, ctx: ScrapeContext) -> Iterator[Connection]:
        """Check a connection out for the duration of the block.

        The wait is bounded by the pool timeout and by what is left of the
        scrape deadline. The connection goes back to the pool on every exit
        path; one whose scrape was cancelled is closed first so a cancel
        request still in flight cannot hit the next borrower.
        """
        try:
            ctx.check()
        except CancellationError as exc:
            raise ConnectivityError(f"no time left to acquire a connection: {exc}") from exc
        timeout = self._acquire_timeout
        remaining = ctx.remaining()
        if remaining is not None:
            timeout = min(timeout, remaining)

        try:
            conn = self._pool.getconn(timeout=timeout)
        except psycopg.OperationalError as exc:
            raise ConnectivityError(f"no database connection available: {exc}") from exc

        try:
            yield PgConnection(conn)
        finally:
            if ctx.cancelled:
                conn.close()
            self._pool.putconn(conn)
