"""In-memory stand-ins for the database side of a scrape."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

import pytest

from postgres_exporter.collectors import stat_activity
from postgres_exporter.context import ScrapeContext
from postgres_exporter.db import Connection, Rows
from postgres_exporter.errors import ConnectivityError

Response = Sequence[Sequence[Any]] | Exception


class FakeCursor:
    def __init__(self, rows: Sequence[Sequence[Any]]) -> None:
        self._rows = list(rows)
        self.closed = False

    def fetchone(self) -> Sequence[Any] | None:
        if not self._rows:
            return None
        return self._rows.pop(0)

    def close(self) -> None:
        self.closed = True


class FakeConnection(Connection):
    """Answers queries from a mapping (or callable) keyed by SQL text.

    Records executed statements and flags any statement issued while a
    previous result set is still open.
    """

    def __init__(self, responses: Mapping[str, Response] | Callable[[str], Response]) -> None:
        self._responses = responses
        self.executed: list[str] = []
        self.cursors: list[FakeCursor] = []
        self.open_result_sets = 0
        self.interleaved = False
        self.closed = False

    def _respond(self, sql: str) -> Response:
        if callable(self._responses):
            return self._responses(sql)
        return self._responses[sql]

    def _release(self) -> None:
        self.open_result_sets -= 1

    def query(self, ctx: ScrapeContext, sql: str, args: Sequence[Any] | None = None) -> Rows:
        ctx.check()
        if self.open_result_sets:
            self.interleaved = True
        self.executed.append(sql)
        response = self._respond(sql)
        if isinstance(response, Exception):
            raise response
        cursor = FakeCursor(response)
        self.cursors.append(cursor)
        self.open_result_sets += 1
        return Rows(cursor, ctx, on_close=self._release)

    def close(self) -> None:
        self.closed = True


class FakeProvider:
    def __init__(self, conn: Connection | None = None, *, error: Exception | None = None) -> None:
        self.conn = conn
        self.error = error
        self.acquired = 0
        self.released = 0

    @contextmanager
    def acquire(self, ctx: ScrapeContext) -> Iterator[Connection]:
        if self.error is not None:
            raise self.error
        if self.conn is None:
            raise ConnectivityError("no connection configured")
        self.acquired += 1
        try:
            yield self.conn
        finally:
            self.released += 1


# ── pg_stat_activity simulator ───────────────────────────────────────

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@dataclass
class Session:
    datname: str | None
    application_name: str
    state: str | None
    backend_start: datetime = field(default_factory=lambda: NOW - timedelta(hours=1))
    xact_start: datetime | None = None
    query_start: datetime | None = None
    backend_xid: int | None = None
    backend_xmin: int | None = None


def _age(starts: list[datetime | None]) -> Decimal:
    oldest = min((s for s in starts if s is not None), default=NOW)
    # EXTRACT(EPOCH ...) is numeric on current servers
    return Decimal(str((NOW - oldest).total_seconds()))


def _group_ages(
    sessions: list[Session], start: Callable[[Session], datetime | None]
) -> list[tuple[Any, ...]]:
    groups: dict[tuple[str, str], list[datetime | None]] = {}
    for s in sessions:
        # the age queries coalesce NULL names to '' before grouping
        key = (s.application_name or "", s.datname or "")
        groups.setdefault(key, []).append(start(s))
    return [(_age(starts), app, db) for (app, db), starts in groups.items()]


class StatActivitySimulator:
    """Evaluates the stat_activity queries over a list of sessions."""

    def __init__(self, databases: list[str], sessions: list[Session]) -> None:
        self.databases = databases
        self.sessions = sessions

    def __call__(self, sql: str) -> Response:
        if sql == stat_activity.CONNECTIONS_QUERY:
            return [
                (
                    db,
                    state,
                    float(sum(1 for s in self.sessions if s.datname == db and s.state == state)),
                )
                for db in self.databases
                for state in stat_activity.SESSION_STATES
            ]
        if sql == stat_activity.BACKEND_START_QUERY:
            return [(min((s.backend_start for s in self.sessions), default=None),)]
        if sql == stat_activity.XACT_QUERY:
            matching = [
                s
                for s in self.sessions
                if s.state in ("idle in transaction", "active") and s.backend_xid is not None
            ]
            return _group_ages(matching, lambda s: s.xact_start)
        if sql == stat_activity.ACTIVE_QUERY:
            matching = [s for s in self.sessions if s.state == "active"]
            return _group_ages(matching, lambda s: s.query_start)
        if sql == stat_activity.SNAPSHOT_QUERY:
            matching = [s for s in self.sessions if s.backend_xmin is not None]
            return _group_ages(matching, lambda s: s.query_start)
        raise AssertionError(f"unexpected query: {sql}")


@pytest.fixture
def ctx() -> Iterator[ScrapeContext]:
    with ScrapeContext(timeout=5.0) as scrape_ctx:
        yield scrape_ctx


@pytest.fixture
def two_sessions() -> StatActivitySimulator:
    """One active session in app1/db1 with a transaction, one idle in app2/db2."""
    return StatActivitySimulator(
        databases=["db1", "db2"],
        sessions=[
            Session(
                datname="db1",
                application_name="app1",
                state="active",
                backend_start=NOW - timedelta(minutes=5),
                xact_start=NOW - timedelta(seconds=10),
                query_start=NOW - timedelta(seconds=10),
                backend_xid=1234,
            ),
            Session(
                datname="db2",
                application_name="app2",
                state="idle",
                backend_start=NOW - timedelta(minutes=2),
            ),
        ],
    )
