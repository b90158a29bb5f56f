"""pg_stat_activity collector."""

from __future__ import annotations

from collections.abc import Iterable

from ..context import ScrapeContext
from ..db import Column, ColumnKind, Connection, ResultSchema
from ..metrics import Emit, MetricDescriptor, new_descriptor
from .base import NAMESPACE, BaseCollector
from .registry import register_collector

SUBSYSTEM = "stat_activity"

SESSION_STATES = (
    "active",
    "idle",
    "idle in transaction",
    "idle in transaction (aborted)",
    "fastpath function call",
    "disabled",
)

# Every (database, state) pair is reported, zero when no session is in it.
CONNECTIONS_QUERY = """
WITH states AS (
  SELECT datname
       , unnest(array['active',
                      'idle',
                      'idle in transaction',
                      'idle in transaction (aborted)',
                      'fastpath function call',
                      'disabled']) AS state FROM pg_database
)
SELECT datname, state, COALESCE(count, 0) AS count
  FROM states LEFT JOIN (
       SELECT datname, state, count(*)::float
         FROM pg_stat_activity GROUP BY datname, state
       ) AS activity
 USING (datname, state) /*postgres_exporter*/"""

# Aggregate over the whole view: always exactly one row.
BACKEND_START_QUERY = "SELECT min(backend_start) FROM pg_stat_activity /*postgres_exporter*/"

# backend_xid IS NULL excludes autovacuum, autoanalyze and other maintenance work
XACT_QUERY = """
SELECT EXTRACT(EPOCH FROM age(clock_timestamp(), coalesce(min(xact_start), current_timestamp))) AS xact_start
     , coalesce(application_name, '') AS application_name
     , coalesce(datname, '') AS datname
  FROM pg_stat_activity
 WHERE state IN ('idle in transaction', 'active')
   AND backend_xid IS NOT NULL
 GROUP BY 2, 3 /*postgres_exporter*/"""

ACTIVE_QUERY = """
SELECT EXTRACT(EPOCH FROM age(clock_timestamp(), coalesce(min(query_start), clock_timestamp())))
     , coalesce(application_name, '') AS application_name
     , coalesce(datname, '') AS datname
  FROM pg_stat_activity
 WHERE state = 'active'
 GROUP BY 2, 3 /*postgres_exporter*/"""

SNAPSHOT_QUERY = """
SELECT EXTRACT(EPOCH FROM age(clock_timestamp(), coalesce(min(query_start), clock_timestamp())))
     , coalesce(application_name, '') AS application_name
     , coalesce(datname, '') AS datname
  FROM pg_stat_activity
 WHERE backend_xmin IS NOT NULL
 GROUP BY 2, 3 /*postgres_exporter*/"""

CONNECTIONS_SCHEMA = ResultSchema(
    Column("datname", ColumnKind.TEXT),
    Column("state", ColumnKind.TEXT),
    Column("count", ColumnKind.FLOAT),
)

BACKEND_START_SCHEMA = ResultSchema(Column("min", ColumnKind.TIMESTAMP))

# Background workers and walsenders report a NULL datname; the age queries
# group on the coalesced values so NULL and '' share one series.
AGE_SCHEMA = ResultSchema(
    Column("seconds", ColumnKind.FLOAT),
    Column("application_name", ColumnKind.TEXT, nullable=True),
    Column("datname", ColumnKind.TEXT, nullable=True),
)


@register_collector("stat_activity", enabled_by_default=True)
class StatActivityCollector(BaseCollector):
    """Session counts per state and the age of the oldest backend,
    transaction, running query and snapshot."""

    def __init__(self) -> None:
        self.connections = new_descriptor(
            NAMESPACE,
            SUBSYSTEM,
            "connections",
            "Number of current connections in their current state",
            ["datname", "state"],
        )
        self.backend = new_descriptor(
            NAMESPACE,
            SUBSYSTEM,
            "oldest_backend_timestamp",
            "The oldest backend started timestamp",
        )
        self.xact = new_descriptor(
            NAMESPACE,
            SUBSYSTEM,
            "oldest_xact_seconds",
            "The oldest transaction (active or idle in transaction)",
            ["application_name", "datname"],
        )
        self.active = new_descriptor(
            NAMESPACE,
            SUBSYSTEM,
            "oldest_query_active_seconds",
            "The oldest query in running state (long query)",
            ["application_name", "datname"],
        )
        self.snapshot = new_descriptor(
            NAMESPACE,
            SUBSYSTEM,
            "oldest_snapshot_seconds",
            "The oldest query snapshot",
            ["application_name", "datname"],
        )

    @property
    def name(self) -> str:
        return "stat_activity"

    def describe(self) -> Iterable[MetricDescriptor]:
        return (self.connections, self.backend, self.xact, self.active, self.snapshot)

    def update(self, ctx: ScrapeContext, conn: Connection, emit: Emit) -> None:
        with conn.query(ctx, CONNECTIONS_QUERY) as rows:
            for datname, state, count in rows.scan(CONNECTIONS_SCHEMA):
                emit(self.connections.sample(count, datname, state))

        (oldest_backend,) = conn.query_row(ctx, BACKEND_START_QUERY, BACKEND_START_SCHEMA)
        emit(self.backend.sample(int(oldest_backend.timestamp())))

        self._emit_ages(ctx, conn, emit, XACT_QUERY, self.xact)
        self._emit_ages(ctx, conn, emit, ACTIVE_QUERY, self.active)
        self._emit_ages(ctx, conn, emit, SNAPSHOT_QUERY, self.snapshot)

    def _emit_ages(
        self,
        ctx: ScrapeContext,
        conn: Connection,
        emit: Emit,
        sql: str,
        desc: MetricDescriptor,
    ) -> None:
        with conn.query(ctx, sql) as rows:
            for seconds, application_name, datname in rows.scan(AGE_SCHEMA):
                emit(desc.sample(seconds, application_name, datname))
