"""pg_stat_database collector."""

from __future__ import annotations

from collections.abc import Iterable

from ..context import ScrapeContext
from ..db import Column, ColumnKind, Connection, ResultSchema
from ..metrics import Emit, MetricDescriptor, ValueType, new_descriptor
from .base import NAMESPACE, BaseCollector
from .registry import register_collector

SUBSYSTEM = "stat_database"

# column -> help text, in query order after datname and numbackends
COUNTERS = {
    "xact_commit": "Number of transactions in this database that have been committed",
    "xact_rollback": "Number of transactions in this database that have been rolled back",
    "blks_read": "Number of disk blocks read in this database",
    "blks_hit": "Number of times disk blocks were found already in the buffer cache",
    "tup_returned": "Number of rows returned by queries in this database",
    "tup_fetched": "Number of rows fetched by queries in this database",
    "tup_inserted": "Number of rows inserted by queries in this database",
    "tup_updated": "Number of rows updated by queries in this database",
    "tup_deleted": "Number of rows deleted by queries in this database",
    "conflicts": "Number of queries canceled due to conflicts with recovery",
    "temp_files": "Number of temporary files created by queries in this database",
    "temp_bytes": "Total amount of data written to temporary files by queries",
    "deadlocks": "Number of deadlocks detected in this database",
}

QUERY = f"""
SELECT datname
     , numbackends
     , {", ".join(COUNTERS)}
  FROM pg_stat_database
 WHERE datname IS NOT NULL /*postgres_exporter*/"""

SCHEMA = ResultSchema(
    Column("datname", ColumnKind.TEXT),
    Column("numbackends", ColumnKind.FLOAT),
    *(Column(name, ColumnKind.FLOAT) for name in COUNTERS),
)


@register_collector("stat_database", enabled_by_default=True)
class StatDatabaseCollector(BaseCollector):
    """Per-database activity counters."""

    def __init__(self) -> None:
        self.numbackends = new_descriptor(
            NAMESPACE,
            SUBSYSTEM,
            "numbackends",
            "Number of backends currently connected to this database",
            ["datname"],
        )
        self.counters = [
            new_descriptor(
                NAMESPACE, SUBSYSTEM, f"{name}_total", help_text, ["datname"], ValueType.COUNTER
            )
            for name, help_text in COUNTERS.items()
        ]

    @property
    def name(self) -> str:
        return "stat_database"

    def describe(self) -> Iterable[MetricDescriptor]:
        return [self.numbackends, *self.counters]

    def update(self, ctx: ScrapeContext, conn: Connection, emit: Emit) -> None:
        with conn.query(ctx, QUERY) as rows:
            for datname, numbackends, *values in rows.scan(SCHEMA):
                emit(self.numbackends.sample(numbackends, datname))
                for desc, value in zip(self.counters, values):
                    emit(desc.sample(value, datname))
