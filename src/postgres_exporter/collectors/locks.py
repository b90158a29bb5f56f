"""pg_locks collector."""

from __future__ import annotations

from collections.abc import Iterable

from ..context import ScrapeContext
from ..db import Column, ColumnKind, Connection, ResultSchema
from ..metrics import Emit, MetricDescriptor, new_descriptor
from .base import NAMESPACE, BaseCollector
from .registry import register_collector

LOCK_MODES = (
    "AccessShareLock",
    "RowShareLock",
    "RowExclusiveLock",
    "ShareUpdateExclusiveLock",
    "ShareLock",
    "ShareRowExclusiveLock",
    "ExclusiveLock",
    "AccessExclusiveLock",
)

QUERY = f"""
WITH modes AS (
  SELECT datname
       , unnest(array[{", ".join(f"'{mode}'" for mode in LOCK_MODES)}]) AS mode
    FROM pg_database
)
SELECT datname, mode, COALESCE(count, 0) AS count
  FROM modes LEFT JOIN (
       SELECT d.datname, l.mode, count(*)::float
         FROM pg_locks l JOIN pg_database d ON d.oid = l.database
        GROUP BY d.datname, l.mode
       ) AS held
 USING (datname, mode) /*postgres_exporter*/"""

SCHEMA = ResultSchema(
    Column("datname", ColumnKind.TEXT),
    Column("mode", ColumnKind.TEXT),
    Column("count", ColumnKind.FLOAT),
)


@register_collector("locks", enabled_by_default=True)
class LocksCollector(BaseCollector):
    """Held table-level locks per database and mode, zero-filled."""

    def __init__(self) -> None:
        self.locks = new_descriptor(
            NAMESPACE,
            "",
            "locks",
            "Number of locks held per database and lock mode",
            ["datname", "mode"],
        )

    @property
    def name(self) -> str:
        return "locks"

    def describe(self) -> Iterable[MetricDescriptor]:
        return (self.locks,)

    def update(self, ctx: ScrapeContext, conn: Connection, emit: Emit) -> None:
        with conn.query(ctx, QUERY) as rows:
            for datname, mode, count in rows.scan(SCHEMA):
                emit(self.locks.sample(count, datname, mode))
