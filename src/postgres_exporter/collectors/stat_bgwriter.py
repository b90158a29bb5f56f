"""pg_stat_bgwriter collector (disabled by default)."""

from __future__ import annotations

from collections.abc import Iterable

from ..context import ScrapeContext
from ..db import Column, ColumnKind, Connection, ResultSchema
from ..metrics import Emit, MetricDescriptor, ValueType, new_descriptor
from .base import NAMESPACE, BaseCollector
from .registry import register_collector

SUBSYSTEM = "stat_bgwriter"

# Columns present on every supported server version; checkpoint counters
# moved to pg_stat_checkpointer in PostgreSQL 17.
COUNTERS = {
    "buffers_clean": "Number of buffers written by the background writer",
    "maxwritten_clean": "Number of times the background writer stopped a cleaning scan "
    "because it had written too many buffers",
    "buffers_alloc": "Number of buffers allocated",
}

QUERY = f"SELECT {', '.join(COUNTERS)} FROM pg_stat_bgwriter /*postgres_exporter*/"

SCHEMA = ResultSchema(*(Column(name, ColumnKind.FLOAT) for name in COUNTERS))


@register_collector("stat_bgwriter", enabled_by_default=False)
class StatBgwriterCollector(BaseCollector):
    def __init__(self) -> None:
        self.counters = [
            new_descriptor(NAMESPACE, SUBSYSTEM, f"{name}_total", help_text, (), ValueType.COUNTER)
            for name, help_text in COUNTERS.items()
        ]

    @property
    def name(self) -> str:
        return "stat_bgwriter"

    def describe(self) -> Iterable[MetricDescriptor]:
        return list(self.counters)

    def update(self, ctx: ScrapeContext, conn: Connection, emit: Emit) -> None:
        values = conn.query_row(ctx, QUERY, SCHEMA)
        for desc, value in zip(self.counters, values):
            emit(desc.sample(value))
