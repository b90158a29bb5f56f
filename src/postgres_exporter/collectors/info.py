"""Server version and start time."""

from __future__ import annotations

from collections.abc import Iterable

from ..context import ScrapeContext
from ..db import Column, ColumnKind, Connection, ResultSchema
from ..metrics import Emit, MetricDescriptor, new_descriptor
from .base import NAMESPACE, BaseCollector
from .registry import register_collector

VERSION_QUERY = "SELECT current_setting('server_version') /*postgres_exporter*/"
START_TIME_QUERY = "SELECT pg_postmaster_start_time() /*postgres_exporter*/"

VERSION_SCHEMA = ResultSchema(Column("server_version", ColumnKind.TEXT))
START_TIME_SCHEMA = ResultSchema(Column("pg_postmaster_start_time", ColumnKind.TIMESTAMP))


@register_collector("info", enabled_by_default=True)
class InfoCollector(BaseCollector):
    def __init__(self) -> None:
        self.info = new_descriptor(
            NAMESPACE, "", "info", "PostgreSQL server information", ["version"]
        )
        self.start_time = new_descriptor(
            NAMESPACE,
            "",
            "postmaster_start_time_seconds",
            "Time at which the server process started, in Unix epoch seconds",
        )

    @property
    def name(self) -> str:
        return "info"

    def describe(self) -> Iterable[MetricDescriptor]:
        return (self.info, self.start_time)

    def update(self, ctx: ScrapeContext, conn: Connection, emit: Emit) -> None:
        (version,) = conn.query_row(ctx, VERSION_QUERY, VERSION_SCHEMA)
        emit(self.info.sample(1, version))

        (started,) = conn.query_row(ctx, START_TIME_QUERY, START_TIME_SCHEMA)
        emit(self.start_time.sample(started.timestamp()))
