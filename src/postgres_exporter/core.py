"""Per-scrape orchestration of the resolved collector set."""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Iterable, Iterator
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import Protocol

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily
from prometheus_client.metrics_core import Metric
from prometheus_client.registry import Collector

from .collectors.base import NAMESPACE, BaseCollector
from .context import ScrapeContext
from .db import Connection
from .errors import CancellationError, ConnectivityError, ExporterError
from .metrics import SampleStream, ValueType, new_descriptor

log = logging.getLogger(__name__)


class ConnectionProvider(Protocol):
    def acquire(self, ctx: ScrapeContext) -> AbstractContextManager[Connection]:
        ...


@dataclass
class ScrapeResult(Collector):
    """Samples and per-collector outcome of one scrape.

    Also a ``prometheus_client`` collector, so it can be handed straight to
    ``generate_latest``.
    """

    samples: SampleStream = field(default_factory=SampleStream)
    errors: dict[str, Exception] = field(default_factory=dict)
    durations: dict[str, float] = field(default_factory=dict)
    scrape_id: str = ""

    @property
    def ok(self) -> bool:
        return not self.errors

    def collect(self) -> Iterator[Metric]:
        families: dict[str, Metric] = {}
        for sample in self.samples:
            desc = sample.descriptor
            family = families.get(desc.name)
            if family is None:
                if desc.value_type is ValueType.COUNTER:
                    family = CounterMetricFamily(desc.name, desc.help, labels=desc.label_names)
                else:
                    family = GaugeMetricFamily(desc.name, desc.help, labels=desc.label_names)
                families[desc.name] = family
            family.add_metric(list(sample.label_values), sample.value)
        yield from families.values()


class Scraper:
    """Runs every resolved collector against one pooled connection.

    Idle -> acquiring connection -> running collectors -> finalizing.
    A connectivity failure, including a context that is already cancelled
    when the scrape starts, fails the whole scrape; any other collector
    failure is recorded and the remaining collectors still run.
    """

    def __init__(
        self,
        collectors: Iterable[BaseCollector],
        provider: ConnectionProvider,
        *,
        namespace: str = NAMESPACE,
    ) -> None:
        self.collectors = tuple(collectors)
        self.provider = provider
        self.success = new_descriptor(
            namespace,
            "scrape",
            "collector_success",
            "Whether a collector succeeded (1) or failed (0) on this scrape",
            ["collector"],
        )
        self.duration = new_descriptor(
            namespace,
            "scrape",
            "collector_duration_seconds",
            "Time a collector took on this scrape",
            ["collector"],
        )

    def scrape(self, ctx: ScrapeContext) -> ScrapeResult:
        try:
            ctx.check()
        except CancellationError as e:
            raise ConnectivityError(f"scrape cancelled before connecting: {e}") from e

        result = ScrapeResult(scrape_id=uuid.uuid4().hex[:12])
        try:
            with self.provider.acquire(ctx) as conn:
                for collector in self.collectors:
                    self._run_collector(ctx, conn, collector, result)
            self._emit_outcomes(result)
        finally:
            result.samples.close()
        return result

    def _run_collector(
        self,
        ctx: ScrapeContext,
        conn: Connection,
        collector: BaseCollector,
        result: ScrapeResult,
    ) -> None:
        started = time.perf_counter()
        try:
            collector.update(ctx, conn, result.samples.emit)
        except Exception as e:
            elapsed = time.perf_counter() - started
            result.durations[collector.name] = elapsed
            result.errors[collector.name] = e
            log.warning(
                "collector_failed",
                exc_info=not isinstance(e, ExporterError),
                extra={
                    "collector": collector.name,
                    "code": getattr(e, "code", "unexpected_error"),
                    "error": str(e),
                    "duration_seconds": round(elapsed, 6),
                    "scrape_id": result.scrape_id,
                },
            )
            return

        elapsed = time.perf_counter() - started
        result.durations[collector.name] = elapsed
        log.debug(
            "collector_succeeded",
            extra={
                "collector": collector.name,
                "duration_seconds": round(elapsed, 6),
                "scrape_id": result.scrape_id,
            },
        )

    def _emit_outcomes(self, result: ScrapeResult) -> None:
        for collector in self.collectors:
            name = collector.name
            ok = name not in result.errors
            result.samples.emit(self.success.sample(1.0 if ok else 0.0, name))
            result.samples.emit(self.duration.sample(result.durations.get(name, 0.0), name))
