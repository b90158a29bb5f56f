"""Prometheus text exposition formatter."""

from __future__ import annotations

from prometheus_client.exposition import generate_latest

from ..core import ScrapeResult
from .base import BaseFormatter


class PrometheusFormatter(BaseFormatter):
    """Format samples in the Prometheus text format."""

    def format(self, result: ScrapeResult) -> str:
        return generate_latest(result).decode("utf-8").rstrip("\n")
