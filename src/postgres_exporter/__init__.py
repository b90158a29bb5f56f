"""
postgres_exporter

Prometheus exporter for PostgreSQL statistics views.

Collectors register themselves with ``collectors.default_registry``; the
resolved set is handed to a ``Scraper`` that runs them on every scrape.
"""

from __future__ import annotations

from .context import ScrapeContext
from .core import Scraper, ScrapeResult

__all__ = ["__version__", "ScrapeContext", "ScrapeResult", "Scraper"]

__version__ = "0.1.0"
