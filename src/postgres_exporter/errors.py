from __future__ import annotations

from dataclasses import dataclass


class ExporterError(Exception):
    """Base class for failures raised while building or running collectors."""

    code = "exporter_error"


class ConnectivityError(ExporterError):
    """No usable database connection; fails the whole scrape."""

    code = "connectivity_error"


class QueryError(ExporterError):
    """A single query failed to execute; fails the collector that issued it."""

    code = "query_error"


class ScanError(ExporterError):
    """A result row did not match the shape the collector declared."""

    code = "scan_error"


class NoRowsError(ScanError):
    """A scalar query returned no row at all."""

    code = "no_rows"


class CancellationError(ExporterError):
    """The scrape deadline passed or the caller went away."""

    code = "cancelled"


class ConfigurationError(ExporterError):
    """Startup-time misconfiguration (duplicate collector, bad descriptor, ...)."""

    code = "configuration_error"


@dataclass(frozen=True, slots=True)
class AppError(Exception):
    """A controlled, user-facing error.

    Use this for validation failures, unsupported routes, etc.
    """

    status_code: int
    code: str
    message: str

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.code} ({self.status_code}): {self.message}"
