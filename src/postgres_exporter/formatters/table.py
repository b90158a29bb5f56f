"""Table formatter for human-readable output."""

from __future__ import annotations

from ..core import ScrapeResult
from .base import BaseFormatter


def _format_labels(labels: dict[str, str]) -> str:
    return ", ".join(f"{k}={v}" for k, v in labels.items())


class TableFormatter(BaseFormatter):
    """Format samples as a human-readable table, grouped by metric."""

    def format(self, result: ScrapeResult) -> str:
        lines: list[str] = []

        lines.append(f"{'=' * 60}")
        lines.append(f"  PostgreSQL Scrape - {result.scrape_id}")
        lines.append(f"{'=' * 60}")

        current = None
        for sample in result.samples:
            if sample.descriptor.name != current:
                current = sample.descriptor.name
                lines.append("")
                lines.append(f"{current} ({sample.kind.value})")
            labels = _format_labels(sample.labels)
            lines.append(f"  {labels or '-':50} {sample.value:>14g}")

        if result.errors:
            lines.append("")
            lines.append("FAILED COLLECTORS")
            for name, err in sorted(result.errors.items()):
                lines.append(f"  {name:15} {err}")

        lines.append("")
        lines.append(f"{'=' * 60}")

        return "\n".join(lines)
