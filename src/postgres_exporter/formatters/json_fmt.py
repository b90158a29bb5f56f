"""JSON formatter."""

from __future__ import annotations

import json
from typing import Any

from ..core import ScrapeResult
from .base import BaseFormatter


class JsonFormatter(BaseFormatter):
    """Format samples and collector errors as JSON."""

    def format(self, result: ScrapeResult) -> str:
        payload: dict[str, Any] = {
            "scrape_id": result.scrape_id,
            "ok": result.ok,
            "errors": {name: str(err) for name, err in result.errors.items()},
            "samples": [
                {
                    "name": s.descriptor.name,
                    "type": s.kind.value,
                    "labels": s.labels,
                    "value": s.value,
                }
                for s in result.samples
            ],
        }
        return json.dumps(payload, ensure_ascii=False, indent=2)
