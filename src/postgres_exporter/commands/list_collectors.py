"""Collector listing command handler."""

from __future__ import annotations

import argparse
import json
import sys

from ..collectors import default_registry
from ..config import settings
from .common import collector_overrides


def cmd_collectors(args: argparse.Namespace) -> int:
    """List registered collectors and whether they would run."""
    overrides = collector_overrides(args, settings)
    default_registry.validate(overrides)
    rows = [
        {
            "name": entry.name,
            "enabled_by_default": entry.enabled_by_default,
            "enabled": default_registry.is_enabled(entry.name, overrides),
        }
        for entry in sorted(default_registry.entries(), key=lambda e: e.name)
    ]

    if args.format == "json":
        sys.stdout.write(json.dumps(rows, indent=2) + "\n")
        return 0

    for row in rows:
        state = "enabled" if row["enabled"] else "disabled"
        default = " (default)" if row["enabled"] == row["enabled_by_default"] else ""
        sys.stdout.write(f"{row['name']:20} {state}{default}\n")
    return 0
