"""Health and version command handlers."""

from __future__ import annotations

import argparse
import json
import sys
from datetime import UTC, datetime

from ..context import ScrapeContext
from ..db import Column, ColumnKind, ResultSchema
from ..errors import ExporterError
from .common import build_provider, settings_from_args

_PING_SCHEMA = ResultSchema(Column("ok", ColumnKind.FLOAT))


def cmd_health(args: argparse.Namespace) -> int:
    """Check that the database answers a trivial query."""
    cfg = settings_from_args(args)
    health: dict[str, object] = {
        "ok": True,
        "timestamp": datetime.now(UTC).isoformat(timespec="seconds"),
        "service": cfg.service_name,
    }

    provider = build_provider(cfg)
    try:
        provider.open(wait=False)
        with ScrapeContext(cfg.pool_acquire_timeout_seconds) as ctx:
            with provider.acquire(ctx) as conn:
                conn.query_row(ctx, "SELECT 1", _PING_SCHEMA)
    except ExporterError as e:
        health["ok"] = False
        health["error"] = {"code": e.code, "message": str(e)}
    finally:
        provider.close()

    sys.stdout.write(json.dumps(health) + "\n")
    return 0 if health["ok"] else 1


def cmd_version(args: argparse.Namespace) -> int:
    """Show version."""
    from .. import __version__

    sys.stdout.write(f"postgres-exporter version {__version__}\n")
    return 0
