"""One-shot scrape command handler."""

from __future__ import annotations

import argparse
import sys

from ..context import ScrapeContext
from ..core import Scraper
from ..errors import ConnectivityError
from ..formatters import get_formatter
from ..utils import output_text
from .common import build_provider, resolve_collectors, settings_from_args


def cmd_scrape(args: argparse.Namespace) -> int:
    """Run every enabled collector once and print the samples.

    Exit codes: 0 all collectors succeeded, 1 at least one failed,
    3 the database was unreachable.
    """
    cfg = settings_from_args(args)
    collectors = resolve_collectors(args, cfg)
    formatter = get_formatter(args.format)

    provider = build_provider(cfg)
    try:
        provider.open(wait=False)
        with ScrapeContext(cfg.scrape_timeout_seconds) as ctx:
            result = Scraper(collectors, provider).scrape(ctx)
    except ConnectivityError as e:
        sys.stderr.write(f"Error: {e}\n")
        return 3
    finally:
        provider.close()

    output_text(formatter.format(result), args.output)

    for name, err in sorted(result.errors.items()):
        sys.stderr.write(f"collector {name} failed: {err}\n")
    return 0 if result.ok else 1
