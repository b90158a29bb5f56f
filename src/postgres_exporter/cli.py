"""CLI interface for the PostgreSQL exporter."""

from __future__ import annotations

import argparse
import sys

from .commands.common import add_collector_args, add_connection_args
from .commands.health import cmd_health, cmd_version
from .commands.list_collectors import cmd_collectors
from .commands.scrape import cmd_scrape
from .commands.serve import cmd_serve
from .config import settings
from .errors import ConfigurationError
from .logging import configure_logging


def _positive_float(raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {raw!r}") from None
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than zero: {raw!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    """Build argument parser."""
    parser = argparse.ArgumentParser(
        prog="postgres-exporter",
        description="Prometheus exporter for PostgreSQL statistics views",
    )

    # Global options
    parser.add_argument(
        "--version",
        "-V",
        action="store_true",
        help="Show version and exit",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Log level (default: $LOG_LEVEL or INFO)",
    )

    subparsers = parser.add_subparsers(dest="command")

    # serve command
    p_serve = subparsers.add_parser(
        "serve",
        help="Expose metrics over HTTP",
    )
    add_connection_args(p_serve)
    add_collector_args(p_serve)
    p_serve.add_argument(
        "--listen-address",
        type=str,
        default=None,
        help=f"Address to listen on (default: {settings.listen_address})",
    )
    p_serve.add_argument(
        "--port",
        "-p",
        type=int,
        default=None,
        help=f"Port to listen on (default: {settings.listen_port})",
    )
    p_serve.add_argument(
        "--telemetry-path",
        type=str,
        default=None,
        help=f"Path under which to expose metrics (default: {settings.telemetry_path})",
    )
    p_serve.add_argument(
        "--timeout",
        type=_positive_float,
        default=None,
        help=f"Upper bound on one scrape in seconds (default: {settings.scrape_timeout_seconds})",
    )
    p_serve.set_defaults(func=cmd_serve)

    # scrape command
    p_scrape = subparsers.add_parser(
        "scrape",
        help="Run one scrape and print the samples",
    )
    add_connection_args(p_scrape)
    add_collector_args(p_scrape)
    p_scrape.add_argument(
        "--format",
        "-f",
        choices=["json", "table", "prometheus"],
        default="prometheus",
        help="Output format (default: prometheus)",
    )
    p_scrape.add_argument(
        "--output",
        "-o",
        type=str,
        default=None,
        help="Output file (default: stdout)",
    )
    p_scrape.add_argument(
        "--timeout",
        type=_positive_float,
        default=None,
        help=f"Scrape deadline in seconds (default: {settings.scrape_timeout_seconds})",
    )
    p_scrape.set_defaults(func=cmd_scrape)

    # collectors command
    p_collectors = subparsers.add_parser(
        "collectors",
        help="List registered collectors",
    )
    add_collector_args(p_collectors)
    p_collectors.add_argument(
        "--format",
        "-f",
        choices=["json", "table"],
        default="table",
        help="Output format (default: table)",
    )
    p_collectors.set_defaults(func=cmd_collectors)

    # health command
    p_health = subparsers.add_parser(
        "health",
        help="Check database connectivity",
    )
    add_connection_args(p_health)
    p_health.set_defaults(func=cmd_health)

    # version command
    p_version = subparsers.add_parser(
        "version",
        help="Show version",
    )
    p_version.set_defaults(func=cmd_version)

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(level=args.log_level)

    if args.version:
        from . import __version__

        sys.stdout.write(f"postgres-exporter version {__version__}\n")
        raise SystemExit(0)

    if not args.command:
        parser.print_help()
        raise SystemExit(0)

    try:
        rc = int(args.func(args))
    except ConfigurationError as e:
        sys.stderr.write(f"Error: {e}\n")
        rc = 2
    raise SystemExit(rc)
