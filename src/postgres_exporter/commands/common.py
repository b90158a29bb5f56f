"""Helpers shared by the command handlers."""

from __future__ import annotations

import argparse
from dataclasses import replace

from ..collectors import CollectorOverrides, default_registry
from ..collectors.base import BaseCollector
from ..config import Settings, settings
from ..db import PgConnectionProvider
from ..utils import split_names


def add_connection_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--dsn",
        type=str,
        default=None,
        help="libpq connection string or URI (default: $DATA_SOURCE_NAME)",
    )


def add_collector_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--enable-collector",
        action="append",
        metavar="NAME",
        help="Enable a collector that is off by default (repeatable, comma-separated)",
    )
    p.add_argument(
        "--disable-collector",
        action="append",
        metavar="NAME",
        help="Disable a collector that is on by default (repeatable, comma-separated)",
    )


def settings_from_args(args: argparse.Namespace) -> Settings:
    """Environment settings with command-line flags applied on top."""
    overrides: dict[str, object] = {}
    for attr, dest in (
        ("data_source_name", "dsn"),
        ("listen_address", "listen_address"),
        ("listen_port", "port"),
        ("telemetry_path", "telemetry_path"),
        ("scrape_timeout_seconds", "timeout"),
    ):
        value = getattr(args, dest, None)
        if value is not None:
            overrides[attr] = value
    return replace(settings, **overrides)


def collector_overrides(args: argparse.Namespace, cfg: Settings) -> CollectorOverrides:
    """Merge env and CLI collector selection; the command line wins."""
    cli_enable = split_names(getattr(args, "enable_collector", None))
    cli_disable = split_names(getattr(args, "disable_collector", None))
    return CollectorOverrides(
        enable=(cfg.collectors_enabled - cli_disable) | cli_enable,
        disable=(cfg.collectors_disabled - cli_enable) | cli_disable,
    )


def resolve_collectors(args: argparse.Namespace, cfg: Settings) -> tuple[BaseCollector, ...]:
    return default_registry.resolve_enabled(collector_overrides(args, cfg))


def build_provider(cfg: Settings) -> PgConnectionProvider:
    return PgConnectionProvider(
        cfg.data_source_name,
        min_size=cfg.pool_min_size,
        max_size=cfg.pool_max_size,
        acquire_timeout=cfg.pool_acquire_timeout_seconds,
        connect_timeout=cfg.connect_timeout_seconds,
    )
