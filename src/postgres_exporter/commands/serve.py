"""HTTP exporter command handler."""

from __future__ import annotations

import argparse
import logging
import signal
import threading
from typing import Any

from ..core import Scraper
from ..handler import ExporterApp, make_http_server
from .common import build_provider, resolve_collectors, settings_from_args

log = logging.getLogger(__name__)


def cmd_serve(args: argparse.Namespace) -> int:
    """Expose the scrape endpoint until SIGINT/SIGTERM."""
    cfg = settings_from_args(args)
    collectors = resolve_collectors(args, cfg)

    provider = build_provider(cfg)
    provider.open(wait=False)

    app = ExporterApp(Scraper(collectors, provider), cfg=cfg)
    httpd = make_http_server(app, cfg.listen_address, cfg.listen_port)

    def _signal_handler(signum: int, frame: Any) -> None:
        log.info("shutdown_requested", extra={"code": signal.Signals(signum).name})
        # shutdown() blocks until serve_forever returns, so not on this thread
        threading.Thread(target=httpd.shutdown, daemon=True).start()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    log.info(
        "listening",
        extra={
            "path": f"{cfg.listen_address}:{cfg.listen_port}{cfg.telemetry_path}",
            "collector": [c.name for c in collectors],
        },
    )
    try:
        httpd.serve_forever()
    finally:
        httpd.server_close()
        provider.close()
    return 0
