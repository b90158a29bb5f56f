from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Mapping
from typing import Any
from wsgiref.simple_server import WSGIRequestHandler, make_server

from prometheus_client.exposition import CONTENT_TYPE_LATEST, ThreadingWSGIServer, generate_latest

from .config import Settings, settings
from .context import ScrapeContext
from .core import Scraper
from .errors import AppError, ConnectivityError
from .http import ApiResponse, StartResponse, json_error, json_ok, text_ok

log = logging.getLogger(__name__)

_LANDING_PAGE = """<html>
<head><title>PostgreSQL Exporter</title></head>
<body>
<h1>PostgreSQL Exporter</h1>
<p><a href="{path}">Metrics</a></p>
</body>
</html>
"""


def _extract_request_id(environ: Mapping[str, Any]) -> str:
    """Correlation id for logs + responses."""
    rid = environ.get("HTTP_X_REQUEST_ID")
    if isinstance(rid, str) and rid:
        return rid
    return uuid.uuid4().hex


def _scrape_timeout(environ: Mapping[str, Any], cfg: Settings) -> float:
    """Scrape deadline: our own limit, tightened by Prometheus' timeout header."""
    timeout = cfg.scrape_timeout_seconds
    raw = environ.get("HTTP_X_PROMETHEUS_SCRAPE_TIMEOUT_SECONDS")
    if not raw:
        return timeout
    try:
        candidate = float(raw) - cfg.scrape_timeout_offset_seconds
    except ValueError:
        return timeout
    if candidate > 0:
        timeout = min(timeout, candidate)
    return timeout


class ExporterApp:
    """WSGI application exposing the scrape endpoint."""

    def __init__(self, scraper: Scraper, *, cfg: Settings = settings) -> None:
        self.scraper = scraper
        self.cfg = cfg

    def __call__(self, environ: Mapping[str, Any], start_response: StartResponse) -> Iterable[bytes]:
        request_id = _extract_request_id(environ)
        method = str(environ.get("REQUEST_METHOD") or "GET").upper()
        path = str(environ.get("PATH_INFO") or "/")

        try:
            log.info("request", extra={"request_id": request_id, "method": method, "path": path})
            resp = self._route(method, path, environ, request_id=request_id)

        except AppError as e:
            log.warning("handled_error", extra={"request_id": request_id, "code": e.code})
            resp = json_error(e.status_code, e.code, e.message, request_id=request_id)

        except Exception:
            log.exception("unhandled_error", extra={"request_id": request_id})
            resp = json_error(500, "internal_error", "Unexpected server error.", request_id=request_id)

        return resp.to_wsgi(start_response)

    def _route(
        self, method: str, path: str, environ: Mapping[str, Any], *, request_id: str
    ) -> ApiResponse:
        if method != "GET":
            raise AppError(status_code=405, code="method_not_allowed", message="Only GET is supported.")

        if path == "/healthz":
            return json_ok({"ok": True}, request_id=request_id)

        if path == self.cfg.telemetry_path:
            return self._metrics(environ, request_id=request_id)

        if path == "/":
            page = _LANDING_PAGE.format(path=self.cfg.telemetry_path)
            return text_ok(page, "text/html; charset=utf-8", request_id=request_id)

        raise AppError(status_code=404, code="not_found", message="No route matches the request.")

    def _metrics(self, environ: Mapping[str, Any], *, request_id: str) -> ApiResponse:
        timeout = _scrape_timeout(environ, self.cfg)
        with ScrapeContext(timeout) as ctx:
            try:
                result = self.scraper.scrape(ctx)
            except ConnectivityError as e:
                raise AppError(
                    status_code=503, code="database_unavailable", message=str(e)
                ) from e

        if not result.ok:
            log.info(
                "partial_scrape",
                extra={
                    "request_id": request_id,
                    "scrape_id": result.scrape_id,
                    "collector": sorted(result.errors),
                },
            )
        return text_ok(generate_latest(result), CONTENT_TYPE_LATEST, request_id=request_id)


class _LoggingRequestHandler(WSGIRequestHandler):
    def log_message(self, format: str, *args: Any) -> None:
        log.debug(format % args)


def make_http_server(app: ExporterApp, address: str, port: int) -> ThreadingWSGIServer:
    """Threaded WSGI server; each scrape runs on its own thread."""
    return make_server(
        address, port, app, ThreadingWSGIServer, handler_class=_LoggingRequestHandler
    )
