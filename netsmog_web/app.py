"""
Application factory for NetSmog Web.

The coordinator state lives in ``app.extensions``:

- ``netsmog_catalogue``: CatalogueHolder (swapped on SIGHUP)
- ``netsmog_secrets``: SecretStore (swapped on SIGHUP)
- ``netsmog_store``: SampleStore
- ``netsmog_error_ring``: ErrorRing of recent unhandled exceptions
"""
from __future__ import annotations

import threading
import traceback
from collections import deque
from time import perf_counter
from typing import Any, Dict, List

from flask import Flask, Response, g, request
from werkzeug.exceptions import HTTPException

from netsmog.auth.secrets import SecretStore
from netsmog.catalogue.config import CatalogueHolder
from netsmog.util.logging import get_logger
from netsmog.util.time import utc_now_str
from netsmog_web.config import ERROR_RING_MAX, SLOW_REQUEST_MS
from netsmog_web.storage import SampleStore

logger = get_logger(__name__)


class ErrorRing:
    """Bounded, thread-safe list of the most recent unhandled request errors."""

    def __init__(self, size: int = ERROR_RING_MAX) -> None:
        self._entries: deque = deque(maxlen=size)
        self._lock = threading.Lock()

    def capture(self, exc: BaseException) -> Dict[str, Any]:
        entry = {
            "ts": utc_now_str(),
            "method": request.method,
            "path": request.path,
            "worker": request.headers.get("Worker", ""),
            "type": type(exc).__name__,
            "error": str(exc),
            "traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        }
        with self._lock:
            self._entries.append(entry)
        return entry

    def entries(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._entries)


def create_app(holder: CatalogueHolder, secrets: SecretStore, store: SampleStore) -> Flask:
    """Build the coordinator app around already-loaded config, secrets and storage."""
    app = Flask(__name__)
    app.extensions["netsmog_catalogue"] = holder
    app.extensions["netsmog_secrets"] = secrets
    app.extensions["netsmog_store"] = store
    app.extensions["netsmog_error_ring"] = errors = ErrorRing()

    @app.before_request
    def start_timer():
        g.started = perf_counter()

    @app.after_request
    def log_failed_or_slow(response: Response):
        started = g.pop("started", None)
        if started is None:
            return response
        elapsed_ms = round((perf_counter() - started) * 1000.0, 1)
        if response.status_code >= 400 or elapsed_ms > SLOW_REQUEST_MS:
            logger.info(
                "%s %s -> %d in %.1fms",
                request.method,
                request.path,
                response.status_code,
                elapsed_ms,
                extra={"worker": request.headers.get("Worker", ""), "duration_ms": elapsed_ms},
            )
        return response

    @app.errorhandler(Exception)
    def unhandled(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc
        entry = errors.capture(exc)
        logger.error("unhandled %s on %s %s: %s", entry["type"], entry["method"], entry["path"], exc)
        return Response("internal server error", status=500, mimetype="text/plain")

    from netsmog_web.blueprints.api_series import bp as api_series_bp
    from netsmog_web.blueprints.api_status import bp as api_status_bp
    from netsmog_web.blueprints.worker_api import bp as worker_api_bp

    for bp in (worker_api_bp, api_series_bp, api_status_bp):
        app.register_blueprint(bp)

    return app
