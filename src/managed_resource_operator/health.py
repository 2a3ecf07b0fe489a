"""Health, readiness and metrics endpoints for the operator."""

from __future__ import annotations

import logging
import threading
from typing import Any

from prometheus_client import make_wsgi_app
from werkzeug.serving import BaseWSGIServer, make_server
from werkzeug.wrappers import Response

logger = logging.getLogger(__name__)

_ready = threading.Event()


def mark_ready() -> None:
    """Report the operator as ready to serve."""
    _ready.set()


def mark_not_ready() -> None:
    """Report the operator as not ready, e.g. while shutting down."""
    _ready.clear()


def is_ready() -> bool:
    return _ready.is_set()


def create_combined_wsgi_app() -> Any:
    """Create a WSGI app that combines metrics and health check endpoints.

    ``/healthz`` always answers 200 while the process runs. ``/readyz``
    answers 503 until ``mark_ready`` has been called.

    Returns:
        Combined WSGI application
    """
    metrics_app = make_wsgi_app()

    def combined_app(environ: dict[str, Any], start_response: Any) -> list[bytes]:
        """WSGI app that routes /healthz and /readyz, delegates /metrics to prometheus."""
        path = environ.get("PATH_INFO", "")

        if path == "/healthz":
            response = Response('{"status":"ok"}', mimetype="application/json", status=200)
            return response(environ, start_response)
        elif path == "/readyz":
            if is_ready():
                response = Response('{"status":"ready"}', mimetype="application/json", status=200)
            else:
                response = Response('{"status":"not ready"}', mimetype="application/json", status=503)
            return response(environ, start_response)
        elif path == "/metrics":
            return metrics_app(environ, start_response)
        else:
            response = Response('{"error":"not found"}', mimetype="application/json", status=404)
            return response(environ, start_response)

    return combined_app


def start_health_server(port: int) -> BaseWSGIServer:
    """Serve metrics and health endpoints from a background thread.

    Args:
        port: Port to listen on

    Returns:
        The running server, so it can be shut down on exit
    """
    server = make_server("", port, create_combined_wsgi_app(), threaded=True)
    thread = threading.Thread(target=server.serve_forever, name="health-server", daemon=True)
    thread.start()
    logger.info(f"Serving /metrics, /healthz and /readyz on port {port}")
    return server
