"""Status app exposing orchestrator and MIME registry state as JSON."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from flask import Flask
from werkzeug.serving import make_server

from .. import config as pf_config

logger = logging.getLogger(__name__)


def create_app(orchestrator) -> Flask:
    """Create and configure Flask application.

    Args:
        orchestrator: SelectionOrchestrator instance to report on

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)

    # Store orchestrator in app config for route handlers
    app.config["orchestrator"] = orchestrator

    from . import routes

    app.register_blueprint(routes.api_bp)

    return app


def start_status_server(orchestrator, bind: Optional[str] = None):
    """Serve the status app from a daemon thread.

    Args:
        orchestrator: SelectionOrchestrator instance to report on
        bind: "host:port", defaults to picturefill_monitoring_bind()

    Returns:
        The werkzeug server; call ``shutdown()`` to stop it
    """
    address = bind or pf_config.picturefill_monitoring_bind()
    host, _, port = address.rpartition(":")
    server = make_server(host, int(port), create_app(orchestrator), threaded=True)

    thread = threading.Thread(
        target=server.serve_forever,
        name="picturefill-status",
        daemon=True,
    )
    thread.start()
    logger.info("Status server started on %s", address)
    return server
