"""Flask application factory and HTTP routes."""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Dict, Optional

from flask import Flask, Response, jsonify, redirect, request
from werkzeug.middleware.proxy_fix import ProxyFix

from ..config import AppConfig
from ..logging_setup import ACCESS_LOGGER_NAME
from ..measurements.models import Measurement
from ..measurements.store import ResultStore

LOGGER = logging.getLogger(__name__)
ACCESS_LOGGER = logging.getLogger(ACCESS_LOGGER_NAME)

LATEST_PATH = "/api/speedtest/latest"

# Every path answers every method, like a bare net/http handler.
HTTP_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def round_decimals(value: Optional[float], decimals: int) -> Optional[float]:
    """Round half away from zero, unlike the builtin ``round``."""

    if value is None:
        return None
    shift = 10 ** decimals
    return math.copysign(math.floor(abs(value) * shift + 0.5) / shift, value)


def speedtest_payload(measurement: Measurement, config: AppConfig) -> Dict[str, Any]:
    timestamp = measurement.taken_at.isoformat()
    server_host = config.web.server_host
    return {
        "id": 1,
        "ping": round_decimals(measurement.latency_ms, 3),
        "download": round_decimals(measurement.download_mbps, 4),
        "upload": round_decimals(measurement.upload_mbps, 4),
        "server_id": 1,
        "server_host": server_host,
        "server_name": config.web.server_name,
        "url": f"http://{server_host}{LATEST_PATH}",
        "scheduled": True,
        "failed": True,
        "created_at": timestamp,
        "updated_at": timestamp,
    }


def _plain_error(message: str) -> Response:
    return Response(message + "\n", status=500, mimetype="text/plain")


def create_web_app(config: AppConfig, store: ResultStore) -> Flask:
    app = Flask(__name__)
    app.json.sort_keys = False

    if config.web.reverse_proxy_headers:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)  # type: ignore

    @app.route(LATEST_PATH, methods=HTTP_METHODS)
    def api_speedtest_latest():
        measurement = store.read()
        if measurement is None:
            LOGGER.error("No measurement available yet")
            return _plain_error("No measurement available")
        try:
            data = speedtest_payload(measurement, config)
        except (TypeError, ValueError, OverflowError) as exc:
            LOGGER.error("Failed to build speedtest response: %s", exc)
            return _plain_error("Failed to build response")
        return jsonify({"message": "ok", "data": data})

    @app.route("/", defaults={"path": ""}, methods=HTTP_METHODS)
    @app.route("/<path:path>", methods=HTTP_METHODS)
    def redirect_to_latest(path: str):
        return redirect(LATEST_PATH, code=301)

    @app.after_request
    def log_request(response: Response) -> Response:
        ACCESS_LOGGER.info(combined_log_line(response))
        return response

    return app


def combined_log_line(response: Response) -> str:
    """Format the current request in Apache combined log format."""

    return '%s - - [%s] "%s %s %s" %s %s "%s" "%s"' % (
        request.remote_addr or "-",
        datetime.now().astimezone().strftime("%d/%b/%Y:%H:%M:%S %z"),
        request.method,
        request.full_path.rstrip("?"),
        request.environ.get("SERVER_PROTOCOL", "HTTP/1.1"),
        response.status_code,
        response.calculate_content_length() or "-",
        request.referrer or "-",
        request.user_agent.string or "-",
    )
