"""Core routes: health checks, API self-test and the single-page app shell."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request, send_from_directory

from helpers import ApiError

logger = logging.getLogger(__name__)

bp = Blueprint("core", __name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ── Health checks ─────────────────────────────────────────

_start_time = time.time()


@bp.route("/health")
def health():
    return jsonify({
        "status": "OK",
        "timestamp": _timestamp(),
        "uptime": round(time.time() - _start_time, 3),
        "environment": current_app.config.get("ENVIRONMENT", "development"),
    })


@bp.route("/ready")
def ready():
    try:
        from database import connect
        connect()
        return jsonify({"status": "ready"}), 200
    except Exception as exc:
        logger.error("Readiness check failed: %s", exc, exc_info=True)
        return jsonify({"status": "not_ready"}), 503


@bp.route("/live")
def live():
    return jsonify({"status": "alive"}), 200


@bp.route("/api/test")
def api_test():
    return jsonify({
        "message": "API is working correctly",
        "timestamp": _timestamp(),
        "version": current_app.config.get("APP_VERSION", "1.0.0"),
    })


# ── Single-page app shell ─────────────────────────────────

SPA_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


@bp.route("/", defaults={"path": ""}, methods=SPA_METHODS)
@bp.route("/<path:path>", methods=SPA_METHODS)
def spa(path):
    """Serve index.html for every non-API GET; the SPA routes client-side."""
    if path == "api" or path.startswith("api/") or request.method != "GET":
        raise ApiError("Route not found", 404)
    return send_from_directory(current_app.static_folder, "index.html", max_age=0)
