"""
EduManage: Flask Web Application

Multi-tenant school administration: schools, staff, students, parents,
classes, gradebook, quizzes, lesson plans, files, notifications and a
content catalogue, served as a JSON API plus a single-page frontend.
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
from typing import Any

from flask import Flask, Response, jsonify, request as flask_request
from werkzeug.exceptions import HTTPException

import database
from auth import auth_bp
from blueprints import register_blueprints
from extensions import RATE_LIMIT_MESSAGE, cors, limiter
from helpers import ApiError

logger = logging.getLogger(__name__)

NETLIFY_ORIGIN = re.compile(r"^https://.*\.netlify\.app$")

CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
CORS_HEADERS = ["Content-Type", "Authorization", "X-Requested-With", "Accept", "Origin", "X-Request-ID"]


def _allowed_origins(app: Flask) -> list:
    origins: list = list(app.config.get("CORS_ORIGINS", []))
    frontend = app.config.get("FRONTEND_URL")
    if frontend and frontend not in origins:
        origins.append(frontend)
    origins.append(NETLIFY_ORIGIN)
    return origins


def _register_error_handlers(app: Flask) -> None:
    def _internal(exc: Exception) -> tuple[Response, int]:
        body: dict[str, Any] = {"error": "Internal server error"}
        if app.config.get("ENVIRONMENT") != "production":
            body["message"] = str(exc)
        return jsonify(body), 500

    @app.errorhandler(ApiError)
    def handle_api_error(exc: ApiError):
        return jsonify(exc.to_dict()), exc.status

    @app.errorhandler(database.DatabaseError)
    def handle_database_error(exc: database.DatabaseError):
        if exc.kind == "integrity":
            logger.info("Integrity violation on %s: %s", flask_request.path, exc.detail)
            return jsonify({"error": "Request conflicts with existing data"}), 400
        logger.error("Database error (%s) on %s", exc.kind, flask_request.path)
        return _internal(exc)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        if exc.code == 404:
            return jsonify({"error": "Route not found"}), 404
        if exc.code == 405:
            return jsonify({"error": "Method not allowed"}), 405
        if exc.code == 413:
            max_mb = app.config.get("MAX_FILE_SIZE", 10 * 1024 * 1024) // (1024 * 1024)
            return jsonify({"error": f"File too large. Maximum size is {max_mb}MB."}), 413
        if exc.code == 429:
            return jsonify({"error": RATE_LIMIT_MESSAGE}), 429
        return jsonify({"error": exc.description or exc.name}), exc.code or 500

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        logger.exception("Unhandled error on %s %s", flask_request.method, flask_request.path)
        return _internal(exc)


def create_app(test_config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)

    # Load config
    from config import config_by_name
    env = os.environ.get("FLASK_ENV", "development")
    if test_config is not None and test_config.get("TESTING"):
        env = "testing"
    cfg = config_by_name.get(env, config_by_name["development"])
    app.config.from_object(cfg)
    if test_config is not None:
        app.config.update(test_config)
    elif hasattr(cfg, "validate"):
        cfg.validate()

    app.secret_key = app.config.get("SECRET_KEY", os.environ.get("SECRET_KEY", "dev-key-change-in-production"))

    # Structured logging
    from logging_config import init_logging
    init_logging(app)

    # CORS allow-list; other origins simply receive no CORS headers
    cors.init_app(
        app,
        origins=_allowed_origins(app),
        supports_credentials=True,
        methods=CORS_METHODS,
        allow_headers=CORS_HEADERS,
    )

    # Response compression
    from flask_compress import Compress
    Compress(app)

    # Static file serving for production (whitenoise) with long cache headers
    from whitenoise import WhiteNoise
    app.wsgi_app = WhiteNoise(
        app.wsgi_app,
        root=os.path.join(app.root_path, "static"),
        prefix="static/",
        max_age=31536000 if not app.debug else 0,
    )

    # Register database teardown
    database.init_app(app)

    # Rate limiter (disabled in testing)
    limiter.init_app(app)
    if app.config.get("TESTING"):
        limiter.enabled = False

    app.register_blueprint(auth_bp)
    register_blueprints(app)
    _register_error_handlers(app)

    # Security headers
    @app.after_request
    def set_security_headers(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "script-src 'self'; "
            "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com; "
            "font-src 'self' https://fonts.gstatic.com; "
            "img-src 'self' data:; "
            "connect-src 'self'"
        )
        if not app.debug:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    # ETag support for JSON API responses
    @app.after_request
    def set_etag(response: Response) -> Response:
        if (
            response.status_code == 200
            and response.content_type
            and "application/json" in response.content_type
            and response.content_length
            and response.content_length < 1_048_576  # < 1 MB
        ):
            data = response.get_data()
            etag = '"' + hashlib.md5(data).hexdigest() + '"'
            response.headers["ETag"] = etag
            if_none_match = flask_request.headers.get("If-None-Match")
            if if_none_match and if_none_match == etag:
                response.status_code = 304
                response.set_data(b"")
        return response

    # Startup connectivity check; the app still starts when the database is down
    if not app.config.get("TESTING"):
        with app.app_context():
            try:
                logger.info("Database reachable at %s", database.connect())
            except Exception as exc:
                logger.warning("Database connection check failed: %s", exc)

    return app


if __name__ == "__main__":
    create_app().run(
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "5000")),
        debug=os.environ.get("FLASK_ENV", "development") == "development",
    )
