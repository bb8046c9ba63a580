"""
Logging setup for the EduManage API.

Production emits one JSON object per line; development gets plain text.
Every record logged while a request is active carries the request id and,
once the bearer token has been checked, the caller's user id and school.
"""

from __future__ import annotations

import json
import logging
import time
import uuid

from flask import Flask, g, has_request_context, request

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s"

# Record attributes copied into JSON output when present
CONTEXT_FIELDS = ("request_id", "user_id", "school_id", "method", "path", "status", "duration_ms")


class RequestContextFilter(logging.Filter):
    """Stamp records with the current request id and principal."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            principal = g.get("principal")
            record.request_id = g.get("request_id", "-")
            record.user_id = principal.user_id if principal else None
            record.school_id = principal.school_id if principal else None
        else:
            record.request_id = "-"
        return True


class JSONFormatter(logging.Formatter):
    """Emit log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None and value != "-":
                entry[field] = value
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _build_handler(log_format: str) -> logging.Handler:
    handler = logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler.addFilter(RequestContextFilter())
    return handler


def init_logging(app: Flask) -> None:
    """Install the handler on the root logger and the per-request hooks."""
    level = str(app.config.get("LOG_LEVEL", "INFO")).upper()

    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    root.handlers.clear()
    root.addHandler(_build_handler(app.config.get("LOG_FORMAT", "text")))

    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    access = logging.getLogger("edumanage.access")

    @app.before_request
    def _start_request():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        g.request_start = time.perf_counter()

    @app.after_request
    def _access_log(response):
        response.headers["X-Request-ID"] = g.get("request_id", "-")
        if request.path.startswith("/static"):
            return response
        duration_ms = (time.perf_counter() - g.get("request_start", time.perf_counter())) * 1000
        access.info(
            "%s %s %s %.0fms", request.method, request.path, response.status_code, duration_ms,
            extra={"method": request.method, "path": request.path,
                   "status": response.status_code, "duration_ms": round(duration_ms, 1)},
        )
        return response
