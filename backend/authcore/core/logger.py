"""Structured JSON logging with request correlation."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from flask import Flask, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_HEADERS = ("X-Request-ID", "X-Correlation-ID")
REQUEST_ID_ENVIRON_KEY = "authcore.request_id"

# Attributes copied from ``extra={...}`` into the JSON payload.
EXTRA_KEYS = ("endpoint", "elapsed_ms", "user_id", "purpose", "method", "channel", "event", "ticket_spent")


class JSONFormatter(logging.Formatter):
    """Render log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:  # pragma: no cover - formatting logic
        payload: dict[str, Any] = {
            "time": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        for key in EXTRA_KEYS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class RequestIdFilter(logging.Filter):
    """Stamp a ``request_id`` attribute on every record (``None`` outside requests)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = ensure_request_id() if has_request_context() else None
        return True


def ensure_request_id() -> str:
    """Return the current request identifier, generating one when necessary.

    The identifier lives in the WSGI environ of the request, so it never
    outlives the request even when an outer app context stays pushed.
    """

    if has_request_context():
        environ = request.environ
        if REQUEST_ID_ENVIRON_KEY in environ:
            return environ[REQUEST_ID_ENVIRON_KEY]  # type: ignore[no-any-return]
        for header in CORRELATION_HEADERS:
            value = request.headers.get(header)
            if value:
                environ[REQUEST_ID_ENVIRON_KEY] = value
                return value
        request_id = str(uuid4())
        environ[REQUEST_ID_ENVIRON_KEY] = request_id
        return request_id
    return str(uuid4())


def redact_email(address: str) -> str:
    """Mask the local part of an email address for log output."""
    if "@" not in address:
        return "redacted"
    local, domain = address.split("@", 1)
    return f"{local[:2]}***@{domain}"


def configure_logging(level: str | int = "INFO") -> None:
    """Configure the root logger with JSON-formatted stdout output."""

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RequestIdFilter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    level_value: int | str = level
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        level_value = resolved if isinstance(resolved, int) else level.upper()
    root.setLevel(level_value)


def init_app(app: Flask) -> None:
    """Seed a request id per request and echo it back on the response."""

    app.logger.addFilter(RequestIdFilter())

    @app.before_request
    def _seed_request_id() -> None:  # pragma: no cover - integration glue
        ensure_request_id()

    @app.after_request
    def _inject_response_header(response):  # pragma: no cover - integration glue
        response.headers.setdefault(REQUEST_ID_HEADER, ensure_request_id())
        return response


__all__ = ["configure_logging", "init_app", "ensure_request_id", "redact_email"]
