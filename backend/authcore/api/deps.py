"""Shared API helpers for request parsing and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

from flask import Response, current_app, jsonify, request
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request
from marshmallow import Schema

from authcore.core.errors import Unauthorized

F = TypeVar("F", bound=Callable[..., Any])

BEARER_PREFIX = "Bearer "


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def success(data: Any = None, *, message: str = "OK", status: int = 200) -> Response:
    """Wrap ``data`` in the ``{success, message, data}`` envelope."""

    return json_response({"success": True, "message": message, "data": data}, status=status)


def load_body(schema: Schema) -> dict[str, Any]:
    """Validate the JSON body with ``schema`` (errors become 422 problems)."""

    return schema.load(request.get_json(silent=True) or {})


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]


def require_auth(func: F) -> F:
    """Ensure the request carries a valid, unrevoked access token."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        verify_jwt_in_request(optional=False)
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def bearer_token() -> str | None:
    """Return the raw access token from the ``Authorization`` header, if any."""

    header = request.headers.get("Authorization", "")
    if not header.startswith(BEARER_PREFIX):
        return None
    token = header[len(BEARER_PREFIX) :].strip()
    return token or None


def current_user_id() -> int:
    """Return the authenticated user's id (``sub`` claim)."""

    identity = get_jwt_identity()
    try:
        return int(identity)
    except (TypeError, ValueError) as exc:
        raise Unauthorized("Invalid token subject", code="invalid_token") from exc
