"""Centralized JSON (RFC 7807) error handling for the API."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, jsonify, request
from marshmallow import ValidationError as MarshmallowValidationError
from werkzeug.exceptions import HTTPException

from authcore.core.logger import ensure_request_id
from authcore.services._shared import errors as svc

log = logging.getLogger(__name__)


def _http_status_to_code(status_code: int) -> str:
    """Map common HTTP status codes to canonical, stable error codes."""
    mapping = {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        405: "method_not_allowed",
        409: "conflict",
        415: "unsupported_media_type",
        422: "unprocessable_entity",
        429: "too_many_requests",
        500: "internal_server_error",
        503: "service_unavailable",
    }
    return mapping.get(status_code, "error")


def _as_problem(
    *,
    status: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build an RFC 7807 Problem Details dict.

    :param status: HTTP status code.
    :param code: Stable machine-consumable error code.
    :param message: Human-readable error summary (safe for clients).
    :param details: Optional safe, structured details.
    :returns: Problem+JSON dictionary (with the ``success`` flag clients expect).
    """
    problem: dict[str, Any] = {
        "type": "about:blank",
        "title": HTTPStatus(status).phrase,
        "status": status,
        "detail": message,
        "instance": request.path if request else None,
        "code": code,
        "success": False,
        "message": message,
    }
    if details:
        problem["details"] = details
    problem["request_id"] = ensure_request_id()
    return problem


def _problem_response(problem: dict[str, Any], status: int) -> tuple[Response, int]:
    """Return a Flask response with ``application/problem+json`` media type."""
    resp = jsonify(problem)
    resp.mimetype = "application/problem+json"
    return resp, status


def problem_response(status: int, code: str, message: str) -> tuple[Response, int]:
    """Build a complete problem response outside the registered handlers."""
    return _problem_response(_as_problem(status=status, code=code, message=message), status)


class APIError(Exception):
    """
    Represent a JSON-serializable API error.

    Parameters
    ----------
    message : str
        Human-readable description presented to clients.
    status_code : int, optional
        HTTP status code to return. Defaults to ``400``.
    code : str, optional
        Machine-readable identifier. Defaults to ``"bad_request"``.
    details : dict[str, Any] | None, optional
        Optional structured payload included in the response body.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        code: str = "bad_request",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = int(status_code)
        self.code = code
        self.details = details or {}

    def to_problem(self) -> dict[str, Any]:
        """Serialize error metadata into an RFC 7807 problem."""
        return _as_problem(
            status=self.status_code,
            code=self.code,
            message=self.message,
            details=self.details or None,
        )


class Unauthorized(APIError):
    """401 when authentication fails."""

    def __init__(self, message: str = "Unauthorized", code: str = "unauthorized") -> None:
        super().__init__(message, status_code=HTTPStatus.UNAUTHORIZED, code=code)


# Service error -> (status, code). Order matters: subclasses before bases.
SERVICE_ERROR_MAP: tuple[tuple[type[svc.ServiceError], int, str], ...] = (
    (svc.NotFoundError, HTTPStatus.NOT_FOUND, "not_found"),
    (svc.AlreadyInUseError, HTTPStatus.CONFLICT, "already_in_use"),
    (svc.ConflictError, HTTPStatus.CONFLICT, "conflict"),
    (svc.InvalidCredentialError, HTTPStatus.UNAUTHORIZED, "invalid_credential"),
    (svc.EmailNotConfirmedError, HTTPStatus.FORBIDDEN, "email_not_confirmed"),
    (svc.InvalidTokenError, HTTPStatus.UNAUTHORIZED, "invalid_token"),
    (svc.ExpiredTokenError, HTTPStatus.UNAUTHORIZED, "expired_token"),
    (svc.InvalidCodeError, HTTPStatus.BAD_REQUEST, "invalid_code"),
    (svc.ExpiredCodeError, HTTPStatus.BAD_REQUEST, "expired_code"),
    (svc.TooManyAttemptsError, HTTPStatus.TOO_MANY_REQUESTS, "too_many_attempts"),
    (svc.TwoFactorStateError, HTTPStatus.CONFLICT, "two_factor_state"),
    (svc.ConcurrentUpdateError, HTTPStatus.CONFLICT, "concurrent_update"),
    (svc.DeliveryError, HTTPStatus.SERVICE_UNAVAILABLE, "delivery_failed"),
    (svc.ValidationError, HTTPStatus.UNPROCESSABLE_ENTITY, "validation_error"),
)


def translate_service_error(exc: svc.ServiceError) -> APIError:
    """
    Map a service-level error to an :class:`APIError`.

    :param exc: Exception raised within a service.
    :returns: API error carrying status, stable code, and the safe message.
    """
    for exc_type, status, code in SERVICE_ERROR_MAP:
        if isinstance(exc, exc_type):
            return APIError(str(exc), status_code=status, code=code)
    return APIError(str(exc), status_code=HTTPStatus.BAD_REQUEST, code="bad_request")


def init_app(app: Flask) -> None:
    """
    Attach JSON error handlers to the Flask app.

    Notes
    -----
    - Guarantees RFC 7807 responses for all handled errors.
    - Emits 5xx with ``exc_info`` for traceability; 4xx as warnings.
    """

    @app.errorhandler(APIError)
    def handle_api_error(err: APIError):
        problem = err.to_problem()
        level = log.error if err.status_code >= 500 else log.warning
        level(
            "APIError: code=%s status=%s msg=%s",
            err.code,
            err.status_code,
            err.message,
        )
        return _problem_response(problem, err.status_code)

    @app.errorhandler(svc.ServiceError)
    def handle_service_error(err: svc.ServiceError):
        return handle_api_error(translate_service_error(err))

    @app.errorhandler(MarshmallowValidationError)
    def handle_validation_error(err: MarshmallowValidationError):
        problem = _as_problem(
            status=HTTPStatus.UNPROCESSABLE_ENTITY,
            code="validation_error",
            message="Validation failed",
            details={"errors": err.messages},
        )
        log.warning("ValidationError on %s", request.path)
        return _problem_response(problem, HTTPStatus.UNPROCESSABLE_ENTITY)

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        error_code = _http_status_to_code(status)
        message = (err.description or error_code.replace("_", " ").capitalize()).strip()
        if status == HTTPStatus.NOT_FOUND and request:
            message = f"Route '{request.path}' not found"
        level = log.error if status >= 500 else log.warning
        level("HTTPException: code=%s status=%s detail=%s", error_code, status, message)
        return _problem_response(
            _as_problem(status=status, code=error_code, message=message), status
        )

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        # Never leak internal details to clients
        log.error("Unhandled exception on %s", request.path, exc_info=True)
        return _problem_response(
            _as_problem(
                status=HTTPStatus.INTERNAL_SERVER_ERROR,
                code="internal_server_error",
                message="Unexpected error",
            ),
            HTTPStatus.INTERNAL_SERVER_ERROR,
        )
