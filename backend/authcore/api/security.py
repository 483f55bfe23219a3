"""Access-token verification callbacks for Flask-JWT-Extended."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask

from authcore.api.deps import bearer_token
from authcore.core.container import get_services
from authcore.core.errors import problem_response
from authcore.core.extensions import jwt

log = logging.getLogger(__name__)


def init_app(app: Flask) -> None:
    """
    Align verification with issuance and plug in the revocation check.

    Tokens are minted by the PyJWT issuer; Flask-JWT-Extended only verifies
    them, so both read the same key, algorithm and (optional) issuer.
    """
    app.config.setdefault("JWT_TOKEN_LOCATION", ["headers"])
    if app.config.get("JWT_ISSUER"):
        app.config.setdefault("JWT_DECODE_ISSUER", app.config["JWT_ISSUER"])

    @jwt.token_in_blocklist_loader
    def _is_revoked(jwt_header: dict[str, Any], jwt_payload: dict[str, Any]) -> bool:
        raw = bearer_token()
        return raw is not None and get_services().registry.is_revoked(raw)

    @jwt.revoked_token_loader
    def _revoked(jwt_header: dict[str, Any], jwt_payload: dict[str, Any]):
        log.info("Revoked token presented", extra={"event": "token_revoked_use", "user_id": jwt_payload.get("sub")})
        return problem_response(HTTPStatus.UNAUTHORIZED, "token_revoked", "Token has been revoked")

    @jwt.expired_token_loader
    def _expired(jwt_header: dict[str, Any], jwt_payload: dict[str, Any]):
        return problem_response(HTTPStatus.UNAUTHORIZED, "expired_token", "Token has expired")

    @jwt.invalid_token_loader
    def _invalid(reason: str):
        log.warning("Invalid access token: %s", reason)
        return problem_response(HTTPStatus.UNAUTHORIZED, "invalid_token", "Invalid token")

    @jwt.unauthorized_loader
    def _missing(reason: str):
        return problem_response(HTTPStatus.UNAUTHORIZED, "unauthorized", "Missing or malformed access token")
