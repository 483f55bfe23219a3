from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt  # PyJWT

from authcore.services._shared.errors import (
    ConfigurationError,
    ExpiredTokenError,
    InvalidTokenError,
)
from authcore.services._shared.ports.clock import Clock, SystemClock
from authcore.services._shared.ports.token_issuer import AccessClaims, IssuedToken, TokenIssuer

log = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"


class JWTTokenIssuer(TokenIssuer):
    """
    HMAC-signed (HS256 by default) access tokens built with PyJWT.

    Tokens carry ``sub``, ``iat``, ``exp``, ``type``, ``role``, ``name`` and
    ``email`` (plus ``iss`` when configured). Given the same key, claims and
    clock reading the output is byte-for-byte identical. The payload is the
    one Flask-JWT-Extended expects, so request verification uses that
    extension with the same key and algorithm.

    :param secret_key: Symmetric signing key.
    :param algorithm: JWS algorithm name.
    :param ttl: Access token lifetime.
    :param issuer: Optional ``iss`` claim.
    :param clock: Time source.
    :raises ConfigurationError: If ``secret_key`` is empty.
    """

    def __init__(
        self,
        *,
        secret_key: str | None,
        algorithm: str = "HS256",
        ttl: timedelta = timedelta(minutes=15),
        issuer: str | None = None,
        clock: Clock | None = None,
    ) -> None:
        if not secret_key or not secret_key.strip():
            raise ConfigurationError("JWT_SECRET_KEY is not configured; refusing to issue tokens.")
        if ttl <= timedelta(0):
            raise ConfigurationError("Access token lifetime must be positive.")
        self._key = secret_key
        self.algorithm = algorithm
        self.ttl = ttl
        self.issuer = issuer
        self.clock = clock or SystemClock()

    def issue(self, claims: AccessClaims) -> IssuedToken:
        now = int(self.clock.now().timestamp())
        exp = now + int(self.ttl.total_seconds())
        payload: dict[str, Any] = {
            "sub": str(claims.subject),
            "iat": now,
            "exp": exp,
            "type": ACCESS_TOKEN_TYPE,
            "role": claims.role,
            "name": claims.name,
            "email": claims.email,
        }
        if claims.session_id:
            payload["sid"] = claims.session_id
        if self.issuer:
            payload["iss"] = self.issuer
        token = jwt.encode(payload, self._key, algorithm=self.algorithm)
        return IssuedToken(token=token, expires_at=datetime.fromtimestamp(exp, tz=UTC))

    def decode(self, token: str, *, verify_expiry: bool = True) -> dict[str, Any]:
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                self._key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={
                    "require": ["sub", "exp", "iat"],
                    # Expiry is judged against the injected clock below.
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                },
            )
        except jwt.PyJWTError as exc:
            log.warning("Access token rejected: %s", type(exc).__name__)
            raise InvalidTokenError() from exc

        if payload.get("type", ACCESS_TOKEN_TYPE) != ACCESS_TOKEN_TYPE:
            raise InvalidTokenError()
        if verify_expiry and self.clock.now().timestamp() >= int(payload["exp"]):
            raise ExpiredTokenError()
        return payload

    def expires_at(self, token: str) -> datetime:
        exp = int(self.decode(token, verify_expiry=False)["exp"])
        return datetime.fromtimestamp(exp, tz=UTC)
