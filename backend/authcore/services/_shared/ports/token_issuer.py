from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

from authcore.services._shared.errors import ExpiredTokenError, InvalidTokenError

from .clock import Clock, SystemClock


@dataclass(frozen=True, slots=True)
class AccessClaims:
    """
    Identity claims embedded in an access token.

    :ivar subject: User id (serialized as the ``sub`` claim).
    :ivar role: Role name.
    :ivar name: Display name.
    :ivar email: Confirmed email.
    :ivar session_id: Sign-in session the token belongs to (``sid`` claim).
        Two sign-ins within the same second still get distinct tokens.
    """

    subject: int | str
    role: str
    name: str
    email: str
    session_id: str | None = None


@dataclass(frozen=True, slots=True)
class IssuedToken:
    """A freshly signed access token and its absolute expiry."""

    token: str
    expires_at: datetime


class TokenIssuer(Protocol):
    """Port for minting and checking short-lived access tokens."""

    def issue(self, claims: AccessClaims) -> IssuedToken:
        """Sign a token for ``claims`` valid from *now* until *now + TTL*."""

    def decode(self, token: str, *, verify_expiry: bool = True) -> dict[str, Any]:
        """
        Check the signature (and, by default, expiry) and return the payload.

        :raises InvalidTokenError: Malformed token or bad signature.
        :raises ExpiredTokenError: Token is at or past ``exp``.
        """

    def expires_at(self, token: str) -> datetime:
        """Return ``exp`` of a correctly signed token, expired or not."""


class StubTokenIssuer(TokenIssuer):
    """Deterministic, unsigned issuer used by unit tests of token consumers."""

    def __init__(self, *, clock: Clock | None = None, ttl: timedelta = timedelta(minutes=15)) -> None:
        self.clock = clock or SystemClock()
        self.ttl = ttl
        self._seq = 0
        self._issued: dict[str, dict[str, Any]] = {}

    def issue(self, claims: AccessClaims) -> IssuedToken:
        self._seq += 1
        now = self.clock.now()
        exp = now + self.ttl
        token = f"access.{claims.subject}.{self._seq}"
        self._issued[token] = {
            "sub": str(claims.subject),
            "iat": int(now.timestamp()),
            "exp": int(exp.timestamp()),
            "type": "access",
            "role": claims.role,
            "name": claims.name,
            "email": claims.email,
        }
        if claims.session_id:
            self._issued[token]["sid"] = claims.session_id
        return IssuedToken(token=token, expires_at=datetime.fromtimestamp(int(exp.timestamp()), tz=UTC))

    def decode(self, token: str, *, verify_expiry: bool = True) -> dict[str, Any]:
        payload = self._issued.get(token)
        if payload is None:
            raise InvalidTokenError()
        if verify_expiry and self.clock.now().timestamp() >= payload["exp"]:
            raise ExpiredTokenError()
        return dict(payload)

    def expires_at(self, token: str) -> datetime:
        exp = int(self.decode(token, verify_expiry=False)["exp"])
        return datetime.fromtimestamp(exp, tz=UTC)
