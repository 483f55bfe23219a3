from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True, slots=True)
class TokenPair:
    """
    Access/refresh pair handed to a client.

    :param access_token: Signed access token.
    :param refresh_token: Raw opaque refresh token (only the digest is stored).
    :param access_expires_at: Absolute access-token expiry.
    :param refresh_expires_at: Absolute refresh-token expiry.
    """

    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime


@dataclass(frozen=True, slots=True)
class RefreshTokenConfig:
    """
    Refresh-token lifetimes.

    :param ttl: Lifetime for a regular sign-in.
    :param remember_ttl: Lifetime with "remember me" / "remember this device".
    """

    ttl: timedelta = timedelta(days=1)
    remember_ttl: timedelta = timedelta(days=30)

    def lifetime(self, remember_me: bool) -> timedelta:
        return self.remember_ttl if remember_me else self.ttl
