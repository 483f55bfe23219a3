from __future__ import annotations

import hashlib
import logging
from datetime import datetime

from authcore.services._shared.ports.clock import Clock, SystemClock
from authcore.services._shared.ports.denylist_store import TokenDenylistStore
from authcore.services._shared.ports.token_issuer import TokenIssuer

log = logging.getLogger(__name__)


def revocation_key(raw_token: str) -> str:
    """Digest under which a revoked token is recorded (the token itself is never stored)."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


class RevocationRegistry:
    """
    Tracks access tokens invalidated before their natural expiry.

    An entry lives exactly as long as the token it revokes: after ``exp``
    the signature check rejects the token anyway, so the store may drop it.

    :param store: Backing denylist (Redis with native TTL, or in-memory).
    :param issuer: Used to validate tokens and read their ``exp``.
    :param clock: Time source.
    """

    def __init__(
        self,
        *,
        store: TokenDenylistStore,
        issuer: TokenIssuer,
        clock: Clock | None = None,
    ) -> None:
        self.store = store
        self.issuer = issuer
        self.clock = clock or SystemClock()

    def blacklist(self, raw_token: str, expires_at: datetime) -> bool:
        """
        Record ``raw_token`` as revoked until ``expires_at``.

        :returns: ``False`` when ``expires_at`` has already passed (nothing to track).
        """
        if expires_at <= self.clock.now():
            return False
        self.store.revoke(revocation_key(raw_token), expires_at=expires_at)
        return True

    def revoke_access_token(self, raw_token: str) -> None:
        """
        Revoke a signed access token for the rest of its lifetime.

        Expired tokens are accepted and ignored.

        :raises InvalidTokenError: If the token was not signed by this service.
        """
        claims = self.issuer.decode(raw_token, verify_expiry=False)
        expires_at = self.issuer.expires_at(raw_token)
        if self.blacklist(raw_token, expires_at):
            log.info(
                "Access token revoked",
                extra={"event": "access_token_revoked", "user_id": claims.get("sub")},
            )

    def is_revoked(self, raw_token: str) -> bool:
        """Hot-path check run on every authenticated request."""
        return self.store.is_revoked(revocation_key(raw_token))

    def purge_expired(self) -> int:
        """Drop entries whose tokens have expired; no-op for stores with native TTL."""
        if self.store.native_ttl:
            return 0
        purged = self.store.purge_expired()
        if purged:
            log.debug("Purged %d expired revocation entries", purged)
        return purged
