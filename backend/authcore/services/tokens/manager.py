"""
Refresh-token issuance and single-use rotation.

A user holds at most one live refresh token. Only its SHA-256 digest and
expiry are stored on the user row; rotating overwrites both, so a
superseded raw token can never match again.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets

from authcore.models.user import User
from authcore.services._shared.base import BaseService
from authcore.services._shared.errors import ExpiredTokenError, InvalidTokenError, NotFoundError
from authcore.services._shared.ports.clock import Clock
from authcore.services._shared.ports.token_issuer import AccessClaims, TokenIssuer
from authcore.services._shared.ports.user_lock import UserLockProvider
from authcore.services.tokens.dto import RefreshTokenConfig, TokenPair
from authcore.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork

log = logging.getLogger(__name__)

# 48 random bytes -> 384 bits of entropy, 64 URL-safe characters.
REFRESH_TOKEN_BYTES = 48


def generate_refresh_token() -> str:
    """Return a fresh opaque refresh token from the OS CSPRNG."""
    return secrets.token_urlsafe(REFRESH_TOKEN_BYTES)


def hash_refresh_token(raw: str) -> str:
    """Return the hex SHA-256 digest stored in place of ``raw``."""
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def session_id_for(refresh_digest: str) -> str:
    """Derive the ``sid`` claim from the digest of the session's refresh token."""
    return hashlib.sha256(f"sid:{refresh_digest}".encode("ascii")).hexdigest()[:32]


def claims_for(user: User, session_id: str | None = None) -> AccessClaims:
    """Build the identity claims an access token carries for ``user``."""
    return AccessClaims(
        subject=user.id,
        role=user.role.value,
        name=user.full_name,
        email=user.email,
        session_id=session_id,
    )


class RefreshTokenManager(BaseService):
    """
    Issue token pairs and rotate refresh tokens.

    :param issuer: Access-token issuer.
    :param config: Refresh-token lifetimes.
    :param clock: Time source.
    :param locks: Per-user lock provider.
    """

    def __init__(
        self,
        *,
        issuer: TokenIssuer,
        config: RefreshTokenConfig | None = None,
        clock: Clock | None = None,
        locks: UserLockProvider | None = None,
    ) -> None:
        super().__init__(clock=clock, locks=locks)
        self.issuer = issuer
        self.cfg = config or RefreshTokenConfig()

    generate = staticmethod(generate_refresh_token)

    # ------------------------------------------------------------------ #
    # Building blocks (run inside the caller's locked unit of work)
    # ------------------------------------------------------------------ #

    def issue_pair(self, user: User, *, remember_me: bool = False) -> TokenPair:
        """
        Mint an access token and replace the user's refresh token.

        Must run inside a write scope that holds the user's lock; the new
        digest is persisted when that scope commits.
        """
        raw = generate_refresh_token()
        digest = hash_refresh_token(raw)
        access = self.issuer.issue(claims_for(user, session_id_for(digest)))
        refresh_expires_at = self.now() + self.cfg.lifetime(remember_me)
        user.refresh_token_hash = digest
        user.refresh_token_expires_at = refresh_expires_at
        return TokenPair(
            access_token=access.token,
            refresh_token=raw,
            access_expires_at=access.expires_at,
            refresh_expires_at=refresh_expires_at,
        )

    @staticmethod
    def _load(uow: SQLAlchemyUnitOfWork, user_id: int) -> User:
        user = uow.users.get_for_update(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    # ------------------------------------------------------------------ #
    # Public operations
    # ------------------------------------------------------------------ #

    def issue_tokens(self, user_id: int, *, remember_me: bool = False) -> TokenPair:
        """
        Issue a brand-new pair for ``user_id``.

        :raises NotFoundError: Unknown user.
        """
        with self.locked_write(user_id) as uow:
            user = self._load(uow, user_id)
            pair = self.issue_pair(user, remember_me=remember_me)
        log.info("Token pair issued", extra={"event": "tokens_issued", "user_id": user_id})
        return pair

    def rotate(
        self,
        raw_refresh_token: str,
        *,
        remember_me: bool = False,
        user_id: int | None = None,
    ) -> TokenPair:
        """
        Exchange a refresh token for a new pair, exactly once.

        :param raw_refresh_token: Token presented by the client.
        :param remember_me: Extend the new refresh token's lifetime.
        :param user_id: Owner, when the caller already knows it; otherwise
            resolved from the token digest.
        :raises InvalidTokenError: Unknown, superseded, or mismatched token.
        :raises ExpiredTokenError: Matching token past its expiry.
        """
        if not raw_refresh_token:
            raise InvalidTokenError()
        digest = hash_refresh_token(raw_refresh_token)

        if user_id is None:
            with self.ro_uow() as uow:
                owner = uow.users.get_by_refresh_token_hash(digest)
                owner_id = owner.id if owner is not None else None
            if owner_id is None:
                log.warning("Refresh rejected: unknown token", extra={"event": "refresh_rejected"})
                raise InvalidTokenError()
            user_id = owner_id

        with self.locked_write(user_id) as uow:
            user = self._load(uow, user_id)
            stored = user.refresh_token_hash
            # Re-compare under the lock: a concurrent rotation has replaced the digest.
            if not stored or not hmac.compare_digest(stored, digest):
                log.warning(
                    "Refresh rejected: token superseded",
                    extra={"event": "refresh_rejected", "user_id": user_id},
                )
                raise InvalidTokenError()
            expires_at = user.refresh_token_expires_at
            if expires_at is None or expires_at <= self.now():
                log.info("Refresh rejected: token expired", extra={"event": "refresh_rejected", "user_id": user_id})
                raise ExpiredTokenError("Refresh token has expired")
            pair = self.issue_pair(user, remember_me=remember_me)

        log.info("Refresh token rotated", extra={"event": "refresh_rotated", "user_id": user_id})
        return pair

    def revoke(self, user_id: int) -> None:
        """
        Forget the user's refresh token (logout, password or email change).

        :raises NotFoundError: Unknown user.
        """
        with self.locked_write(user_id) as uow:
            user = self._load(uow, user_id)
            user.clear_refresh_token()
        log.info("Refresh token revoked", extra={"event": "refresh_revoked", "user_id": user_id})
