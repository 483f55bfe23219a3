"""User repository for persistence and credential lookups."""

from __future__ import annotations

from typing import cast

from sqlalchemy import select

from authcore.models.user import User
from authcore.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    It NEVER issues tokens or codes, only DB-level user management.
    """

    model = User

    # ---------------------------- Lookup helpers ----------------------------

    def get_by_email(self, email: str) -> User | None:
        """Fetch a user by email (case-insensitive).

        :param email: Email address to normalise and search.
        :returns: User instance or ``None`` when not found.
        """
        stmt = select(User).where(User.email == email.lower().strip())
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def exists_by_email(self, email: str, *, exclude_id: int | None = None) -> bool:
        """Return ``True`` when a confirmed address belongs to some user.

        :param email: Email address to normalise and search.
        :param exclude_id: Ignore this user (e.g. the one changing address).
        """
        stmt = select(User.id).where(User.email == email.lower().strip())
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        return bool(self.session.execute(stmt).first())

    def get_by_refresh_token_hash(self, digest: str) -> User | None:
        """Find the owner of a refresh-token digest.

        :param digest: SHA-256 hex digest of the raw refresh token.
        """
        stmt = select(User).where(User.refresh_token_hash == digest)
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def authenticate(self, email: str, password: str) -> User | None:
        """Authenticate a user by email and password.

        :returns: Authenticated user or ``None`` when credentials fail.
        """
        user = self.get_by_email(email)
        if not user or not user.verify_password(password):
            return None
        return user
