"""Repository for second-factor login tickets."""

from __future__ import annotations

from typing import cast

from sqlalchemy import delete, select

from authcore.models.pending_login import PendingLogin
from authcore.repositories.base import BaseRepository


class PendingLoginRepository(BaseRepository[PendingLogin]):
    """Persistence-only access to :class:`PendingLogin` rows."""

    model = PendingLogin

    def get_for_user(self, user_id: int) -> PendingLogin | None:
        """Return the user's ticket, re-read from the database."""
        stmt = (
            select(PendingLogin)
            .where(PendingLogin.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return cast(PendingLogin | None, self.session.execute(stmt).scalars().first())

    def get_by_hash(self, ticket_hash: str) -> PendingLogin | None:
        stmt = select(PendingLogin).where(PendingLogin.ticket_hash == ticket_hash)
        return cast(PendingLogin | None, self.session.execute(stmt).scalars().first())

    def delete_for_user(self, user_id: int) -> int:
        """Drop the user's ticket, if any.

        :returns: Number of rows removed.
        """
        result = self.session.execute(delete(PendingLogin).where(PendingLogin.user_id == user_id))
        return int(result.rowcount or 0)
