"""Repository for hashed recovery codes."""

from __future__ import annotations

from collections.abc import Iterable
from typing import cast

from sqlalchemy import delete, func, select

from authcore.models.recovery_code import RecoveryCode
from authcore.repositories.base import BaseRepository


class RecoveryCodeRepository(BaseRepository[RecoveryCode]):
    """Persistence-only access to a user's recovery-code set."""

    model = RecoveryCode

    def find(self, user_id: int, code_hash: str) -> RecoveryCode | None:
        stmt = select(RecoveryCode).where(
            RecoveryCode.user_id == user_id,
            RecoveryCode.code_hash == code_hash,
        )
        return cast(RecoveryCode | None, self.session.execute(stmt).scalars().first())

    def count_for_user(self, user_id: int) -> int:
        stmt = select(func.count()).select_from(RecoveryCode).where(RecoveryCode.user_id == user_id)
        return int(self.session.execute(stmt).scalar_one())

    def delete_all(self, user_id: int) -> int:
        """Remove the whole set for ``user_id``.

        :returns: Number of rows removed.
        """
        result = self.session.execute(delete(RecoveryCode).where(RecoveryCode.user_id == user_id))
        return int(result.rowcount or 0)

    def replace_all(self, user_id: int, code_hashes: Iterable[str]) -> None:
        """Swap the user's set for ``code_hashes`` in the current transaction.

        The old set is deleted before the new rows are flushed, so no earlier
        code survives a regeneration.
        """
        self.delete_all(user_id)
        self.session.add_all(RecoveryCode(user_id=user_id, code_hash=h) for h in code_hashes)
        self.flush()
