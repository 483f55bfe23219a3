"""Repository for one-time code challenges."""

from __future__ import annotations

from collections.abc import Iterable
from typing import cast

from sqlalchemy import delete, select

from authcore.models.enums import OtpPurpose
from authcore.models.otp_challenge import OtpChallenge
from authcore.repositories.base import BaseRepository


class OtpChallengeRepository(BaseRepository[OtpChallenge]):
    """Persistence-only access to :class:`OtpChallenge` rows."""

    model = OtpChallenge

    def get_for(self, user_id: int, purpose: OtpPurpose) -> OtpChallenge | None:
        """Return the live challenge for ``(user_id, purpose)``, if any."""
        stmt = select(OtpChallenge).where(
            OtpChallenge.user_id == user_id,
            OtpChallenge.purpose == purpose,
        )
        return cast(OtpChallenge | None, self.session.execute(stmt).scalars().first())

    def delete_for(self, user_id: int, purposes: Iterable[OtpPurpose]) -> int:
        """Drop the challenges of ``user_id`` for the given purposes.

        :returns: Number of rows removed.
        """
        wanted = list(purposes)
        if not wanted:
            return 0
        stmt = delete(OtpChallenge).where(
            OtpChallenge.user_id == user_id,
            OtpChallenge.purpose.in_(wanted),
        )
        result = self.session.execute(stmt)
        return int(result.rowcount or 0)
