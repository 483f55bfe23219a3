"""One-time code challenge model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from authcore.core.extensions import db

from .base import PKMixin, ReprMixin, UTCDateTime
from .enums import OtpPurpose


class OtpChallenge(PKMixin, ReprMixin, db.Model):
    """
    A live one-time code for a single ``(user, purpose)`` pair.

    Only the SHA-256 digest of the six-digit code is stored. Reissuing a code
    for the same pair overwrites the row, so at most one challenge per purpose
    can be outstanding. The attempt count survives a reissue.

    Fields
    ------
    user_id : int
        Owner of the challenge.
    purpose : OtpPurpose
        What a successful verification authorises.
    code_hash : str
        Hex digest of the code.
    expires_at : datetime
        Exclusive upper bound: a check at exactly this instant is expired.
    attempts : int
        Wrong submissions in the current window. Reaching the limit locks
        the challenge until the window closes.
    window_started_at : datetime
        Start of the attempt window. Reissuing inside the window keeps
        ``attempts``; the first issue after it starts a fresh one.
    """

    __tablename__ = "otp_challenges"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    purpose: Mapped[OtpPurpose] = mapped_column(
        SAEnum(
            OtpPurpose,
            name="enum_otp_purpose",
            native_enum=False,
            length=32,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    code_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    window_started_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "purpose", name="uq_otp_challenges_user_id_purpose"),
    )
