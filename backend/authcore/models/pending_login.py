"""Password-verified sign-in awaiting its second factor."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from authcore.core.extensions import db

from .base import PKMixin, ReprMixin, UTCDateTime


class PendingLogin(PKMixin, ReprMixin, db.Model):
    """
    The ticket handed out by a successful password check when 2FA is on.

    One row per user: a new password check replaces it. Only the SHA-256
    digest of the ticket is stored.

    Fields
    ------
    user_id : int
        Account that passed the password step.
    ticket_hash : str
        Hex digest of the opaque login ticket.
    expires_at : datetime
        Exclusive upper bound for finishing the second step.
    failures : int
        Wrong second-factor submissions made with this ticket.
    """

    __tablename__ = "pending_logins"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    ticket_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    failures: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", name="uq_pending_logins_user_id"),
        UniqueConstraint("ticket_hash", name="uq_pending_logins_ticket_hash"),
    )
