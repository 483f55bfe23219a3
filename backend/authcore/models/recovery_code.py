"""Hashed single-use recovery code model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from authcore.core.extensions import db

from .base import PKMixin, ReprMixin, UTCDateTime


class RecoveryCode(PKMixin, ReprMixin, db.Model):
    """One unused member of a user's recovery-code set (stored as a SHA-256 digest)."""

    __tablename__ = "recovery_codes"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    code_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "code_hash", name="uq_recovery_codes_user_id_code_hash"),
        Index("ix_recovery_codes_user_id", "user_id"),
    )
