"""User credential aggregate."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, Index, Integer, String, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, validates
from werkzeug.security import check_password_hash, generate_password_hash

from authcore.core.extensions import db

from .base import PKMixin, ReprMixin, TimestampMixin, UTCDateTime
from .enums import TwoFactorMethod, TwoFactorState, UserRole


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class User(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Identity plus every credential field the session lifecycle mutates.

    Fields
    ------
    email : str
        Confirmed login email. Stored normalized (lowercase, trimmed).
    pending_email : str | None
        Requested new address, swapped into ``email`` only after its
        one-time code is verified.
    password_hash : str
        Hashed password (write-only setter via ``password``).
    email_confirmed : bool
        Login is refused until the address is confirmed.
    phone_number, pending_phone, phone_confirmed
        Phone follows the same staged pattern as email.
    refresh_token_hash : str | None
        SHA-256 hex digest of the single live refresh token; never the raw value.
    refresh_token_expires_at : datetime | None
        Absolute expiry of that refresh token.
    two_factor_method : TwoFactorMethod | None
        Enrolled (or enrolling) second factor.
    two_factor_secret : str | None
        Base32 shared secret; present only while a method is set.
    two_factor_enabled : bool
        ``True`` once enrollment has been verified.
    two_factor_enabled_at : datetime | None
        When enrollment completed.
    two_factor_last_step : int | None
        Last accepted authenticator time step (replay guard).
    version_id : int
        Optimistic-concurrency counter maintained by SQLAlchemy.
    """

    __tablename__ = "users"

    # Identity
    email: Mapped[str] = mapped_column(String(254), nullable=False)
    pending_email: Mapped[str | None] = mapped_column(String(254), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(254), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        SAEnum(
            UserRole,
            name="enum_user_role",
            native_enum=False,
            length=16,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=UserRole.PATIENT,
    )
    email_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Phone
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    pending_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    phone_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Refresh token (hash only)
    refresh_token_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    refresh_token_expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # Two-factor
    two_factor_method: Mapped[TwoFactorMethod | None] = mapped_column(
        SAEnum(
            TwoFactorMethod,
            name="enum_two_factor_method",
            native_enum=False,
            length=16,
            values_callable=_enum_values,
        ),
        nullable=True,
    )
    two_factor_secret: Mapped[str | None] = mapped_column(String(64), nullable=True)
    two_factor_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    two_factor_enabled_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    two_factor_last_step: Mapped[int | None] = mapped_column(Integer, nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    # Constraints & indexes
    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        UniqueConstraint("refresh_token_hash", name="uq_users_refresh_token_hash"),
        Index("ix_users_email", "email"),
    )

    # -------------------- Password API --------------------
    @property
    def password(self) -> Any:  # pragma: no cover - explicit write-only contract
        """
        Disallow reading passwords.

        :raises AttributeError: Always, to ensure password is write-only.
        """
        raise AttributeError("Password is write-only.")

    @password.setter
    def password(self, raw: str) -> None:
        """
        Hash and set the password.

        :param raw: Plain text password to hash.
        :type raw: str
        """
        if not isinstance(raw, str) or not raw:
            raise ValueError("Password must be a non-empty string.")
        self.password_hash = generate_password_hash(raw)

    def verify_password(self, raw: str) -> bool:
        """
        Verify a password against the stored hash.

        :param raw: Plain text password candidate.
        :type raw: str
        :returns: ``True`` if it matches; otherwise ``False``.
        :rtype: bool
        """
        if not self.password_hash or not raw:
            return False
        return bool(check_password_hash(self.password_hash, raw))

    # -------------------- Derived state --------------------
    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def two_factor_state(self) -> TwoFactorState:
        """Map the stored flags onto ``Disabled → PendingSetup → Enabled``."""
        if self.two_factor_enabled:
            return TwoFactorState.ENABLED
        if self.two_factor_method is not None:
            return TwoFactorState.PENDING_SETUP
        return TwoFactorState.DISABLED

    def clear_refresh_token(self) -> None:
        self.refresh_token_hash = None
        self.refresh_token_expires_at = None

    def clear_two_factor(self) -> None:
        """Drop every second-factor field (recovery codes live in their own table)."""
        self.two_factor_method = None
        self.two_factor_secret = None
        self.two_factor_enabled = False
        self.two_factor_enabled_at = None
        self.two_factor_last_step = None

    # -------------------- Validators --------------------
    @validates("email", "pending_email")
    def _normalize_email(self, key: str, value: str | None) -> str | None:
        """
        Normalize and validate email fields.

        :param key: Field name (``email`` or ``pending_email``).
        :param value: Email to normalize.
        :returns: Normalized email (lowercased/trimmed), or ``None`` for a
            cleared ``pending_email``.
        :raises ValueError: If email is missing or malformed.
        """
        if value is None and key == "pending_email":
            return None
        if not value or not isinstance(value, str):
            raise ValueError("Email is required.")
        v = value.strip().lower()
        # Minimal sanity check; full validation happens at API layer.
        if "@" not in v or "." not in v.split("@")[-1]:
            raise ValueError("Email format looks invalid.")
        return v

    @validates("first_name", "last_name")
    def _normalize_name(self, key: str, value: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"{key.replace('_', ' ').capitalize()} is required.")
        return value.strip()
