"""SQLAlchemy models for the credential store."""

from __future__ import annotations

from .enums import OtpPurpose, TwoFactorMethod, TwoFactorState, UserRole
from .otp_challenge import OtpChallenge
from .pending_login import PendingLogin
from .recovery_code import RecoveryCode
from .user import User

__all__ = [
    "User",
    "OtpChallenge",
    "PendingLogin",
    "RecoveryCode",
    "UserRole",
    "TwoFactorMethod",
    "TwoFactorState",
    "OtpPurpose",
]
