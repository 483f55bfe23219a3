"""Repository package exposing persistence helpers."""

from __future__ import annotations

from .otp_challenge import OtpChallengeRepository
from .pending_login import PendingLoginRepository
from .recovery_code import RecoveryCodeRepository
from .user import UserRepository

__all__ = [
    "UserRepository",
    "OtpChallengeRepository",
    "PendingLoginRepository",
    "RecoveryCodeRepository",
]
