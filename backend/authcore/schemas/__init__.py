"""Marshmallow schemas for the HTTP surface."""

from __future__ import annotations

from .account import (
    ChangePasswordSchema,
    ConfirmEmailSchema,
    EmailChangeSchema,
    PhoneSchema,
    ResetPasswordSchema,
)
from .auth import (
    EmailSchema,
    LoginSchema,
    LoginTicketSchema,
    RefreshSchema,
    RegisterSchema,
    TokenPairSchema,
    TwoFactorChallengeSchema,
    TwoFactorLoginSchema,
    UserSchema,
)
from .two_factor import (
    CodeSchema,
    DisableSchema,
    RecoveryCodesRequestSchema,
    SetupResultSchema,
    SetupSchema,
    StatusSchema,
)

__all__ = [
    "RegisterSchema",
    "LoginSchema",
    "RefreshSchema",
    "TwoFactorLoginSchema",
    "LoginTicketSchema",
    "EmailSchema",
    "TokenPairSchema",
    "UserSchema",
    "TwoFactorChallengeSchema",
    "SetupSchema",
    "CodeSchema",
    "DisableSchema",
    "RecoveryCodesRequestSchema",
    "SetupResultSchema",
    "StatusSchema",
    "ConfirmEmailSchema",
    "ResetPasswordSchema",
    "ChangePasswordSchema",
    "EmailChangeSchema",
    "PhoneSchema",
]
