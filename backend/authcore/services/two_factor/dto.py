from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from authcore.models.enums import TwoFactorMethod, TwoFactorState


@dataclass(frozen=True, slots=True)
class SetupOut:
    """
    Result of starting enrollment.

    ``qr_uri`` is only set for the authenticator method; ``otp_issued``
    only for email and SMS.
    """

    method: TwoFactorMethod
    secret: str
    qr_uri: str | None
    otp_issued: bool


@dataclass(frozen=True, slots=True)
class TwoFactorStatusOut:
    method: TwoFactorMethod | None
    state: TwoFactorState
    enabled: bool
    enabled_at: datetime | None
    recovery_codes_remaining: int


@dataclass(frozen=True, slots=True)
class LoginChallenge:
    """
    Second step handed to a client that passed the password check.

    ``ticket`` is shown once; only its digest is stored. It must accompany
    every verify and resend call for this sign-in.
    """

    ticket: str
    code_sent: bool
    expires_at: datetime
