"""RFC 6238 helpers for the authenticator-app factor."""

from __future__ import annotations

import hmac
from datetime import datetime

import pyotp

# 32 base32 characters -> 160 bits.
SECRET_LENGTH = 32


def new_secret() -> str:
    return pyotp.random_base32(length=SECRET_LENGTH)


def provisioning_uri(secret: str, *, email: str, issuer: str) -> str:
    """Return ``otpauth://totp/<issuer>:<email>?secret=...&issuer=...`` for QR rendering."""
    return pyotp.TOTP(secret).provisioning_uri(name=email, issuer_name=issuer)


def match_step(secret: str, code: str | None, *, at: datetime, window: int = 1) -> int | None:
    """
    Find the time step ``code`` belongs to, within ``window`` steps of ``at``.

    :returns: The matching step counter, or ``None`` when no step matches.
    """
    if not secret or not code:
        return None
    candidate = "".join(str(code).split())
    if not candidate.isdigit():
        return None
    totp = pyotp.TOTP(secret)
    current = totp.timecode(at)
    # Current step first, then widen outwards.
    for offset in sorted(range(-window, window + 1), key=abs):
        if hmac.compare_digest(totp.at(at, counter_offset=offset), candidate):
            return current + offset
    return None
