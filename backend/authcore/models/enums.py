"""Closed vocabularies shared by models, services, and schemas."""

from __future__ import annotations

from enum import Enum


class _ParsableEnum(str, Enum):
    """String enum that accepts its value or name in any letter case."""

    @classmethod
    def parse(cls, raw: str | _ParsableEnum):
        """
        Resolve ``raw`` to a member.

        :param raw: Member, value, or name (case-insensitive, surrounding blanks ignored).
        :returns: Matching member.
        :raises ValueError: If nothing matches.
        """
        if isinstance(raw, cls):
            return raw
        token = str(raw).strip().lower()
        for member in cls:
            if token in (member.value, member.name.lower()):
                return member
        allowed = ", ".join(m.value for m in cls)
        raise ValueError(f"Unsupported {cls.__name__} '{raw}'. Allowed: {allowed}")


class UserRole(_ParsableEnum):
    """Application roles carried in access-token claims."""

    ADMIN = "admin"
    DOCTOR = "doctor"
    PATIENT = "patient"


# Roles a visitor may pick when self-registering.
SELF_REGISTRATION_ROLES = frozenset({UserRole.DOCTOR, UserRole.PATIENT})


class TwoFactorMethod(_ParsableEnum):
    """Second factor a user enrolls with."""

    EMAIL = "email"
    SMS = "sms"
    AUTHENTICATOR = "authenticator"

    @property
    def delivers_code(self) -> bool:
        """``True`` when the server sends the code (email/SMS) instead of the user's app."""
        return self is not TwoFactorMethod.AUTHENTICATOR


class TwoFactorState(str, Enum):
    """Derived enrollment state of a user's second factor."""

    DISABLED = "disabled"
    PENDING_SETUP = "pending_setup"
    ENABLED = "enabled"


class OtpPurpose(_ParsableEnum):
    """What a one-time code authorises. One live challenge per (user, purpose)."""

    EMAIL_VERIFY = "email_verify"
    PASSWORD_RESET = "password_reset"
    PHONE_VERIFY = "phone_verify"
    TWO_FACTOR_LOGIN = "two_factor_login"
    TWO_FACTOR_SETUP = "two_factor_setup"
