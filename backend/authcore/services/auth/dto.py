from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from authcore.models.enums import TwoFactorMethod, UserRole
from authcore.services.tokens.dto import TokenPair

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class RegisterIn:
    """
    Input DTO for self-registration.

    :param email: Login email (normalized by the model).
    :param password: Raw password, hashed by the model setter.
    :param role: Requested role; only self-registrable roles are accepted.
    """

    email: str
    password: str
    first_name: str
    last_name: str
    role: UserRole | str = UserRole.PATIENT


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    Input DTO for login.

    :param email: User email.
    :param password: Raw password (to be verified).
    :param remember_me: Issue a long-lived refresh token.
    """

    email: str
    password: str
    remember_me: bool = False


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class UserPublicOut:
    id: int
    email: str
    first_name: str
    last_name: str
    role: UserRole
    email_confirmed: bool
    phone_number: str | None
    phone_confirmed: bool
    two_factor_enabled: bool
    created_at: datetime | None


@dataclass(frozen=True, slots=True)
class LoginOut:
    """
    Outcome of the password step.

    Either ``tokens`` is set, or ``two_factor_required`` is ``True`` and
    the client must continue with the second factor, presenting
    ``login_ticket``.
    """

    user_id: int
    tokens: TokenPair | None = None
    two_factor_required: bool = False
    two_factor_method: TwoFactorMethod | None = None
    code_sent: bool = False
    login_ticket: str | None = None
