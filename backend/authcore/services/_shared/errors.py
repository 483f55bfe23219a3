"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and never import Flask or HTTP
helpers. They are the typed results that cross the service boundary; the API
layer translates them into RFC 7807 problems (see ``authcore/core/errors.py``).
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError


def violates(exc: IntegrityError, constraint_name: str) -> bool:
    """
    Check whether an IntegrityError originates from a specific constraint.

    :param exc: The exception raised by SQLAlchemy during flush/commit.
    :param constraint_name: Constraint to match (e.g. ``"uq_users_email"``).
    :returns: True if the error message mentions the constraint.
    """
    message = str(exc.orig).lower() if exc.orig else ""
    return constraint_name.lower() in message


class ConfigurationError(RuntimeError):
    """
    Raised at startup when a mandatory setting is missing or unusable.

    Not a :class:`ServiceError`: it is fatal for the process, never per request.
    """


# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - Messages are safe to show to end users; they never contain secrets.
    """


# --------------------------------------------------------------------------- #
# Specific domain-level errors
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found in the repository.

    :param entity: Entity name (e.g., "User").
    :param key: Identifier or search key.
    """

    entity: str
    key: str | int

    def __str__(self) -> str:
        return f"{self.entity} not found: {self.key}"


@dataclass(slots=True)
class ConflictError(ServiceError):
    """
    Raised when a unique constraint or business rule conflict occurs.

    :param entity: Entity name (e.g., "User").
    :param detail: Short human-readable explanation.
    """

    entity: str
    detail: str

    def __str__(self) -> str:
        return f"Conflict on {self.entity}: {self.detail}"


class AlreadyInUseError(ConflictError):
    """An identifier that must be unique (e.g. an email) is already taken."""

    def __init__(self, field: str = "email") -> None:
        super().__init__("User", f"{field} already in use")


class InvalidCredentialError(ServiceError):
    """Password verification failed."""

    def __init__(self, message: str = "Invalid email or password") -> None:
        super().__init__(message)


class EmailNotConfirmedError(ServiceError):
    """Sign-in attempted before the email address was confirmed."""

    def __init__(self, message: str = "Please confirm your email before logging in") -> None:
        super().__init__(message)


class InvalidTokenError(ServiceError):
    """A refresh or access token is unknown, malformed, or does not match."""

    def __init__(self, message: str = "Invalid token") -> None:
        super().__init__(message)


class ExpiredTokenError(ServiceError):
    """A token matched but is past its expiry."""

    def __init__(self, message: str = "Token has expired") -> None:
        super().__init__(message)


class InvalidCodeError(ServiceError):
    """A one-time, authenticator, or recovery code did not verify."""

    def __init__(self, message: str = "Invalid verification code") -> None:
        super().__init__(message)


class ExpiredCodeError(ServiceError):
    """A one-time code matched but its window has closed."""

    def __init__(self, message: str = "Verification code has expired") -> None:
        super().__init__(message)


class TooManyAttemptsError(ServiceError):
    """The failure budget of a code or login ticket is spent."""

    def __init__(self, message: str = "Too many failed attempts, please try again later") -> None:
        super().__init__(message)


class TwoFactorStateError(ServiceError):
    """The requested 2FA transition is not allowed from the current state."""


class ConcurrentUpdateError(ServiceError):
    """A concurrent writer changed the same user aggregate; retry the request."""

    def __init__(self, message: str = "The account was modified concurrently, please retry") -> None:
        super().__init__(message)


class DeliveryError(ServiceError):
    """
    Outbound email/SMS dispatch failed (transient dependency failure).

    Only raised under the ``strict`` delivery policy, and always *after* the
    associated state change has been committed.
    """

    def __init__(self, channel: str) -> None:
        super().__init__(f"Could not deliver the {channel} message, please retry")
        self.channel = channel


class ValidationError(ServiceError):
    """Input rejected by a service-level rule (not a schema error)."""
