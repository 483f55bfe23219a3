"""
Account maintenance flows built on one-time codes.

Email and phone changes are staged: the new value sits in ``pending_*``
until its code is verified, so the confirmed value never holds an
unverified address. Password and email changes end the current session.
"""

from __future__ import annotations

import logging
import re

from authcore.models.enums import OtpPurpose
from authcore.models.user import User
from authcore.services._shared.base import BaseService
from authcore.services._shared.delivery import CodeDispatcher
from authcore.services._shared.errors import (
    AlreadyInUseError,
    ConflictError,
    InvalidCredentialError,
    NotFoundError,
    ValidationError,
)
from authcore.services._shared.ports.clock import Clock
from authcore.services._shared.ports.user_lock import UserLockProvider
from authcore.services.otp.verifier import OtpOutcome, OtpVerifier
from authcore.services.revocation.registry import RevocationRegistry
from authcore.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork

log = logging.getLogger(__name__)

_PHONE_RE = re.compile(r"^\+?[0-9]{7,15}$")


def normalize_phone(raw: str) -> str:
    """Drop spaces, dashes and parentheses; require 7 to 15 digits with an optional ``+``."""
    cleaned = re.sub(r"[\s\-()]", "", raw or "")
    if not _PHONE_RE.match(cleaned):
        raise ValidationError("Phone number format looks invalid")
    return cleaned


class AccountService(BaseService):
    """Email confirmation, password reset/change, and staged email/phone changes."""

    def __init__(
        self,
        *,
        otp: OtpVerifier,
        registry: RevocationRegistry,
        dispatcher: CodeDispatcher,
        clock: Clock | None = None,
        locks: UserLockProvider | None = None,
    ) -> None:
        super().__init__(clock=clock, locks=locks)
        self.otp = otp
        self.registry = registry
        self.dispatcher = dispatcher

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _load(uow: SQLAlchemyUnitOfWork, user_id: int) -> User:
        user = uow.users.get_for_update(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def _user_id_for_email(self, email: str) -> int:
        with self.ro_uow() as uow:
            user = uow.users.get_by_email(email)
            if user is None:
                raise NotFoundError("User", email)
            return user.id

    def _code_body(self, what: str, code: str) -> str:
        minutes = int(self.otp.ttl.total_seconds() // 60)
        return f"Your {what} code is {code}. It expires in {minutes} minutes."

    def _end_session(self, raw_access_token: str | None) -> None:
        if raw_access_token:
            self.registry.revoke_access_token(raw_access_token)

    # ------------------------------------------------------------------ #
    # Email confirmation
    # ------------------------------------------------------------------ #

    def confirm_email(self, email: str, code: str) -> None:
        """
        Confirm the address a registration code was sent to.

        :raises InvalidCodeError: Wrong code.
        :raises ExpiredCodeError: Code past its expiry.
        :raises NotFoundError: Unknown email.
        """
        self.otp.verify(self._user_id_for_email(email), OtpPurpose.EMAIL_VERIFY, code)

    def resend_email_confirmation(self, email: str) -> None:
        """
        Issue a new confirmation code, replacing the outstanding one.

        :raises ConflictError: Nothing left to confirm.
        """
        user_id = self._user_id_for_email(email)
        with self.locked_write(user_id) as uow:
            user = self._load(uow, user_id)
            if user.email_confirmed and not user.pending_email:
                raise ConflictError("User", "email already confirmed")
            target = user.pending_email or user.email
            code = self.otp.issue(uow, user, OtpPurpose.EMAIL_VERIFY)
        self.dispatcher.send_email(
            target, "Email Verification OTP", self._code_body("email verification", code), user_id=user_id
        )

    # ------------------------------------------------------------------ #
    # Password
    # ------------------------------------------------------------------ #

    def request_password_reset(self, email: str) -> None:
        """
        Email a password-reset code.

        :raises NotFoundError: Unknown email.
        """
        user_id = self._user_id_for_email(email)
        with self.locked_write(user_id) as uow:
            user = self._load(uow, user_id)
            target = user.email
            code = self.otp.issue(uow, user, OtpPurpose.PASSWORD_RESET)
        log.info("Password reset requested", extra={"event": "password_reset_requested", "user_id": user_id})
        self.dispatcher.send_email(
            target, "Password Reset OTP", self._code_body("password reset", code), user_id=user_id
        )

    def reset_password(self, email: str, code: str, new_password: str) -> None:
        """
        Set a new password with a reset code; signs the user out everywhere.

        :raises InvalidCodeError: Wrong code.
        :raises ExpiredCodeError: Code past its expiry.
        """
        user_id = self._user_id_for_email(email)
        with self.locked_write(user_id) as uow:
            user = self._load(uow, user_id)
            outcome = self.otp.check(uow, user, OtpPurpose.PASSWORD_RESET, code)
            if outcome is OtpOutcome.OK:
                self._set_password(user, new_password)
                user.clear_refresh_token()
            target = user.email
        outcome.raise_for_failure()
        log.info("Password reset", extra={"event": "password_reset", "user_id": user_id})
        self.dispatcher.send_email(
            target,
            "Password Reset Confirmation",
            "Your password has been reset. Please log in again with your new password.",
            user_id=user_id,
        )

    def change_password(
        self,
        user_id: int,
        current_password: str,
        new_password: str,
        raw_access_token: str | None = None,
    ) -> None:
        """
        Replace the password after re-checking the current one.

        :raises InvalidCredentialError: Wrong current password.
        :raises ValidationError: New password equals the current one.
        """
        with self.locked_write(user_id) as uow:
            user = self._load(uow, user_id)
            if not user.verify_password(current_password):
                raise InvalidCredentialError("Invalid current password")
            if user.verify_password(new_password):
                raise ValidationError("New password must be different from the current password")
            self._set_password(user, new_password)
            user.clear_refresh_token()
            target = user.email
        self._end_session(raw_access_token)
        log.info("Password changed", extra={"event": "password_changed", "user_id": user_id})
        self.dispatcher.send_email(
            target,
            "Password Changed",
            "Your password has been changed. Please log in again with your new password.",
            user_id=user_id,
        )

    @staticmethod
    def _set_password(user: User, raw: str) -> None:
        try:
            user.password = raw
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

    # ------------------------------------------------------------------ #
    # Email change
    # ------------------------------------------------------------------ #

    def request_email_change(self, user_id: int, password: str, new_email: str) -> None:
        """
        Stage ``new_email`` and send a confirmation code to it.

        :raises InvalidCredentialError: Wrong password.
        :raises AlreadyInUseError: Another account owns ``new_email``.
        :raises ValidationError: Malformed address, or the current one.
        """
        with self.locked_write(user_id) as uow:
            user = self._load(uow, user_id)
            if not user.verify_password(password):
                raise InvalidCredentialError("Invalid password")
            try:
                user.pending_email = new_email
            except ValueError as exc:
                raise ValidationError(str(exc)) from exc
            if user.pending_email == user.email:
                raise ValidationError("New email must be different from the current email")
            if uow.users.exists_by_email(user.pending_email, exclude_id=user.id):
                raise AlreadyInUseError("email")
            target = user.pending_email
            code = self.otp.issue(uow, user, OtpPurpose.EMAIL_VERIFY)
        log.info("Email change requested", extra={"event": "email_change_requested", "user_id": user_id})
        self.dispatcher.send_email(
            target, "Email Change Verification", self._code_body("email change", code), user_id=user_id
        )

    def confirm_email_change(self, user_id: int, code: str, raw_access_token: str | None = None) -> str:
        """
        Swap the staged address in and end the current session.

        :returns: The new confirmed email.
        :raises ConflictError: No change is pending.
        :raises AlreadyInUseError: The address was claimed meanwhile.
        """
        with self.locked_write(user_id) as uow:
            user = self._load(uow, user_id)
            if not user.pending_email:
                raise ConflictError("User", "no email change pending")
            outcome = self.otp.check(uow, user, OtpPurpose.EMAIL_VERIFY, code)
            if outcome is OtpOutcome.OK:
                self.otp.apply_confirmation(uow, user, OtpPurpose.EMAIL_VERIFY)
                user.clear_refresh_token()
            email = user.email
        outcome.raise_for_failure()
        self._end_session(raw_access_token)
        log.info("Email changed", extra={"event": "email_changed", "user_id": user_id})
        return email

    # ------------------------------------------------------------------ #
    # Phone
    # ------------------------------------------------------------------ #

    def request_phone_change(self, user_id: int, phone_number: str) -> None:
        """Stage ``phone_number`` and text it a verification code."""
        phone = normalize_phone(phone_number)
        with self.locked_write(user_id) as uow:
            user = self._load(uow, user_id)
            user.pending_phone = phone
            code = self.otp.issue(uow, user, OtpPurpose.PHONE_VERIFY)
        self.dispatcher.send_sms(phone, self._code_body("phone verification", code), user_id=user_id)

    def verify_phone(self, user_id: int, code: str) -> None:
        self.otp.verify(user_id, OtpPurpose.PHONE_VERIFY, code)
