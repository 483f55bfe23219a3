"""
Single-use, time-boxed six-digit codes.

Shared by email confirmation, password reset, phone verification and the
email/SMS second factor. Codes are drawn uniformly from ``000000``–``999999``
with :func:`secrets.randbelow`, stored only as SHA-256 digests, and compared
in constant time.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import timedelta
from enum import Enum

from authcore.models.enums import OtpPurpose
from authcore.models.otp_challenge import OtpChallenge
from authcore.models.user import User
from authcore.services._shared.base import BaseService
from authcore.services._shared.errors import (
    AlreadyInUseError,
    ExpiredCodeError,
    InvalidCodeError,
    NotFoundError,
    TooManyAttemptsError,
)
from authcore.services._shared.ports.clock import Clock
from authcore.services._shared.ports.user_lock import UserLockProvider
from authcore.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork

log = logging.getLogger(__name__)

OTP_DIGITS = 6
_OTP_SPACE = 10**OTP_DIGITS


def generate_otp() -> str:
    """Return a uniformly random, zero-padded six-digit code."""
    return f"{secrets.randbelow(_OTP_SPACE):0{OTP_DIGITS}d}"


def hash_otp(code: str) -> str:
    return hashlib.sha256(code.encode("ascii")).hexdigest()


def normalize_otp(code: str | None) -> str | None:
    """Strip blanks; return ``None`` unless exactly six ASCII digits remain."""
    if code is None:
        return None
    cleaned = "".join(str(code).split())
    if len(cleaned) != OTP_DIGITS or not cleaned.isascii() or not cleaned.isdigit():
        return None
    return cleaned


class OtpOutcome(Enum):
    """Result of checking a submitted code against the live challenge."""

    OK = "ok"
    INVALID = "invalid"
    EXPIRED = "expired"

    def raise_for_failure(self) -> None:
        if self is OtpOutcome.INVALID:
            raise InvalidCodeError()
        if self is OtpOutcome.EXPIRED:
            raise ExpiredCodeError()


class OtpVerifier(BaseService):
    """
    Issue and verify one-time codes per ``(user, purpose)``.

    :param ttl: Code lifetime (15 minutes by default).
    :param max_attempts: Wrong submissions tolerated before the challenge locks.
    """

    def __init__(
        self,
        *,
        ttl: timedelta = timedelta(minutes=15),
        max_attempts: int = 5,
        clock: Clock | None = None,
        locks: UserLockProvider | None = None,
    ) -> None:
        super().__init__(clock=clock, locks=locks)
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.ttl = ttl
        self.max_attempts = max_attempts

    # ------------------------------------------------------------------ #
    # Building blocks (run inside the caller's locked unit of work)
    # ------------------------------------------------------------------ #

    def issue(self, uow: SQLAlchemyUnitOfWork, user: User, purpose: OtpPurpose) -> str:
        """
        Create or overwrite the challenge for ``(user, purpose)``.

        Wrong attempts are counted per window of ``ttl`` starting at the
        first issue, so a reissue inside the window keeps the count.

        :returns: The raw code, to be delivered after commit.
        :raises TooManyAttemptsError: The window's attempts are spent.
        """
        code = generate_otp()
        now = self.now()
        challenge = uow.otp_challenges.get_for(user.id, purpose)
        if challenge is None:
            uow.otp_challenges.add(
                OtpChallenge(
                    user_id=user.id,
                    purpose=purpose,
                    code_hash=hash_otp(code),
                    expires_at=now + self.ttl,
                    attempts=0,
                    window_started_at=now,
                )
            )
        else:
            if now >= challenge.window_started_at + self.ttl:
                challenge.attempts = 0
                challenge.window_started_at = now
            elif challenge.attempts >= self.max_attempts:
                log.warning(
                    "Code reissue refused while locked",
                    extra={"event": "otp_throttled", "user_id": user.id, "purpose": purpose.value},
                )
                raise TooManyAttemptsError()
            challenge.code_hash = hash_otp(code)
            challenge.expires_at = now + self.ttl
            uow.otp_challenges.flush()
        log.info(
            "One-time code issued",
            extra={"event": "otp_issued", "user_id": user.id, "purpose": purpose.value},
        )
        return code

    def check(
        self,
        uow: SQLAlchemyUnitOfWork,
        user: User,
        purpose: OtpPurpose,
        code: str | None,
    ) -> OtpOutcome:
        """
        Compare ``code`` with the live challenge and consume it on success.

        A wrong code counts as an attempt. Once ``max_attempts`` is reached
        the challenge is locked: every later submission is invalid, the
        right code included. A correct code at or after ``expires_at`` is
        expired. Either way a correct code removes the challenge.
        """
        challenge = uow.otp_challenges.get_for(user.id, purpose)
        extra = {"user_id": user.id, "purpose": purpose.value}
        if challenge is None:
            log.warning("No outstanding code", extra={"event": "otp_invalid", **extra})
            return OtpOutcome.INVALID
        if challenge.attempts >= self.max_attempts:
            log.warning("Code submitted while locked", extra={"event": "otp_locked", **extra})
            return OtpOutcome.INVALID

        candidate = normalize_otp(code)
        if candidate is None or not hmac.compare_digest(challenge.code_hash, hash_otp(candidate)):
            challenge.attempts += 1
            uow.otp_challenges.flush()
            if challenge.attempts >= self.max_attempts:
                log.warning("Code locked after too many attempts", extra={"event": "otp_locked", **extra})
            else:
                log.warning("Invalid code submitted", extra={"event": "otp_invalid", **extra})
            return OtpOutcome.INVALID

        uow.otp_challenges.delete(challenge)
        if self.now() >= challenge.expires_at:
            log.warning("Expired code submitted", extra={"event": "otp_expired", **extra})
            return OtpOutcome.EXPIRED
        return OtpOutcome.OK

    def discard(self, uow: SQLAlchemyUnitOfWork, user: User, *purposes: OtpPurpose) -> int:
        return uow.otp_challenges.delete_for(user.id, purposes)

    # ------------------------------------------------------------------ #
    # Public operations
    # ------------------------------------------------------------------ #

    def generate(self, user_id: int, purpose: OtpPurpose) -> str:
        """
        Issue a fresh code, replacing any outstanding one for the same purpose.

        :raises NotFoundError: Unknown user.
        :raises TooManyAttemptsError: The purpose is locked for this window.
        """
        with self.locked_write(user_id) as uow:
            user = self._load(uow, user_id)
            return self.issue(uow, user, purpose)

    def verify(self, user_id: int, purpose: OtpPurpose, code: str | None) -> None:
        """
        Consume the code and apply its confirmation effect.

        ``EMAIL_VERIFY`` confirms the address (swapping in a staged
        ``pending_email``); ``PHONE_VERIFY`` does the same for the phone.
        Other purposes only consume the code.

        :raises InvalidCodeError: Wrong code or none outstanding.
        :raises ExpiredCodeError: Correct code at or past its expiry.
        :raises AlreadyInUseError: A staged email was claimed meanwhile.
        :raises NotFoundError: Unknown user.
        """
        with self.locked_write(user_id) as uow:
            user = self._load(uow, user_id)
            outcome = self.check(uow, user, purpose, code)
            if outcome is OtpOutcome.OK:
                self.apply_confirmation(uow, user, purpose)
        # Raised after commit so the attempt counter persists.
        outcome.raise_for_failure()

    def apply_confirmation(self, uow: SQLAlchemyUnitOfWork, user: User, purpose: OtpPurpose) -> None:
        if purpose is OtpPurpose.EMAIL_VERIFY:
            if user.pending_email:
                if uow.users.exists_by_email(user.pending_email, exclude_id=user.id):
                    raise AlreadyInUseError("email")
                user.email = user.pending_email
                user.pending_email = None
            user.email_confirmed = True
            log.info("Email confirmed", extra={"event": "email_confirmed", "user_id": user.id})
        elif purpose is OtpPurpose.PHONE_VERIFY:
            if user.pending_phone:
                user.phone_number = user.pending_phone
                user.pending_phone = None
            user.phone_confirmed = True
            log.info("Phone confirmed", extra={"event": "phone_confirmed", "user_id": user.id})

    @staticmethod
    def _load(uow: SQLAlchemyUnitOfWork, user_id: int) -> User:
        user = uow.users.get_for_update(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user
