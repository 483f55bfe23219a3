"""
Two-factor enrollment, login verification and recovery codes.

Per-user state machine::

    Disabled --setup--> PendingSetup --verify_setup--> Enabled --disable--> Disabled

Every transition runs under the user's lock inside one write scope. Codes
are delivered only after that scope has committed.

A sign-in that passed the password check waits for its second factor as a
:class:`PendingLogin`, reachable only through the opaque ticket handed back
by :meth:`TwoFactorEngine.start_login_challenge`.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import timedelta

from authcore.models.enums import OtpPurpose, TwoFactorMethod, TwoFactorState
from authcore.models.pending_login import PendingLogin
from authcore.models.user import User
from authcore.services._shared.base import BaseService
from authcore.services._shared.delivery import CodeDispatcher
from authcore.services._shared.errors import (
    InvalidCodeError,
    InvalidCredentialError,
    InvalidTokenError,
    NotFoundError,
    TooManyAttemptsError,
    TwoFactorStateError,
    ValidationError,
)
from authcore.services._shared.ports.clock import Clock
from authcore.services._shared.ports.user_lock import UserLockProvider
from authcore.services.otp.verifier import OtpOutcome, OtpVerifier, normalize_otp
from authcore.services.tokens.dto import TokenPair
from authcore.services.tokens.manager import RefreshTokenManager
from authcore.services.two_factor import recovery, totp
from authcore.services.two_factor.dto import LoginChallenge, SetupOut, TwoFactorStatusOut
from authcore.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork

log = logging.getLogger(__name__)

_TWO_FACTOR_PURPOSES = (OtpPurpose.TWO_FACTOR_SETUP, OtpPurpose.TWO_FACTOR_LOGIN)

_SUBJECTS = {
    OtpPurpose.TWO_FACTOR_SETUP: "Confirm two-factor authentication",
    OtpPurpose.TWO_FACTOR_LOGIN: "Your sign-in code",
}

LOGIN_TICKET_BYTES = 32
_TICKET_REJECTED = "Invalid or expired login ticket"


def hash_login_ticket(ticket: str) -> str:
    return hashlib.sha256(ticket.encode("utf-8")).hexdigest()


class _DeliveredCodeFactor:
    """Email and SMS: a one-time code is sent out of band per challenge."""

    def __init__(self, engine: TwoFactorEngine, method: TwoFactorMethod) -> None:
        self.engine = engine
        self.method = method

    def target(self, user: User) -> str | None:
        if self.method is TwoFactorMethod.SMS:
            return user.phone_number
        return user.email

    def challenge(self, uow: SQLAlchemyUnitOfWork, user: User, purpose: OtpPurpose) -> str:
        return self.engine.otp.issue(uow, user, purpose)

    def check(
        self, uow: SQLAlchemyUnitOfWork, user: User, purpose: OtpPurpose, code: str | None
    ) -> OtpOutcome:
        return self.engine.otp.check(uow, user, purpose, code)

    def deliver(self, target: str, code: str, purpose: OtpPurpose, *, user_id: int) -> None:
        minutes = int(self.engine.otp.ttl.total_seconds() // 60)
        body = f"Your verification code is {code}. It expires in {minutes} minutes."
        dispatcher = self.engine.dispatcher
        if self.method is TwoFactorMethod.SMS:
            dispatcher.send_sms(target, body, user_id=user_id)
        else:
            dispatcher.send_email(target, _SUBJECTS[purpose], body, user_id=user_id)


class _AuthenticatorFactor:
    """Authenticator apps: RFC 6238 codes derived from the shared secret."""

    method = TwoFactorMethod.AUTHENTICATOR

    def __init__(self, engine: TwoFactorEngine) -> None:
        self.engine = engine

    def target(self, user: User) -> str | None:
        return None

    def challenge(self, uow: SQLAlchemyUnitOfWork, user: User, purpose: OtpPurpose) -> None:
        return None

    def check(
        self, uow: SQLAlchemyUnitOfWork, user: User, purpose: OtpPurpose, code: str | None
    ) -> OtpOutcome:
        step = totp.match_step(
            user.two_factor_secret or "",
            code,
            at=self.engine.now(),
            window=self.engine.valid_window,
        )
        if step is None:
            return OtpOutcome.INVALID
        last = user.two_factor_last_step
        if last is not None and step <= last:
            log.warning(
                "Authenticator code replayed",
                extra={"event": "totp_replay", "user_id": user.id},
            )
            return OtpOutcome.INVALID
        user.two_factor_last_step = step
        return OtpOutcome.OK

    def deliver(self, target: str, code: str, purpose: OtpPurpose, *, user_id: int) -> None:
        raise TypeError("Authenticator codes are never delivered")


class TwoFactorEngine(BaseService):
    """
    Drive the two-factor lifecycle of a user.

    :param otp: Verifier for email/SMS codes.
    :param refresh: Issues the token pair after a successful login check.
    :param dispatcher: Outbound email/SMS delivery.
    :param issuer_name: Issuer label embedded in authenticator enrollment URIs.
    :param valid_window: Accepted authenticator clock skew, in 30-second steps.
    :param recovery_code_count: Size of a freshly generated recovery set.
    :param login_ticket_ttl: How long a password-verified sign-in waits for
        its second factor. Each ticket tolerates ``otp.max_attempts`` wrong codes.
    """

    def __init__(
        self,
        *,
        otp: OtpVerifier,
        refresh: RefreshTokenManager,
        dispatcher: CodeDispatcher,
        issuer_name: str = "AuthCore",
        valid_window: int = 1,
        recovery_code_count: int = 10,
        login_ticket_ttl: timedelta = timedelta(minutes=10),
        clock: Clock | None = None,
        locks: UserLockProvider | None = None,
    ) -> None:
        super().__init__(clock=clock, locks=locks)
        if valid_window < 0:
            raise ValueError("valid_window must be >= 0")
        if recovery_code_count < 1:
            raise ValueError("recovery_code_count must be >= 1")
        self.otp = otp
        self.refresh = refresh
        self.dispatcher = dispatcher
        self.issuer_name = issuer_name
        self.valid_window = valid_window
        self.recovery_code_count = recovery_code_count
        self.login_ticket_ttl = login_ticket_ttl
        self._factors: dict[TwoFactorMethod, _DeliveredCodeFactor | _AuthenticatorFactor] = {
            method: _DeliveredCodeFactor(self, method) if method.delivers_code else _AuthenticatorFactor(self)
            for method in TwoFactorMethod
        }

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _load(uow: SQLAlchemyUnitOfWork, user_id: int) -> User:
        user = uow.users.get_for_update(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def _factor(self, user: User) -> _DeliveredCodeFactor | _AuthenticatorFactor:
        if user.two_factor_method is None:
            raise TwoFactorStateError("Two-factor authentication is not enabled for this user")
        return self._factors[user.two_factor_method]

    @staticmethod
    def _require_enabled(user: User) -> None:
        if user.two_factor_state is not TwoFactorState.ENABLED:
            raise TwoFactorStateError("Two-factor authentication is not enabled for this user")

    @staticmethod
    def _parse_method(method: TwoFactorMethod | str) -> TwoFactorMethod:
        if isinstance(method, TwoFactorMethod):
            return method
        try:
            return TwoFactorMethod.parse(method)
        except ValueError as exc:
            raise ValidationError(f"Unsupported two-factor method: {method!r}") from exc

    def _consume_recovery(self, uow: SQLAlchemyUnitOfWork, user: User, code: str | None) -> bool:
        canonical = recovery.normalize(code)
        if canonical is None:
            return False
        row = uow.recovery_codes.find(user.id, recovery.hash_code(canonical))
        if row is None:
            return False
        uow.recovery_codes.delete(row)
        log.info("Recovery code consumed", extra={"event": "recovery_code_used", "user_id": user.id})
        return True

    def _replace_recovery_codes(self, uow: SQLAlchemyUnitOfWork, user: User, count: int) -> list[str]:
        codes = recovery.generate_codes(count)
        uow.recovery_codes.replace_all(user.id, [recovery.hash_code(c) for c in codes])
        return codes

    # ------------------------------------------------------------------ #
    # Enrollment
    # ------------------------------------------------------------------ #

    def setup(self, user_id: int, method: TwoFactorMethod | str) -> SetupOut:
        """
        Start enrollment with a fresh secret; restarts a pending enrollment.

        Email and SMS also receive a six-digit setup code. The authenticator
        method instead gets an ``otpauth://`` URI for QR rendering.

        :raises TwoFactorStateError: Two-factor is already enabled.
        :raises ValidationError: Unknown method, or SMS without a phone number.
        :raises NotFoundError: Unknown user.
        """
        chosen = self._parse_method(method)
        factor = self._factors[chosen]
        with self.locked_write(user_id) as uow:
            user = self._load(uow, user_id)
            if user.two_factor_state is TwoFactorState.ENABLED:
                raise TwoFactorStateError("Two-factor authentication is already enabled")
            if chosen is TwoFactorMethod.SMS and not user.phone_number:
                raise ValidationError("A phone number is required for SMS two-factor authentication")

            secret = totp.new_secret()
            user.two_factor_method = chosen
            user.two_factor_secret = secret
            user.two_factor_enabled = False
            user.two_factor_enabled_at = None
            user.two_factor_last_step = None
            self.otp.discard(uow, user, OtpPurpose.TWO_FACTOR_LOGIN)

            code = factor.challenge(uow, user, OtpPurpose.TWO_FACTOR_SETUP)
            target = factor.target(user)
            qr_uri = None
            if not chosen.delivers_code:
                qr_uri = totp.provisioning_uri(secret, email=user.email, issuer=self.issuer_name)

        log.info(
            "Two-factor setup started",
            extra={"event": "two_factor_setup", "user_id": user_id, "method": chosen.value},
        )
        if code is not None and target:
            factor.deliver(target, code, OtpPurpose.TWO_FACTOR_SETUP, user_id=user_id)
        return SetupOut(method=chosen, secret=secret, qr_uri=qr_uri, otp_issued=code is not None)

    def verify_setup(self, user_id: int, code: str | None) -> list[str]:
        """
        Complete enrollment and return the first recovery-code set.

        :returns: ``recovery_code_count`` unique codes, shown to the user once.
        :raises TwoFactorStateError: No enrollment is pending.
        :raises InvalidCodeError: Wrong code; the enrollment stays pending.
        :raises ExpiredCodeError: Correct email/SMS code past its expiry.
        """
        codes: list[str] = []
        with self.locked_write(user_id) as uow:
            user = self._load(uow, user_id)
            if user.two_factor_state is not TwoFactorState.PENDING_SETUP:
                raise TwoFactorStateError("No two-factor setup is pending for this user")
            method = user.two_factor_method
            outcome = self._factor(user).check(uow, user, OtpPurpose.TWO_FACTOR_SETUP, code)
            if outcome is OtpOutcome.OK:
                codes = self._replace_recovery_codes(uow, user, self.recovery_code_count)
                user.two_factor_enabled = True
                user.two_factor_enabled_at = self.now()
        outcome.raise_for_failure()
        log.info(
            "Two-factor enabled",
            extra={"event": "two_factor_enabled", "user_id": user_id, "method": method.value},
        )
        return codes

    def disable(self, user_id: int, password: str) -> None:
        """
        Turn two-factor off after re-checking the password.

        Clears the method, the secret, the recovery codes, any open challenge
        and any sign-in waiting for its second factor.

        :raises InvalidCredentialError: Wrong password.
        :raises TwoFactorStateError: Two-factor is neither enabled nor pending.
        """
        with self.locked_write(user_id) as uow:
            user = self._load(uow, user_id)
            if not user.verify_password(password):
                raise InvalidCredentialError("Invalid password")
            if user.two_factor_state is TwoFactorState.DISABLED:
                raise TwoFactorStateError("Two-factor authentication is not enabled for this user")
            user.clear_two_factor()
            uow.recovery_codes.delete_all(user.id)
            uow.pending_logins.delete_for_user(user.id)
            self.otp.discard(uow, user, *_TWO_FACTOR_PURPOSES)
        log.info("Two-factor disabled", extra={"event": "two_factor_disabled", "user_id": user_id})

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    def _pending_login(self, uow: SQLAlchemyUnitOfWork, user: User, ticket: str | None) -> PendingLogin:
        pending = uow.pending_logins.get_for_user(user.id)
        if (
            pending is None
            or not ticket
            or not hmac.compare_digest(pending.ticket_hash, hash_login_ticket(ticket))
            or self.now() >= pending.expires_at
        ):
            log.warning("Login ticket rejected", extra={"event": "login_ticket_rejected", "user_id": user.id})
            raise InvalidTokenError(_TICKET_REJECTED)
        return pending

    def start_login_challenge(self, user_id: int) -> LoginChallenge:
        """
        Open a login challenge after the password step.

        Replaces any earlier pending sign-in of the user, so only the newest
        ticket works. Email and SMS users also get a code.

        :returns: The raw ticket and whether a code was sent.
        :raises TwoFactorStateError: Two-factor is not enabled.
        :raises TooManyAttemptsError: Login codes are locked for this window.
        """
        ticket = secrets.token_urlsafe(LOGIN_TICKET_BYTES)
        with self.locked_write(user_id) as uow:
            user = self._load(uow, user_id)
            self._require_enabled(user)
            factor = self._factor(user)
            code = factor.challenge(uow, user, OtpPurpose.TWO_FACTOR_LOGIN)
            target = factor.target(user)
            expires_at = self.now() + self.login_ticket_ttl
            pending = uow.pending_logins.get_for_user(user.id)
            if pending is None:
                uow.pending_logins.add(
                    PendingLogin(
                        user_id=user.id,
                        ticket_hash=hash_login_ticket(ticket),
                        expires_at=expires_at,
                        failures=0,
                    )
                )
            else:
                pending.ticket_hash = hash_login_ticket(ticket)
                pending.expires_at = expires_at
                pending.failures = 0
                uow.pending_logins.flush()
        code_sent = code is not None and bool(target)
        if code_sent:
            factor.deliver(target, code, OtpPurpose.TWO_FACTOR_LOGIN, user_id=user_id)
        return LoginChallenge(ticket=ticket, code_sent=code_sent, expires_at=expires_at)

    def resolve_login_ticket(self, ticket: str | None) -> int:
        """
        Return the user a live ticket belongs to.

        :raises InvalidTokenError: Unknown, superseded or expired ticket.
        """
        if ticket:
            with self.ro_uow() as uow:
                pending = uow.pending_logins.get_by_hash(hash_login_ticket(ticket))
                if pending is not None and self.now() < pending.expires_at:
                    return pending.user_id
        raise InvalidTokenError(_TICKET_REJECTED)

    def resend_login_code(self, user_id: int, ticket: str | None) -> bool:
        """
        Send a fresh login code for a pending sign-in.

        The ticket keeps its failure count.

        :returns: ``False`` for the authenticator method (nothing to send).
        :raises InvalidTokenError: The ticket is not the user's live one.
        :raises TooManyAttemptsError: Login codes are locked for this window.
        """
        with self.locked_write(user_id) as uow:
            user = self._load(uow, user_id)
            self._require_enabled(user)
            self._pending_login(uow, user, ticket)
            factor = self._factor(user)
            code = factor.challenge(uow, user, OtpPurpose.TWO_FACTOR_LOGIN)
            target = factor.target(user)
        if code is None or not target:
            return False
        factor.deliver(target, code, OtpPurpose.TWO_FACTOR_LOGIN, user_id=user_id)
        return True

    def verify_login(
        self,
        user_id: int,
        code: str | None,
        *,
        ticket: str | None,
        remember_device: bool = False,
    ) -> TokenPair:
        """
        Check the second factor and issue a token pair.

        The primary method is tried first, then a recovery code. A
        recovery code is consumed on success. Every miss is counted on the
        ticket; the last tolerated miss discards it and the user has to
        sign in with the password again.

        :param ticket: Ticket returned by :meth:`start_login_challenge`.
        :param remember_device: Extend the refresh-token lifetime.
        :raises InvalidCodeError: Neither the primary factor nor a recovery code matched.
        :raises TooManyAttemptsError: That miss used up the ticket.
        :raises InvalidTokenError: The ticket is not the user's live one.
        :raises TwoFactorStateError: Two-factor is not enabled.
        """
        pair: TokenPair | None = None
        exhausted = False
        with self.locked_write(user_id) as uow:
            user = self._load(uow, user_id)
            self._require_enabled(user)
            pending = self._pending_login(uow, user, ticket)
            outcome = OtpOutcome.INVALID
            if normalize_otp(code) is not None:
                outcome = self._factor(user).check(uow, user, OtpPurpose.TWO_FACTOR_LOGIN, code)
            if outcome is not OtpOutcome.OK and self._consume_recovery(uow, user, code):
                outcome = OtpOutcome.OK
                self.otp.discard(uow, user, OtpPurpose.TWO_FACTOR_LOGIN)
            if outcome is OtpOutcome.OK:
                uow.pending_logins.delete(pending)
                pair = self.refresh.issue_pair(user, remember_me=remember_device)
            else:
                pending.failures += 1
                exhausted = pending.failures >= self.otp.max_attempts
                if exhausted:
                    uow.pending_logins.delete(pending)
                else:
                    uow.pending_logins.flush()
        if pair is None:
            log.warning(
                "Two-factor login rejected",
                extra={"event": "two_factor_rejected", "user_id": user_id, "ticket_spent": exhausted},
            )
            if exhausted:
                raise TooManyAttemptsError("Too many failed attempts, please sign in again")
            raise InvalidCodeError()
        log.info("Two-factor login verified", extra={"event": "two_factor_login", "user_id": user_id})
        return pair

    # ------------------------------------------------------------------ #
    # Recovery codes
    # ------------------------------------------------------------------ #

    def generate_recovery_codes(self, user_id: int, count: int | None = None) -> list[str]:
        """
        Replace the whole recovery set; every earlier code stops working.

        :raises ValidationError: ``count`` is below 1.
        :raises TwoFactorStateError: Two-factor is not enabled.
        """
        wanted = self.recovery_code_count if count is None else count
        if wanted < 1:
            raise ValidationError("Recovery code count must be at least 1")
        with self.locked_write(user_id) as uow:
            user = self._load(uow, user_id)
            self._require_enabled(user)
            codes = self._replace_recovery_codes(uow, user, wanted)
        log.info(
            "Recovery codes regenerated",
            extra={"event": "recovery_codes_regenerated", "user_id": user_id},
        )
        return codes

    def validate_recovery_code(self, user_id: int, code: str | None) -> bool:
        """Consume ``code`` if it belongs to the user's set; a miss changes nothing."""
        with self.locked_write(user_id) as uow:
            user = self._load(uow, user_id)
            return self._consume_recovery(uow, user, code)

    def status(self, user_id: int) -> TwoFactorStatusOut:
        with self.ro_uow() as uow:
            user = uow.users.get(user_id)
            if user is None:
                raise NotFoundError("User", user_id)
            return TwoFactorStatusOut(
                method=user.two_factor_method,
                state=user.two_factor_state,
                enabled=user.two_factor_enabled,
                enabled_at=user.two_factor_enabled_at,
                recovery_codes_remaining=uow.recovery_codes.count_for_user(user.id),
            )
