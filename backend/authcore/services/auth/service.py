from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from authcore.models.enums import SELF_REGISTRATION_ROLES, OtpPurpose, TwoFactorState, UserRole
from authcore.models.user import User
from authcore.services._shared.base import BaseService
from authcore.services._shared.delivery import CodeDispatcher
from authcore.services._shared.errors import (
    AlreadyInUseError,
    EmailNotConfirmedError,
    InvalidCredentialError,
    NotFoundError,
    ValidationError,
    violates,
)
from authcore.services._shared.ports.clock import Clock
from authcore.services._shared.ports.user_lock import UserLockProvider
from authcore.services.auth.dto import LoginIn, LoginOut, RegisterIn, UserPublicOut
from authcore.services.otp.verifier import OtpVerifier
from authcore.services.revocation.registry import RevocationRegistry
from authcore.services.tokens.dto import TokenPair
from authcore.services.tokens.manager import RefreshTokenManager
from authcore.services.two_factor.engine import TwoFactorEngine

log = logging.getLogger(__name__)


def to_user_public(user: User) -> UserPublicOut:
    return UserPublicOut(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
        email_confirmed=user.email_confirmed,
        phone_number=user.phone_number,
        phone_confirmed=user.phone_confirmed,
        two_factor_enabled=user.two_factor_enabled,
        created_at=user.created_at,
    )


class AuthService(BaseService):
    """
    Sign-in lifecycle: register, login (with optional second factor),
    refresh, logout.

    Token minting, rotation, revocation and the second factor are delegated
    to the core components; this service only sequences them.
    """

    def __init__(
        self,
        *,
        otp: OtpVerifier,
        refresh: RefreshTokenManager,
        registry: RevocationRegistry,
        two_factor: TwoFactorEngine,
        dispatcher: CodeDispatcher,
        clock: Clock | None = None,
        locks: UserLockProvider | None = None,
    ) -> None:
        super().__init__(clock=clock, locks=locks)
        self.otp = otp
        self.refresh_tokens = refresh
        self.registry = registry
        self.two_factor = two_factor
        self.dispatcher = dispatcher

    # ------------------------------------------------------------------ #
    # Registration
    # ------------------------------------------------------------------ #

    def register(self, dto: RegisterIn) -> UserPublicOut:
        """
        Create an unconfirmed account and email its confirmation code.

        :raises AlreadyInUseError: The email is taken.
        :raises ValidationError: Role not open to self-registration, or malformed fields.
        """
        try:
            role = dto.role if isinstance(dto.role, UserRole) else UserRole.parse(dto.role)
        except ValueError as exc:
            raise ValidationError(f"Unknown role: {dto.role!r}") from exc
        if role not in SELF_REGISTRATION_ROLES:
            raise ValidationError(f"Role {role.value!r} cannot be self-assigned")

        try:
            with self.rw_uow() as uow:
                if uow.users.exists_by_email(dto.email):
                    raise AlreadyInUseError("email")
                try:
                    user = User(
                        email=dto.email,
                        password=dto.password,
                        first_name=dto.first_name,
                        last_name=dto.last_name,
                        role=role,
                        email_confirmed=False,
                    )
                except ValueError as exc:
                    raise ValidationError(str(exc)) from exc
                uow.users.add(user)
                code = self.otp.issue(uow, user, OtpPurpose.EMAIL_VERIFY)
                out = to_user_public(user)
        except IntegrityError as exc:
            # Lost the race against a concurrent registration.
            if violates(exc, "uq_users_email"):
                raise AlreadyInUseError("email") from exc
            raise

        log.info("User registered", extra={"event": "user_registered", "user_id": out.id})
        self.dispatcher.send_email(
            out.email,
            "Email Verification OTP",
            f"Your email verification code is {code}. It expires in "
            f"{int(self.otp.ttl.total_seconds() // 60)} minutes.",
            user_id=out.id,
        )
        return out

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    def login(self, dto: LoginIn) -> LoginOut:
        """
        Check the password and either issue tokens or open a second-factor challenge.

        :raises InvalidCredentialError: Unknown email or wrong password.
        :raises EmailNotConfirmedError: Email not confirmed yet.
        """
        with self.ro_uow() as uow:
            user = uow.users.authenticate(dto.email, dto.password)
            if user is None:
                log.warning("Login rejected", extra={"event": "login_rejected"})
                raise InvalidCredentialError()
            if not user.email_confirmed:
                raise EmailNotConfirmedError()
            user_id = user.id
            needs_second_factor = user.two_factor_state is TwoFactorState.ENABLED
            method = user.two_factor_method

        if needs_second_factor:
            challenge = self.two_factor.start_login_challenge(user_id)
            log.info("Second factor required", extra={"event": "login_two_factor", "user_id": user_id})
            return LoginOut(
                user_id=user_id,
                two_factor_required=True,
                two_factor_method=method,
                code_sent=challenge.code_sent,
                login_ticket=challenge.ticket,
            )

        pair = self.refresh_tokens.issue_tokens(user_id, remember_me=dto.remember_me)
        log.info("Login succeeded", extra={"event": "login", "user_id": user_id})
        return LoginOut(user_id=user_id, tokens=pair)

    def verify_two_factor(self, ticket: str, code: str, *, remember_device: bool = False) -> TokenPair:
        """
        Finish a login that requires a second factor.

        :param ticket: ``login_ticket`` returned by :meth:`login`.
        :raises InvalidTokenError: Unknown, superseded or expired ticket.
        :raises InvalidCodeError: Neither the factor nor a recovery code matched.
        :raises TooManyAttemptsError: The ticket ran out of attempts.
        """
        user_id = self.two_factor.resolve_login_ticket(ticket)
        return self.two_factor.verify_login(
            user_id, code, ticket=ticket, remember_device=remember_device
        )

    def resend_two_factor_code(self, ticket: str) -> bool:
        """
        Send a fresh login code for email/SMS factors.

        :returns: ``False`` for authenticator apps (nothing to send).
        :raises InvalidTokenError: Unknown, superseded or expired ticket.
        """
        user_id = self.two_factor.resolve_login_ticket(ticket)
        return self.two_factor.resend_login_code(user_id, ticket)

    # ------------------------------------------------------------------ #
    # Session
    # ------------------------------------------------------------------ #

    def refresh(self, raw_refresh_token: str, *, remember_me: bool = False) -> TokenPair:
        """Rotate a refresh token (single use)."""
        return self.refresh_tokens.rotate(raw_refresh_token, remember_me=remember_me)

    def logout(self, user_id: int, raw_access_token: str) -> None:
        """Revoke the presented access token and forget the refresh token."""
        self.registry.revoke_access_token(raw_access_token)
        self.refresh_tokens.revoke(user_id)
        log.info("Logout", extra={"event": "logout", "user_id": user_id})

    def whoami(self, user_id: int) -> UserPublicOut:
        with self.ro_uow() as uow:
            user = uow.users.get(user_id)
            if user is None:
                raise NotFoundError("User", user_id)
            return to_user_public(user)
