"""Service wiring: build every component once per application."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from flask import Flask, current_app

from authcore.core.extensions import get_redis
from authcore.infra.jwt.pyjwt_token_issuer import JWTTokenIssuer
from authcore.infra.mail.logging_sms_sender import LoggingSmsSender
from authcore.infra.mail.smtp_email_sender import LoggingEmailSender, SmtpEmailSender
from authcore.infra.redis.redis_denylist_store import RedisTokenDenylistStore
from authcore.infra.redis.redis_user_locks import RedisUserLocks
from authcore.services._shared.delivery import CodeDispatcher, DeliveryPolicy
from authcore.services._shared.ports import (
    Clock,
    EmailSender,
    InMemoryDenylistStore,
    InMemoryUserLocks,
    SmsSender,
    SystemClock,
    TokenDenylistStore,
    UserLockProvider,
)
from authcore.services.account import AccountService
from authcore.services.auth import AuthService
from authcore.services.otp import OtpVerifier
from authcore.services.revocation import RevocationRegistry, RevocationSweeper
from authcore.services.tokens import RefreshTokenConfig, RefreshTokenManager
from authcore.services.two_factor import TwoFactorEngine

log = logging.getLogger(__name__)

EXTENSION_KEY = "authcore"


@dataclass(slots=True)
class Services:
    """Application-scoped component graph."""

    clock: Clock
    issuer: JWTTokenIssuer
    registry: RevocationRegistry
    refresh: RefreshTokenManager
    otp: OtpVerifier
    two_factor: TwoFactorEngine
    auth: AuthService
    account: AccountService
    dispatcher: CodeDispatcher
    sweeper: RevocationSweeper | None = None


def _email_sender(app: Flask) -> EmailSender:
    cfg = app.config
    if not cfg.get("SMTP_HOST"):
        return LoggingEmailSender()
    return SmtpEmailSender(
        host=cfg["SMTP_HOST"],
        port=int(cfg.get("SMTP_PORT", 587)),
        user=cfg.get("SMTP_USER"),
        password=cfg.get("SMTP_PASSWORD"),
        use_tls=bool(cfg.get("SMTP_USE_TLS", True)),
        from_email=cfg["MAIL_FROM"],
    )


def _shared_state(app: Flask, clock: Clock) -> tuple[TokenDenylistStore, UserLockProvider]:
    timeout = float(app.config.get("USER_LOCK_TIMEOUT_SECONDS", 10))
    if app.config.get("REDIS_URL"):
        r = get_redis()
        return RedisTokenDenylistStore(r, clock=clock), RedisUserLocks(r, timeout=timeout)
    return InMemoryDenylistStore(clock=clock), InMemoryUserLocks(timeout=timeout)


def build_services(
    app: Flask,
    *,
    clock: Clock | None = None,
    email_sender: EmailSender | None = None,
    sms_sender: SmsSender | None = None,
) -> Services:
    """
    Assemble the component graph from ``app.config``.

    :param clock: Override the time source (tests).
    :param email_sender: Override the email transport (tests).
    :param sms_sender: Override the SMS transport (tests).
    :raises ConfigurationError: Missing signing key.
    """
    cfg = app.config
    clock = clock or SystemClock()
    store, locks = _shared_state(app, clock)

    issuer = JWTTokenIssuer(
        secret_key=cfg.get("JWT_SECRET_KEY"),
        algorithm=cfg.get("JWT_ALGORITHM", "HS256"),
        ttl=timedelta(minutes=int(cfg.get("ACCESS_TOKEN_EXPIRES_MINUTES", 15))),
        issuer=cfg.get("JWT_ISSUER"),
        clock=clock,
    )
    registry = RevocationRegistry(store=store, issuer=issuer, clock=clock)
    refresh = RefreshTokenManager(
        issuer=issuer,
        config=RefreshTokenConfig(
            ttl=timedelta(days=int(cfg.get("REFRESH_TOKEN_TTL_DAYS", 1))),
            remember_ttl=timedelta(days=int(cfg.get("REFRESH_TOKEN_REMEMBER_TTL_DAYS", 30))),
        ),
        clock=clock,
        locks=locks,
    )
    otp = OtpVerifier(
        ttl=timedelta(minutes=int(cfg.get("OTP_TTL_MINUTES", 15))),
        max_attempts=int(cfg.get("OTP_MAX_ATTEMPTS", 5)),
        clock=clock,
        locks=locks,
    )
    dispatcher = CodeDispatcher(
        email_sender=email_sender or _email_sender(app),
        sms_sender=sms_sender or LoggingSmsSender(),
        policy=DeliveryPolicy.parse(cfg.get("DELIVERY_FAILURE_POLICY", "best_effort")),
    )
    two_factor = TwoFactorEngine(
        otp=otp,
        refresh=refresh,
        dispatcher=dispatcher,
        issuer_name=cfg.get("TWO_FACTOR_ISSUER", "AuthCore"),
        valid_window=int(cfg.get("TOTP_VALID_WINDOW", 1)),
        recovery_code_count=int(cfg.get("RECOVERY_CODE_COUNT", 10)),
        login_ticket_ttl=timedelta(minutes=int(cfg.get("LOGIN_TICKET_TTL_MINUTES", 10))),
        clock=clock,
        locks=locks,
    )
    auth = AuthService(
        otp=otp,
        refresh=refresh,
        registry=registry,
        two_factor=two_factor,
        dispatcher=dispatcher,
        clock=clock,
        locks=locks,
    )
    account = AccountService(otp=otp, registry=registry, dispatcher=dispatcher, clock=clock, locks=locks)

    sweeper = None
    if not store.native_ttl:
        sweeper = RevocationSweeper(
            registry, interval=float(cfg.get("REVOCATION_SWEEP_INTERVAL_SECONDS", 60))
        )

    return Services(
        clock=clock,
        issuer=issuer,
        registry=registry,
        refresh=refresh,
        otp=otp,
        two_factor=two_factor,
        auth=auth,
        account=account,
        dispatcher=dispatcher,
        sweeper=sweeper,
    )


def init_app(app: Flask, **overrides) -> Services:
    """Build the services, store them on ``app.extensions`` and start the sweeper."""
    services = build_services(app, **overrides)
    app.extensions[EXTENSION_KEY] = services
    if services.sweeper is not None and not app.testing:
        services.sweeper.start()
    log.info(
        "Services ready (store=%s, policy=%s)",
        type(services.registry.store).__name__,
        services.dispatcher.policy.value,
    )
    return services


def get_services() -> Services:
    """Return the component graph of the current application."""
    return current_app.extensions[EXTENSION_KEY]
