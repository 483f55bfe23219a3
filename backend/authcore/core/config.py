"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'


load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_int(name: str, default: int) -> int:
    """Parse an integer from an environment variable, falling back to ``default``."""
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return int(val)


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret used for session signing.
    JWT_SECRET_KEY: str
        Symmetric key for signing and verifying access tokens. Empty means
        *unconfigured*; the token issuer refuses to start in that case.
    JWT_ALGORITHM: str
        HMAC algorithm for access tokens (``HS256``).
    JWT_ISSUER: str | None
        Optional ``iss`` claim stamped on every access token.
    ACCESS_TOKEN_EXPIRES_MINUTES: int
        Access token lifetime.
    REFRESH_TOKEN_TTL_DAYS: int
        Refresh token lifetime for a regular sign-in.
    REFRESH_TOKEN_REMEMBER_TTL_DAYS: int
        Refresh token lifetime when "remember me"/"remember this device" is set.
    OTP_TTL_MINUTES: int
        Lifetime of a one-time code.
    OTP_MAX_ATTEMPTS: int
        Wrong submissions tolerated per code window, and per login ticket,
        before further attempts are refused.
    LOGIN_TICKET_TTL_MINUTES: int
        How long a password-verified sign-in waits for its second factor.
    TOTP_VALID_WINDOW: int
        Accepted authenticator time steps on each side of the current one.
    TWO_FACTOR_ISSUER: str
        Issuer label embedded in ``otpauth://`` enrollment URIs.
    RECOVERY_CODE_COUNT: int
        Recovery codes issued per (re)generation.
    DELIVERY_FAILURE_POLICY: str
        ``"best_effort"`` logs failed email/SMS dispatch and carries on;
        ``"strict"`` surfaces a :class:`DeliveryError` after the state change.
    REDIS_URL: str | None
        When set, revocations and per-user locks live in Redis.
    USER_LOCK_TIMEOUT_SECONDS: int
        Upper bound for waiting on a per-user lock. Redis leases last three
        times as long.
    REVOCATION_SWEEP_INTERVAL_SECONDS: int
        Purge period for the in-memory revocation store.
    SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD, SMTP_USE_TLS, MAIL_FROM:
        Outbound email settings. Without ``SMTP_HOST`` mail is only logged.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string consumed by SQLAlchemy.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    CORS_ORIGINS: str
        Comma-separated list of allowed origins for CORS.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")

    # Tokens
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER") or None
    ACCESS_TOKEN_EXPIRES_MINUTES = env_int("ACCESS_TOKEN_EXPIRES_MINUTES", 15)
    REFRESH_TOKEN_TTL_DAYS = env_int("REFRESH_TOKEN_TTL_DAYS", 1)
    REFRESH_TOKEN_REMEMBER_TTL_DAYS = env_int("REFRESH_TOKEN_REMEMBER_TTL_DAYS", 30)

    # One-time codes & 2FA
    OTP_TTL_MINUTES = env_int("OTP_TTL_MINUTES", 15)
    OTP_MAX_ATTEMPTS = env_int("OTP_MAX_ATTEMPTS", 5)
    LOGIN_TICKET_TTL_MINUTES = env_int("LOGIN_TICKET_TTL_MINUTES", 10)
    TOTP_VALID_WINDOW = env_int("TOTP_VALID_WINDOW", 1)
    TWO_FACTOR_ISSUER = os.getenv("TWO_FACTOR_ISSUER", "AuthCore")
    RECOVERY_CODE_COUNT = env_int("RECOVERY_CODE_COUNT", 10)
    DELIVERY_FAILURE_POLICY = os.getenv("DELIVERY_FAILURE_POLICY", "best_effort")

    # Shared state
    REDIS_URL = os.getenv("REDIS_URL") or None
    USER_LOCK_TIMEOUT_SECONDS = env_int("USER_LOCK_TIMEOUT_SECONDS", 10)
    REVOCATION_SWEEP_INTERVAL_SECONDS = env_int("REVOCATION_SWEEP_INTERVAL_SECONDS", 60)

    # Outbound mail
    SMTP_HOST = os.getenv("SMTP_HOST") or None
    SMTP_PORT = env_int("SMTP_PORT", 587)
    SMTP_USER = os.getenv("SMTP_USER") or None
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD") or None
    SMTP_USE_TLS = env_bool("SMTP_USE_TLS", True)
    MAIL_FROM = os.getenv("MAIL_FROM", "no-reply@authcore.local")

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging, CORS & proxy
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")
    USE_PROXYFIX = env_bool("USE_PROXYFIX", True)
    PROXY_HOPS = env_int("PROXY_HOPS", 1)

    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Supplies a local-only signing key when ``JWT_SECRET_KEY`` is unset so the
    app boots out of the box. Never reuse it outside a developer machine.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY") or "dev-only-insecure-signing-key"
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Propagates exceptions so pytest can surface tracebacks directly.
    """

    TESTING = True
    DEBUG = False
    JWT_SECRET_KEY = "testing-signing-key-0123456789abcdef"
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    REDIS_URL = None
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Keeps debug disabled and has no fallback signing key: a missing
    ``JWT_SECRET_KEY`` aborts startup.
    """

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False


CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
