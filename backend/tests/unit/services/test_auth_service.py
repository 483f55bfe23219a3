# tests/unit/services/test_auth_service.py
from __future__ import annotations

import pytest

from authcore.models.enums import TwoFactorMethod, UserRole
from authcore.models.user import User
from authcore.services._shared.errors import (
    AlreadyInUseError,
    EmailNotConfirmedError,
    InvalidCodeError,
    InvalidCredentialError,
    InvalidTokenError,
    NotFoundError,
    ValidationError,
)
from authcore.services.auth import AuthService
from authcore.services.auth.dto import LoginIn, RegisterIn
from tests.factories.user import DEFAULT_PASSWORD, UserFactory
from tests.helpers.outbox import latest_code


# ------------------------------ Fixtures ---------------------------------- #
@pytest.fixture()
def service(services) -> AuthService:
    return services.auth


def _register(service: AuthService, email: str = "new@example.com", **kwargs):
    return service.register(
        RegisterIn(
            email=email,
            password=kwargs.pop("password", "S3cret!pass"),
            first_name="Grace",
            last_name="Hopper",
            **kwargs,
        )
    )


# ----------------------------- Registration ------------------------------- #
def test_register_creates_unconfirmed_user_and_emails_code(service, email_outbox, session):
    out = _register(service, email="  New@Example.com ")

    assert out.email == "new@example.com"
    assert out.email_confirmed is False
    assert out.role is UserRole.PATIENT
    message = email_outbox.last_to("new@example.com")
    assert message is not None
    assert message.subject == "Email Verification OTP"
    assert len(latest_code(email_outbox, "new@example.com")) == 6

    stored = session.get(User, out.id)
    assert stored.password_hash != "S3cret!pass"


def test_register_duplicate_email(service):
    UserFactory(email="dup@example.com")
    with pytest.raises(AlreadyInUseError):
        _register(service, email="DUP@example.com")


def test_register_allows_doctor_role(service):
    assert _register(service, role="doctor").role is UserRole.DOCTOR


@pytest.mark.parametrize("role", ["admin", "superuser"])
def test_register_rejects_non_self_assignable_roles(service, role):
    with pytest.raises(ValidationError):
        _register(service, role=role)


def test_register_rejects_malformed_email(service):
    with pytest.raises(ValidationError):
        _register(service, email="not-an-email")


# -------------------------------- Login ----------------------------------- #
def test_login_returns_tokens(service, services):
    user = UserFactory(email="a@example.com")

    out = service.login(LoginIn(email="a@example.com", password=DEFAULT_PASSWORD))

    assert out.user_id == user.id
    assert out.two_factor_required is False
    assert out.login_ticket is None
    assert out.tokens is not None
    claims = services.issuer.decode(out.tokens.access_token)
    assert claims["sub"] == str(user.id)
    assert claims["email"] == "a@example.com"
    assert claims["role"] == "patient"


@pytest.mark.parametrize(
    ("email", "password"),
    [("a@example.com", "wrong"), ("missing@example.com", DEFAULT_PASSWORD)],
)
def test_login_invalid_credentials(service, email, password):
    UserFactory(email="a@example.com")
    with pytest.raises(InvalidCredentialError):
        service.login(LoginIn(email=email, password=password))


def test_login_requires_confirmed_email(service):
    UserFactory(email="pending@example.com", email_confirmed=False)
    with pytest.raises(EmailNotConfirmedError):
        service.login(LoginIn(email="pending@example.com", password=DEFAULT_PASSWORD))


def test_login_with_two_factor_opens_challenge(service, services, email_outbox):
    user = UserFactory()
    services.two_factor.setup(user.id, TwoFactorMethod.EMAIL)
    services.two_factor.verify_setup(user.id, latest_code(email_outbox, user.email))
    email_outbox.outbox.clear()

    out = service.login(LoginIn(email=user.email, password=DEFAULT_PASSWORD))

    assert out.tokens is None
    assert out.two_factor_required is True
    assert out.two_factor_method is TwoFactorMethod.EMAIL
    assert out.code_sent is True
    assert out.login_ticket

    pair = service.verify_two_factor(out.login_ticket, latest_code(email_outbox, user.email))
    assert pair.access_token


def test_resend_two_factor_code_replaces_previous(service, services, email_outbox):
    user = UserFactory()
    services.two_factor.setup(user.id, TwoFactorMethod.EMAIL)
    services.two_factor.verify_setup(user.id, latest_code(email_outbox, user.email))
    ticket = service.login(LoginIn(email=user.email, password=DEFAULT_PASSWORD)).login_ticket
    first = latest_code(email_outbox, user.email)

    assert service.resend_two_factor_code(ticket) is True
    second = latest_code(email_outbox, user.email)

    if first != second:
        with pytest.raises(InvalidCodeError):
            service.verify_two_factor(ticket, first)
    service.verify_two_factor(ticket, second)


def test_verify_two_factor_unknown_ticket(service):
    with pytest.raises(InvalidTokenError):
        service.verify_two_factor("never-issued", "123456")
    with pytest.raises(InvalidTokenError):
        service.resend_two_factor_code("never-issued")


# ------------------------------- Session ---------------------------------- #
def test_refresh_rotates_once(service):
    user = UserFactory()
    pair = service.login(LoginIn(email=user.email, password=DEFAULT_PASSWORD)).tokens

    rotated = service.refresh(pair.refresh_token)

    assert rotated.refresh_token != pair.refresh_token
    with pytest.raises(InvalidTokenError):
        service.refresh(pair.refresh_token)


def test_logout_revokes_access_and_refresh(service, services):
    user = UserFactory()
    pair = service.login(LoginIn(email=user.email, password=DEFAULT_PASSWORD)).tokens

    service.logout(user.id, pair.access_token)

    assert services.registry.is_revoked(pair.access_token) is True
    with pytest.raises(InvalidTokenError):
        service.refresh(pair.refresh_token)


def test_whoami(service):
    user = UserFactory(first_name="Ada", last_name="Lovelace")

    out = service.whoami(user.id)

    assert out.id == user.id
    assert out.first_name == "Ada"
    assert out.two_factor_enabled is False


def test_whoami_unknown_user(service):
    with pytest.raises(NotFoundError):
        service.whoami(123_456)
