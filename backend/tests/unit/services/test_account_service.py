# tests/unit/services/test_account_service.py
from __future__ import annotations

import pytest

from authcore.models.user import User
from authcore.services._shared.errors import (
    AlreadyInUseError,
    ConflictError,
    ExpiredCodeError,
    InvalidCodeError,
    InvalidCredentialError,
    InvalidTokenError,
    NotFoundError,
    TooManyAttemptsError,
    ValidationError,
)
from authcore.services.account import AccountService
from authcore.services.account.service import normalize_phone
from authcore.services.auth.dto import LoginIn
from tests.factories.user import DEFAULT_PASSWORD, UserFactory
from tests.helpers.outbox import latest_code, other_code


# ------------------------------ Fixtures ---------------------------------- #
@pytest.fixture()
def service(services) -> AccountService:
    return services.account


@pytest.fixture()
def signed_in(services):
    """A confirmed user with a live session; returns ``(user, token_pair)``."""
    user = UserFactory()
    pair = services.auth.login(LoginIn(email=user.email, password=DEFAULT_PASSWORD)).tokens
    return user, pair


def _reload(session, user_id: int) -> User:
    session.expire_all()
    return session.get(User, user_id)


# ------------------------------ Phone helper ------------------------------ #
@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("+34 600-111-222", "+34600111222"),
        ("(555) 123 4567", "5551234567"),
    ],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


@pytest.mark.parametrize("raw", ["", "12345", "+1234567890123456", "phone-me"])
def test_normalize_phone_rejects(raw):
    with pytest.raises(ValidationError):
        normalize_phone(raw)


# -------------------------- Email confirmation ---------------------------- #
def test_confirm_email(service, email_outbox, session):
    user = UserFactory(email_confirmed=False)
    service.resend_email_confirmation(user.email)

    service.confirm_email(user.email, latest_code(email_outbox, user.email))

    assert _reload(session, user.id).email_confirmed is True


def test_confirm_email_wrong_code(service, email_outbox, session):
    user = UserFactory(email_confirmed=False)
    service.resend_email_confirmation(user.email)
    code = latest_code(email_outbox, user.email)

    with pytest.raises(InvalidCodeError):
        service.confirm_email(user.email, other_code(code))
    assert _reload(session, user.id).email_confirmed is False


def test_confirm_email_unknown_address(service):
    with pytest.raises(NotFoundError):
        service.confirm_email("ghost@example.com", "123456")


def test_resend_confirmation_when_already_confirmed(service):
    user = UserFactory(email_confirmed=True)
    with pytest.raises(ConflictError):
        service.resend_email_confirmation(user.email)


# -------------------------------- Password -------------------------------- #
def test_password_reset_flow(service, services, email_outbox, signed_in):
    user, pair = signed_in

    service.request_password_reset(user.email)
    message = email_outbox.last_to(user.email)
    assert message.subject == "Password Reset OTP"

    service.reset_password(user.email, latest_code(email_outbox, user.email), "N3w-passw0rd")

    assert email_outbox.last_to(user.email).subject == "Password Reset Confirmation"
    services.auth.login(LoginIn(email=user.email, password="N3w-passw0rd"))
    with pytest.raises(InvalidCredentialError):
        services.auth.login(LoginIn(email=user.email, password=DEFAULT_PASSWORD))
    # The previous refresh token no longer rotates.
    with pytest.raises(InvalidTokenError):
        services.auth.refresh(pair.refresh_token)


def test_password_reset_unknown_email(service):
    with pytest.raises(NotFoundError):
        service.request_password_reset("ghost@example.com")


def test_password_reset_expired_code(service, services, email_outbox):
    user = UserFactory()
    service.request_password_reset(user.email)
    code = latest_code(email_outbox, user.email)

    services.clock.advance(minutes=15)
    with pytest.raises(ExpiredCodeError):
        service.reset_password(user.email, code, "N3w-passw0rd")
    services.auth.login(LoginIn(email=user.email, password=DEFAULT_PASSWORD))


def test_password_reset_reissue_keeps_the_guess_budget(service, services, email_outbox):
    user = UserFactory()
    for _ in range(5):
        service.request_password_reset(user.email)
        with pytest.raises(InvalidCodeError):
            service.reset_password(user.email, other_code(latest_code(email_outbox, user.email)), "N3w-passw0rd")

    with pytest.raises(TooManyAttemptsError):
        service.request_password_reset(user.email)

    services.clock.advance(minutes=15)
    service.request_password_reset(user.email)
    service.reset_password(user.email, latest_code(email_outbox, user.email), "N3w-passw0rd")
    services.auth.login(LoginIn(email=user.email, password="N3w-passw0rd"))


def test_change_password_ends_session(service, services, signed_in, email_outbox):
    user, pair = signed_in

    service.change_password(user.id, DEFAULT_PASSWORD, "An0ther-pass", pair.access_token)

    assert services.registry.is_revoked(pair.access_token) is True
    with pytest.raises(InvalidTokenError):
        services.auth.refresh(pair.refresh_token)
    assert email_outbox.last_to(user.email).subject == "Password Changed"
    services.auth.login(LoginIn(email=user.email, password="An0ther-pass"))


def test_change_password_wrong_current(service, signed_in):
    user, _ = signed_in
    with pytest.raises(InvalidCredentialError):
        service.change_password(user.id, "nope", "An0ther-pass")


def test_change_password_same_as_current(service, signed_in):
    user, _ = signed_in
    with pytest.raises(ValidationError):
        service.change_password(user.id, DEFAULT_PASSWORD, DEFAULT_PASSWORD)


# ------------------------------ Email change ------------------------------ #
def test_email_change_is_staged_until_confirmed(service, services, signed_in, email_outbox, session):
    user, pair = signed_in
    old_email = user.email

    service.request_email_change(user.id, DEFAULT_PASSWORD, "Fresh@Example.com")

    staged = _reload(session, user.id)
    assert staged.email == old_email
    assert staged.pending_email == "fresh@example.com"
    assert email_outbox.last_to("fresh@example.com").subject == "Email Change Verification"

    new_email = service.confirm_email_change(
        user.id, latest_code(email_outbox, "fresh@example.com"), pair.access_token
    )

    assert new_email == "fresh@example.com"
    stored = _reload(session, user.id)
    assert stored.email == "fresh@example.com"
    assert stored.pending_email is None
    assert services.registry.is_revoked(pair.access_token) is True
    with pytest.raises(InvalidTokenError):
        services.auth.refresh(pair.refresh_token)


def test_email_change_wrong_code_keeps_old_address(service, signed_in, email_outbox, session):
    user, _ = signed_in
    service.request_email_change(user.id, DEFAULT_PASSWORD, "fresh@example.com")
    code = latest_code(email_outbox, "fresh@example.com")

    with pytest.raises(InvalidCodeError):
        service.confirm_email_change(user.id, other_code(code))

    stored = _reload(session, user.id)
    assert stored.email == user.email
    assert stored.pending_email == "fresh@example.com"


def test_email_change_rules(service, signed_in):
    user, _ = signed_in
    UserFactory(email="taken@example.com")

    with pytest.raises(InvalidCredentialError):
        service.request_email_change(user.id, "bad", "fresh@example.com")
    with pytest.raises(AlreadyInUseError):
        service.request_email_change(user.id, DEFAULT_PASSWORD, "taken@example.com")
    with pytest.raises(ValidationError):
        service.request_email_change(user.id, DEFAULT_PASSWORD, user.email.upper())
    with pytest.raises(ValidationError):
        service.request_email_change(user.id, DEFAULT_PASSWORD, "broken")


def test_confirm_email_change_without_request(service, signed_in):
    user, _ = signed_in
    with pytest.raises(ConflictError):
        service.confirm_email_change(user.id, "123456")


# --------------------------------- Phone ---------------------------------- #
def test_phone_change_flow(service, sms_outbox, session):
    user = UserFactory()

    service.request_phone_change(user.id, "+34 600 111 222")
    staged = _reload(session, user.id)
    assert staged.pending_phone == "+34600111222"
    assert staged.phone_confirmed is False

    service.verify_phone(user.id, latest_code(sms_outbox, "+34600111222"))

    stored = _reload(session, user.id)
    assert stored.phone_number == "+34600111222"
    assert stored.phone_confirmed is True


def test_phone_verify_wrong_code(service, sms_outbox, session):
    user = UserFactory()
    service.request_phone_change(user.id, "+34600111222")
    code = latest_code(sms_outbox, "+34600111222")

    with pytest.raises(InvalidCodeError):
        service.verify_phone(user.id, other_code(code))
    assert _reload(session, user.id).phone_number is None
