"""Tests for the User model."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from sqlalchemy.exc import IntegrityError, StatementError

from authcore.models.enums import TwoFactorMethod, TwoFactorState, UserRole
from authcore.models.user import User


def _user(email: str = "a@example.com", **kwargs) -> User:
    return User(email=email, first_name="Ada", last_name="Lovelace", **kwargs)


class TestUser:
    def test_password_hashing(self, session):
        u = _user("Test@Example.com")
        u.password = "secret123"
        session.add(u)
        session.commit()
        assert u.password_hash != "secret123"
        assert u.verify_password("secret123") is True
        assert u.verify_password("wrong") is False
        assert u.verify_password("") is False

    def test_password_is_write_only(self):
        u = _user()
        u.password = "x"
        with pytest.raises(AttributeError):
            _ = u.password

    def test_empty_password_rejected(self):
        with pytest.raises(ValueError):
            _user().password = ""

    def test_email_normalized_and_unique(self, session):
        u1 = _user("  Alice@Example.com ")
        u1.password = "pw"
        session.add(u1)
        session.commit()
        assert u1.email == "alice@example.com"

        u2 = _user("alice@example.com")
        u2.password = "pw"
        session.add(u2)
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()

    @pytest.mark.parametrize("email", ["", "no-at-sign", "user@nodot"])
    def test_invalid_email_rejected(self, email):
        with pytest.raises(ValueError):
            _user(email)

    def test_pending_email_may_be_cleared(self):
        u = _user(pending_email="New@Example.com")
        assert u.pending_email == "new@example.com"
        u.pending_email = None
        assert u.pending_email is None

    def test_names_are_required_and_trimmed(self):
        u = _user()
        u.first_name = "  Grace "
        assert u.first_name == "Grace"
        assert u.full_name == "Grace Lovelace"
        with pytest.raises(ValueError):
            u.last_name = "   "

    def test_defaults_after_insert(self, session):
        u = _user()
        u.password = "pw"
        session.add(u)
        session.commit()
        assert u.role is UserRole.PATIENT
        assert u.email_confirmed is False
        assert u.two_factor_enabled is False
        assert u.version_id == 1
        assert u.created_at.tzinfo is not None

    def test_naive_datetimes_are_rejected(self, session):
        u = _user(refresh_token_expires_at=datetime(2030, 1, 1))
        u.password = "pw"
        session.add(u)
        with pytest.raises(StatementError):
            session.flush()
        session.rollback()


class TestTwoFactorState:
    def test_state_machine_projection(self):
        u = _user()
        assert u.two_factor_state is TwoFactorState.DISABLED

        u.two_factor_method = TwoFactorMethod.EMAIL
        u.two_factor_secret = "S" * 32
        assert u.two_factor_state is TwoFactorState.PENDING_SETUP

        u.two_factor_enabled = True
        u.two_factor_enabled_at = datetime.now(UTC)
        assert u.two_factor_state is TwoFactorState.ENABLED

        u.clear_two_factor()
        assert u.two_factor_state is TwoFactorState.DISABLED
        assert u.two_factor_secret is None
        assert u.two_factor_enabled_at is None

    def test_clear_refresh_token(self):
        u = _user(refresh_token_hash="f" * 64, refresh_token_expires_at=datetime.now(UTC))
        u.clear_refresh_token()
        assert u.refresh_token_hash is None
        assert u.refresh_token_expires_at is None


class TestEnums:
    @pytest.mark.parametrize("raw", ["email", "EMAIL", " Email "])
    def test_parse_is_case_insensitive(self, raw):
        assert TwoFactorMethod.parse(raw) is TwoFactorMethod.EMAIL

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="Allowed"):
            UserRole.parse("root")

    def test_delivers_code(self):
        assert TwoFactorMethod.SMS.delivers_code is True
        assert TwoFactorMethod.AUTHENTICATOR.delivers_code is False
