"""End-to-end HTTP tests for the sign-in lifecycle."""

from __future__ import annotations

from tests.factories.user import DEFAULT_PASSWORD, UserFactory
from tests.helpers.http import json_headers
from tests.helpers.outbox import latest_code

API = "/api/v1"


def _login(client, email: str, password: str = DEFAULT_PASSWORD, **extra):
    return client.post(f"{API}/auth/login", json={"email": email, "password": password, **extra})


def test_full_session_lifecycle(client, email_outbox):
    """Register, confirm, log in, enroll 2FA, log out, and reuse a revoked token."""

    # Register
    resp = client.post(
        f"{API}/auth/register",
        json={
            "email": "flow@example.com",
            "password": "Str0ng-pass",
            "first_name": "Flow",
            "last_name": "Tester",
        },
    )
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["success"] is True
    assert body["data"]["email_confirmed"] is False
    assert body["data"]["role"] == "patient"

    # Login before confirmation is refused
    resp = _login(client, "flow@example.com", "Str0ng-pass")
    assert resp.status_code == 403
    assert resp.get_json()["code"] == "email_not_confirmed"

    # Confirm with the emailed code
    resp = client.post(
        f"{API}/account/confirm-email",
        json={"email": "flow@example.com", "code": latest_code(email_outbox, "flow@example.com")},
    )
    assert resp.status_code == 200

    # Wrong password
    resp = _login(client, "flow@example.com", "nope-nope")
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "invalid_credential"

    # Login
    resp = _login(client, "flow@example.com", "Str0ng-pass")
    assert resp.status_code == 200
    tokens = resp.get_json()["data"]
    assert tokens["token_type"] == "bearer"
    access = tokens["access_token"]

    # Whoami
    resp = client.get(f"{API}/auth/whoami", headers=json_headers(access))
    assert resp.status_code == 200
    assert resp.get_json()["data"]["email"] == "flow@example.com"

    # Enroll email 2FA
    resp = client.post(f"{API}/2fa/setup", json={"method": "email"}, headers=json_headers(access))
    assert resp.status_code == 200
    assert resp.get_json()["data"]["otp_issued"] is True
    resp = client.post(
        f"{API}/2fa/verify-setup",
        json={"code": latest_code(email_outbox, "flow@example.com")},
        headers=json_headers(access),
    )
    assert resp.status_code == 200
    assert len(resp.get_json()["data"]["recovery_codes"]) == 10

    # Logout revokes the access token
    resp = client.post(f"{API}/auth/logout", headers=json_headers(access))
    assert resp.status_code == 200

    resp = client.get(f"{API}/auth/whoami", headers=json_headers(access))
    assert resp.status_code == 401
    problem = resp.get_json()
    assert problem["code"] == "token_revoked"
    assert problem["message"] == "Token has been revoked"
    assert resp.mimetype == "application/problem+json"

    # The next login now needs the second factor
    resp = _login(client, "flow@example.com", "Str0ng-pass")
    assert resp.status_code == 200
    challenge = resp.get_json()["data"]
    assert challenge["two_factor_required"] is True
    assert challenge["two_factor_method"] == "email"
    assert challenge["code_sent"] is True
    assert challenge["login_ticket"]

    resp = client.post(
        f"{API}/auth/2fa/verify",
        json={
            "login_ticket": challenge["login_ticket"],
            "code": latest_code(email_outbox, "flow@example.com"),
        },
    )
    assert resp.status_code == 200
    assert resp.get_json()["data"]["access_token"]


def test_refresh_is_single_use(client):
    user = UserFactory()
    tokens = _login(client, user.email).get_json()["data"]

    resp = client.post(f"{API}/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 200
    rotated = resp.get_json()["data"]
    assert rotated["refresh_token"] != tokens["refresh_token"]

    resp = client.post(f"{API}/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "invalid_token"


def test_register_duplicate_email_conflicts(client):
    UserFactory(email="taken@example.com")
    resp = client.post(
        f"{API}/auth/register",
        json={"email": "taken@example.com", "password": "Str0ng-pass", "first_name": "A", "last_name": "B"},
    )
    assert resp.status_code == 409
    assert resp.get_json()["code"] == "already_in_use"


def test_register_validation_errors(client):
    resp = client.post(
        f"{API}/auth/register",
        json={"email": "bad", "password": "short", "first_name": "", "last_name": "B", "role": "admin"},
    )
    assert resp.status_code == 422
    problem = resp.get_json()
    assert problem["code"] == "validation_error"
    assert {"email", "password", "role"} <= set(problem["details"]["errors"])


def test_protected_route_requires_token(client):
    resp = client.get(f"{API}/auth/whoami")
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "unauthorized"


def test_garbage_token_is_rejected(client):
    resp = client.get(f"{API}/auth/whoami", headers=json_headers("not-a-jwt"))
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "invalid_token"


def _enroll_email(services, email_outbox, user) -> None:
    services.two_factor.setup(user.id, "email")
    services.two_factor.verify_setup(user.id, latest_code(email_outbox, user.email))


def test_two_factor_resend(client, services, email_outbox):
    user = UserFactory()
    _enroll_email(services, email_outbox, user)
    ticket = _login(client, user.email).get_json()["data"]["login_ticket"]
    email_outbox.outbox.clear()

    resp = client.post(f"{API}/auth/2fa/resend", json={"login_ticket": ticket})

    assert resp.status_code == 200
    assert resp.get_json()["data"]["code_sent"] is True
    assert email_outbox.last_to(user.email) is not None


def test_two_factor_verify_wrong_code(client, services, email_outbox):
    user = UserFactory()
    _enroll_email(services, email_outbox, user)
    ticket = _login(client, user.email).get_json()["data"]["login_ticket"]

    resp = client.post(f"{API}/auth/2fa/verify", json={"login_ticket": ticket, "code": "not-it"})

    assert resp.status_code == 400
    assert resp.get_json()["code"] == "invalid_code"


def test_two_factor_endpoints_need_a_login_ticket(client, services, email_outbox):
    user = UserFactory()
    _enroll_email(services, email_outbox, user)
    _login(client, user.email)
    sent = len(email_outbox.outbox)

    resp = client.post(f"{API}/auth/2fa/resend", json={"email": user.email})
    assert resp.status_code == 422
    resp = client.post(f"{API}/auth/2fa/resend", json={"login_ticket": "guessed"})
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "invalid_token"
    resp = client.post(f"{API}/auth/2fa/verify", json={"login_ticket": "guessed", "code": "123456"})
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "invalid_token"

    assert len(email_outbox.outbox) == sent


def test_two_factor_guessing_is_capped(client, services, email_outbox):
    user = UserFactory()
    _enroll_email(services, email_outbox, user)
    ticket = _login(client, user.email).get_json()["data"]["login_ticket"]
    code = latest_code(email_outbox, user.email)
    wrong = "000000" if code != "000000" else "111111"

    statuses = [
        client.post(f"{API}/auth/2fa/verify", json={"login_ticket": ticket, "code": wrong}).status_code
        for _ in range(5)
    ]
    assert statuses == [400, 400, 400, 400, 429]

    resp = client.post(f"{API}/auth/2fa/verify", json={"login_ticket": ticket, "code": code})
    assert resp.status_code == 401
    resp = _login(client, user.email)
    assert resp.status_code == 429
    assert resp.get_json()["code"] == "too_many_attempts"


def test_relogin_in_the_same_second_gets_a_live_token(client):
    user = UserFactory()
    first = _login(client, user.email).get_json()["data"]["access_token"]
    assert client.post(f"{API}/auth/logout", headers=json_headers(first)).status_code == 200

    second = _login(client, user.email).get_json()["data"]["access_token"]

    assert second != first
    assert client.get(f"{API}/auth/whoami", headers=json_headers(second)).status_code == 200
    assert client.get(f"{API}/auth/whoami", headers=json_headers(first)).status_code == 401
