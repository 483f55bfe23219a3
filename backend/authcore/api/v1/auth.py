"""Authentication endpoints: register, login, second factor, refresh, logout."""

from __future__ import annotations

from flask import Blueprint

from authcore.api.deps import (
    bearer_token,
    current_user_id,
    load_body,
    require_auth,
    success,
    timing,
)
from authcore.core.container import get_services
from authcore.schemas import (
    LoginSchema,
    LoginTicketSchema,
    RefreshSchema,
    RegisterSchema,
    TokenPairSchema,
    TwoFactorChallengeSchema,
    TwoFactorLoginSchema,
    UserSchema,
)
from authcore.services.auth import LoginIn, RegisterIn

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshSchema()
two_factor_login_schema = TwoFactorLoginSchema()
login_ticket_schema = LoginTicketSchema()
token_schema = TokenPairSchema()
user_schema = UserSchema()
challenge_schema = TwoFactorChallengeSchema()


@bp.post("/register")
@timing
def register():
    """Create an account and email its confirmation code."""

    data = load_body(register_schema)
    user = get_services().auth.register(RegisterIn(**data))
    return success(
        user_schema.dump(user),
        message="Registration successful. Please verify your email with the OTP sent to your email address.",
        status=201,
    )


@bp.post("/login")
@timing
def login():
    """Check credentials; return tokens or a second-factor challenge."""

    data = load_body(login_schema)
    result = get_services().auth.login(LoginIn(**data))
    if result.two_factor_required:
        method = result.two_factor_method.value if result.two_factor_method else "second factor"
        message = (
            f"Two-factor authentication required. Please enter the verification code sent to your {method}."
            if result.code_sent
            else "Two-factor authentication required. Please enter the code from your authenticator app."
        )
        return success(challenge_schema.dump(result), message=message)
    return success(token_schema.dump(result.tokens), message="Login successful")


@bp.post("/2fa/verify")
@timing
def verify_two_factor():
    data = load_body(two_factor_login_schema)
    pair = get_services().auth.verify_two_factor(
        data["login_ticket"], data["code"], remember_device=data["remember_device"]
    )
    return success(token_schema.dump(pair), message="Login successful")


@bp.post("/2fa/resend")
@timing
def resend_two_factor():
    data = load_body(login_ticket_schema)
    sent = get_services().auth.resend_two_factor_code(data["login_ticket"])
    message = "Verification code sent" if sent else "Use the code shown in your authenticator app"
    return success({"code_sent": sent}, message=message)


@bp.post("/refresh")
@timing
def refresh():
    """Exchange a refresh token for a new pair (single use)."""

    data = load_body(refresh_schema)
    pair = get_services().auth.refresh(data["refresh_token"], remember_me=data["remember_me"])
    return success(token_schema.dump(pair), message="Token refreshed")


@bp.post("/logout")
@require_auth
@timing
def logout():
    get_services().auth.logout(current_user_id(), bearer_token())
    return success(message="Logged out")


@bp.get("/whoami")
@require_auth
@timing
def whoami():
    """Return the authenticated user profile."""

    user = get_services().auth.whoami(current_user_id())
    return success(user_schema.dump(user))
