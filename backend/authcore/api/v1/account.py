"""Account maintenance endpoints."""

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
    ChangePasswordSchema,
    CodeSchema,
    ConfirmEmailSchema,
    EmailChangeSchema,
    EmailSchema,
    PhoneSchema,
    ResetPasswordSchema,
)

bp = Blueprint("account", __name__)

confirm_email_schema = ConfirmEmailSchema()
email_schema = EmailSchema()
reset_password_schema = ResetPasswordSchema()
change_password_schema = ChangePasswordSchema()
email_change_schema = EmailChangeSchema()
code_schema = CodeSchema()
phone_schema = PhoneSchema()

# --------------------------- Public flows --------------------------------- #


@bp.post("/confirm-email")
@timing
def confirm_email():
    data = load_body(confirm_email_schema)
    get_services().account.confirm_email(data["email"], data["code"])
    return success(message="Email confirmed successfully")


@bp.post("/resend-confirmation")
@timing
def resend_confirmation():
    data = load_body(email_schema)
    get_services().account.resend_email_confirmation(data["email"])
    return success(message="A new verification code has been sent")


@bp.post("/password/forgot")
@timing
def forgot_password():
    data = load_body(email_schema)
    get_services().account.request_password_reset(data["email"])
    return success(message="A password reset code has been sent to your email")


@bp.post("/password/reset")
@timing
def reset_password():
    data = load_body(reset_password_schema)
    get_services().account.reset_password(data["email"], data["code"], data["new_password"])
    return success(message="Password has been reset successfully. Please log in again with your new password.")


# ------------------------- Authenticated flows ---------------------------- #


@bp.post("/password/change")
@require_auth
@timing
def change_password():
    data = load_body(change_password_schema)
    get_services().account.change_password(
        current_user_id(), data["current_password"], data["new_password"], bearer_token()
    )
    return success(message="Password has been changed successfully. Please log in again with your new password.")


@bp.post("/email/change")
@require_auth
@timing
def request_email_change():
    data = load_body(email_change_schema)
    get_services().account.request_email_change(current_user_id(), data["password"], data["new_email"])
    return success(message="Please verify your new email address with the OTP sent")


@bp.post("/email/confirm")
@require_auth
@timing
def confirm_email_change():
    data = load_body(code_schema)
    email = get_services().account.confirm_email_change(current_user_id(), data["code"], bearer_token())
    return success({"email": email}, message="Email changed successfully. Please log in again.")


@bp.post("/phone")
@require_auth
@timing
def request_phone_change():
    data = load_body(phone_schema)
    get_services().account.request_phone_change(current_user_id(), data["phone_number"])
    return success(message="Verification code sent to your phone number")


@bp.post("/phone/verify")
@require_auth
@timing
def verify_phone():
    data = load_body(code_schema)
    get_services().account.verify_phone(current_user_id(), data["code"])
    return success(message="Phone number verified successfully")
