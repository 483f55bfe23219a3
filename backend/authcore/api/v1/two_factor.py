"""Two-factor enrollment and recovery-code endpoints (authenticated)."""

from __future__ import annotations

from flask import Blueprint

from authcore.api.deps import current_user_id, load_body, require_auth, success, timing
from authcore.core.container import get_services
from authcore.schemas import (
    CodeSchema,
    DisableSchema,
    RecoveryCodesRequestSchema,
    SetupResultSchema,
    SetupSchema,
    StatusSchema,
)

bp = Blueprint("two_factor", __name__)

setup_schema = SetupSchema()
code_schema = CodeSchema()
disable_schema = DisableSchema()
recovery_request_schema = RecoveryCodesRequestSchema()
setup_result_schema = SetupResultSchema()
status_schema = StatusSchema()


@bp.post("/setup")
@require_auth
@timing
def setup():
    data = load_body(setup_schema)
    result = get_services().two_factor.setup(current_user_id(), data["method"])
    message = (
        "Verification code sent. Enter it to finish enabling two-factor authentication."
        if result.otp_issued
        else "Scan the QR code with your authenticator app, then enter the code it shows."
    )
    return success(setup_result_schema.dump(result), message=message)


@bp.post("/verify-setup")
@require_auth
@timing
def verify_setup():
    """Finish enrollment; the recovery codes are only ever shown here."""

    data = load_body(code_schema)
    codes = get_services().two_factor.verify_setup(current_user_id(), data["code"])
    return success({"recovery_codes": codes}, message="Two-factor authentication enabled")


@bp.post("/disable")
@require_auth
@timing
def disable():
    data = load_body(disable_schema)
    get_services().two_factor.disable(current_user_id(), data["password"])
    return success(message="Two-factor authentication disabled")


@bp.post("/recovery-codes")
@require_auth
@timing
def regenerate_recovery_codes():
    data = load_body(recovery_request_schema)
    codes = get_services().two_factor.generate_recovery_codes(current_user_id(), data["count"])
    return success({"recovery_codes": codes}, message="Recovery codes regenerated")


@bp.get("/status")
@require_auth
@timing
def status():
    result = get_services().two_factor.status(current_user_id())
    return success(status_schema.dump(result))
