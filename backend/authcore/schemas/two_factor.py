"""Two-factor enrollment and status schemas."""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from authcore.models.enums import TwoFactorMethod, TwoFactorState

_METHODS = [method.value for method in TwoFactorMethod]


class SetupSchema(Schema):
    method = fields.String(required=True, validate=validate.OneOf(_METHODS))


class CodeSchema(Schema):
    code = fields.String(required=True, validate=validate.Length(min=1, max=32))


class DisableSchema(Schema):
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))


class RecoveryCodesRequestSchema(Schema):
    count = fields.Integer(load_default=None, allow_none=True, validate=validate.Range(min=1, max=50))


class SetupResultSchema(Schema):
    """Enrollment start; ``qr_uri`` only for authenticator apps."""

    method = fields.Enum(TwoFactorMethod, by_value=True)
    secret = fields.String()
    qr_uri = fields.String(allow_none=True)
    otp_issued = fields.Boolean()


class StatusSchema(Schema):
    method = fields.Enum(TwoFactorMethod, by_value=True, allow_none=True)
    state = fields.Enum(TwoFactorState, by_value=True)
    enabled = fields.Boolean()
    enabled_at = fields.AwareDateTime(allow_none=True)
    recovery_codes_remaining = fields.Integer()
