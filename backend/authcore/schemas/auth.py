"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from authcore.models.enums import SELF_REGISTRATION_ROLES, TwoFactorMethod, UserRole

_SELF_ROLES = sorted(role.value for role in SELF_REGISTRATION_ROLES)


class RegisterSchema(Schema):
    """Input payload for account registration."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=8, max=128))
    first_name = fields.String(required=True, validate=validate.Length(min=1, max=100))
    last_name = fields.String(required=True, validate=validate.Length(min=1, max=100))
    role = fields.String(
        load_default=UserRole.PATIENT.value,
        validate=validate.OneOf(_SELF_ROLES),
    )


class LoginSchema(Schema):
    """Input payload for authenticating a user."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))
    remember_me = fields.Boolean(load_default=False)


class RefreshSchema(Schema):
    refresh_token = fields.String(required=True, validate=validate.Length(min=1, max=512))
    remember_me = fields.Boolean(load_default=False)


class LoginTicketSchema(Schema):
    login_ticket = fields.String(required=True, validate=validate.Length(min=1, max=128))


class TwoFactorLoginSchema(LoginTicketSchema):
    """Second step of a login when two-factor is enabled."""

    code = fields.String(required=True, validate=validate.Length(min=1, max=32))
    remember_device = fields.Boolean(load_default=False)


class EmailSchema(Schema):
    email = fields.Email(required=True, validate=validate.Length(max=254))


class TokenPairSchema(Schema):
    """Response payload containing an access/refresh pair."""

    access_token = fields.String(required=True)
    refresh_token = fields.String(required=True)
    access_expires_at = fields.AwareDateTime(required=True)
    refresh_expires_at = fields.AwareDateTime(required=True)
    token_type = fields.Constant("bearer")


class UserSchema(Schema):
    """Public view of an account."""

    id = fields.Integer(required=True)
    email = fields.Email(required=True)
    first_name = fields.String(required=True)
    last_name = fields.String(required=True)
    role = fields.Enum(UserRole, by_value=True)
    email_confirmed = fields.Boolean()
    phone_number = fields.String(allow_none=True)
    phone_confirmed = fields.Boolean()
    two_factor_enabled = fields.Boolean()
    created_at = fields.DateTime(allow_none=True)


class TwoFactorChallengeSchema(Schema):
    """Login response when a second factor is still required."""

    two_factor_required = fields.Boolean()
    two_factor_method = fields.Enum(TwoFactorMethod, by_value=True, allow_none=True)
    code_sent = fields.Boolean()
    login_ticket = fields.String()
