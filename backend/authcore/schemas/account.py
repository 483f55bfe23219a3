"""Account maintenance schemas (confirmation, password, email and phone)."""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates_schema

_PASSWORD = validate.Length(min=8, max=128)


class ConfirmEmailSchema(Schema):
    email = fields.Email(required=True, validate=validate.Length(max=254))
    code = fields.String(required=True, validate=validate.Length(min=1, max=32))


class _NewPasswordMixin(Schema):
    new_password = fields.String(required=True, validate=_PASSWORD)
    confirm_password = fields.String(required=True, validate=_PASSWORD)

    @validates_schema
    def _passwords_match(self, data, **kwargs):
        if data.get("new_password") != data.get("confirm_password"):
            raise ValidationError(
                "New password and confirm password do not match", field_name="confirm_password"
            )


class ResetPasswordSchema(_NewPasswordMixin):
    email = fields.Email(required=True, validate=validate.Length(max=254))
    code = fields.String(required=True, validate=validate.Length(min=1, max=32))


class ChangePasswordSchema(_NewPasswordMixin):
    current_password = fields.String(required=True, validate=validate.Length(min=1, max=128))


class EmailChangeSchema(Schema):
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))
    new_email = fields.Email(required=True, validate=validate.Length(max=254))


class PhoneSchema(Schema):
    phone_number = fields.String(required=True, validate=validate.Length(min=7, max=32))
