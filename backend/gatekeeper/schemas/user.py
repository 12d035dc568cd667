"""User resource schemas."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate


class SignupSchema(Schema):
    """Payload for self-service sign-up."""

    class Meta:
        unknown = EXCLUDE

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(
        required=True,
        validate=validate.Length(min=1, max=128, error="Signup requires a valid password"),
    )
    data = fields.Dict(keys=fields.String(), load_default=dict)


class RecoverSchema(Schema):
    """Payload for requesting a password-recovery mail."""

    class Meta:
        unknown = EXCLUDE

    email = fields.Email(required=True, validate=validate.Length(max=254))


class VerifySchema(Schema):
    """Payload for redeeming a sign-up or recovery token."""

    class Meta:
        unknown = EXCLUDE

    type = fields.String(required=True)
    token = fields.String(required=True)


class UserUpdateSchema(Schema):
    """Payload for ``PUT /user``; omitted fields are left untouched."""

    class Meta:
        unknown = EXCLUDE

    password = fields.String(load_default=None, validate=validate.Length(min=1, max=128))
    data = fields.Dict(keys=fields.String(), load_default=None, allow_none=True)


class UserSchema(Schema):
    """Public representation of a user. Credential columns are never dumped."""

    id = fields.UUID(required=True)
    aud = fields.String(required=True)
    role = fields.String(required=True)
    email = fields.Email(required=True)
    confirmed_at = fields.DateTime(allow_none=True)
    confirmation_sent_at = fields.DateTime(allow_none=True)
    recovery_sent_at = fields.DateTime(allow_none=True)
    last_sign_in_at = fields.DateTime(allow_none=True)
    app_metadata = fields.Dict(keys=fields.String())
    user_metadata = fields.Dict(keys=fields.String())
    created_at = fields.DateTime(required=True)
    updated_at = fields.DateTime(required=True)
