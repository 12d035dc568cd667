"""Token endpoint Marshmallow schemas."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields


class TokenRequestSchema(Schema):
    """Form payload of ``POST /token``.

    Every field is optional here: a missing ``grant_type`` or credential is an
    OAuth2 error decided by the grant service, not a schema failure.
    """

    class Meta:
        unknown = EXCLUDE

    grant_type = fields.String(load_default="")
    username = fields.String(load_default="")
    password = fields.String(load_default="")
    refresh_token = fields.String(load_default="")


class AccessTokenResponseSchema(Schema):
    """Token pair returned by the token and verify endpoints."""

    access_token = fields.String(required=True)
    token_type = fields.String(required=True)
    expires_in = fields.Integer(required=True)
    refresh_token = fields.String(required=True)
