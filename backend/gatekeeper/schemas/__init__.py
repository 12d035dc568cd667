"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import AccessTokenResponseSchema, TokenRequestSchema
from .user import RecoverSchema, SignupSchema, UserSchema, UserUpdateSchema, VerifySchema

__all__ = [
    "AccessTokenResponseSchema",
    "TokenRequestSchema",
    "RecoverSchema",
    "SignupSchema",
    "UserSchema",
    "UserUpdateSchema",
    "VerifySchema",
]
