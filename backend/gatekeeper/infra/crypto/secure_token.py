"""Opaque random tokens for refresh and confirmation flows."""

from __future__ import annotations

import secrets

TOKEN_BYTES = 16  # 128 bits


def secure_token(nbytes: int = TOKEN_BYTES) -> str:
    """Return ``nbytes`` of CSPRNG output as unpadded URL-safe Base64."""
    return secrets.token_urlsafe(nbytes)
