"""API v1 blueprint package bundling versioned routes."""

from __future__ import annotations

from flask import Blueprint

API_VERSION = "v1"

# Import blueprints *only here* to keep imports localized and avoid cycles.
from .health import bp as health_bp  # noqa: E402
from .settings import bp as settings_bp  # noqa: E402
from .token import bp as token_bp  # noqa: E402
from .users import bp as users_bp  # noqa: E402
from .well_known import bp as well_known_bp  # noqa: E402

# Each tuple: (blueprint, url_prefix_relative_to_version)
REGISTRY: list[tuple[Blueprint, str]] = [
    (health_bp, ""),  # -> /api/v1/health
    (settings_bp, ""),  # -> /api/v1/settings
    (token_bp, ""),  # -> /api/v1/token, /api/v1/logout
    (users_bp, ""),  # -> /api/v1/signup, /recover, /verify, /user
    (well_known_bp, "/.well-known"),  # -> /api/v1/.well-known/jwks.json, /openid-configuration
]
