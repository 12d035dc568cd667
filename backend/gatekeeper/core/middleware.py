"""WSGI and cross-origin middleware.

Everything lives under ``/api`` so a single CORS resource covers the API; the
session cookie travels only when an explicit origin list is configured.
"""

from __future__ import annotations

from flask import Flask
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

# Headers clients send to the token endpoint besides the usual ones.
ALLOWED_HEADERS = [
    "Authorization",
    "Content-Type",
    "X-JWT-AUD",
    "X-Use-Cookie",
    "X-Request-ID",
]


def init_proxy(app: Flask) -> None:
    """Apply :class:`werkzeug.middleware.proxy_fix.ProxyFix` when enabled.

    Rate limiting keys on ``remote_addr``; behind a load balancer that is only
    the client address once ``X-Forwarded-For`` is honoured. Controlled by
    ``USE_PROXYFIX`` (defaults to ``True``), trusting a single hop.
    """
    if app.config.get("USE_PROXYFIX", True):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)


def init_cors(app: Flask) -> None:
    """Configure CORS for API endpoints from ``CORS_ORIGINS``.

    A blank value or ``"*"`` allows any origin but disables credentials, so
    browsers will not attach the session cookie cross-origin.
    """
    raw_origins = app.config.get("CORS_ORIGINS", "")
    origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
    wildcard = len(origins) == 0 or origins == ["*"]

    CORS(
        app,
        resources={r"/api/*": {"origins": "*" if wildcard else origins}},
        supports_credentials=not wildcard,
        allow_headers=ALLOWED_HEADERS,
        max_age=app.config.get("CORS_MAX_AGE", 600),
    )


def init_app(app: Flask) -> None:
    init_proxy(app)
    init_cors(app)
