"""Shared API helpers for request parsing and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
import uuid
from collections.abc import Callable
from typing import Any, TypeVar

from flask import Response, current_app, jsonify, request
from flask_jwt_extended import get_jwt, verify_jwt_in_request

from gatekeeper.core.errors import Unauthorized
from gatekeeper.core.logger import ensure_request_id
from gatekeeper.core.security import get_components
from gatekeeper.models.user import SUBJECT_PREFIX
from gatekeeper.services._shared.base import ServiceContext
from gatekeeper.services.auth.dto import AuthTokenConfig, CookieDirective
from gatekeeper.services.auth.service import GrantService
from gatekeeper.services.identity.dto import SignupPolicy
from gatekeeper.services.identity.service import IdentityService

F = TypeVar("F", bound=Callable[..., Any])

AUDIENCE_HEADER = "X-JWT-AUD"
USE_COOKIE_HEADER = "x-use-cookie"


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]


def request_audience() -> str:
    """Audience of the current request: ``X-JWT-AUD`` or the configured default."""

    return request.headers.get(AUDIENCE_HEADER) or str(current_app.config.get("JWT_AUD", ""))


def use_cookie_preference() -> str | None:
    return request.headers.get(USE_COOKIE_HEADER)


def require_auth(func: F) -> F:
    """Ensure the request carries a valid access token for the request audience.

    Signature, algorithm, issuer and expiry are checked by
    ``flask-jwt-extended``; the audience varies per request and is checked here.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        verify_jwt_in_request(optional=False)
        claims = get_jwt() or {}
        aud = claims.get("aud")
        audiences = aud if isinstance(aud, list) else [aud]
        if request_audience() not in audiences:
            raise Unauthorized("Token audience doesn't match request audience")
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def current_user_id() -> uuid.UUID:
    """User id from the verified ``sub`` claim (``gt|<uuid>``).

    :raises Unauthorized: When the subject is not one this service issued.
    """

    sub = str((get_jwt() or {}).get("sub", ""))
    if not sub.startswith(SUBJECT_PREFIX):
        raise Unauthorized("Invalid claim: sub")
    try:
        return uuid.UUID(sub[len(SUBJECT_PREFIX):])
    except ValueError as exc:
        raise Unauthorized("Invalid claim: sub") from exc


def service_context() -> ServiceContext:
    return ServiceContext(
        request_id=ensure_request_id(),
        remote_addr=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )


def grant_service() -> GrantService:
    return GrantService(
        components=get_components(),
        token_cfg=AuthTokenConfig.from_mapping(current_app.config),
        ctx=service_context(),
    )


def identity_service() -> IdentityService:
    return IdentityService(
        components=get_components(),
        token_cfg=AuthTokenConfig.from_mapping(current_app.config),
        policy=SignupPolicy.from_mapping(current_app.config),
        ctx=service_context(),
    )


def apply_cookie(response: Response, cookie: CookieDirective | None) -> Response:
    """Set the access-token cookie described by ``cookie`` (Secure, HttpOnly, Path=/)."""

    if cookie is None:
        return response
    response.set_cookie(
        cookie.name,
        cookie.value,
        max_age=cookie.max_age,
        path="/",
        secure=True,
        httponly=True,
    )
    return response
