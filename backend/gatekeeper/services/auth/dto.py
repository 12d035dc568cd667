from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from gatekeeper.infra.cache.access_token_cache import AccessTokenResponse

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class TokenRequestIn:
    """
    Input DTO for ``POST /token``.

    :param grant_type: ``"password"`` or ``"refresh_token"``.
    :param aud: Audience requested (``X-JWT-AUD`` header or configured default).
    :param username: Email, password grant only.
    :param password: Raw password, password grant only.
    :param refresh_token: Presented refresh token, refresh grant only.
    :param use_cookie: ``x-use-cookie`` header value, ``None`` when absent.
    """

    grant_type: str
    aud: str
    username: str = ""
    password: str = ""
    refresh_token: str = ""
    use_cookie: str | None = None


# --------------------------- Configuration -------------------------------- #


@dataclass(frozen=True, slots=True)
class AuthTokenConfig:
    """
    Token issuance settings.

    :param instance_id: Tenant all lookups are scoped to.
    :param access_ttl: Access-token lifetime in seconds.
    :param cookie_key: Name of the session cookie.
    :param cookie_duration: Persistent cookie lifetime; ``0`` disables cookies.
    """

    instance_id: uuid.UUID
    access_ttl: int = 3600
    cookie_key: str = "nf_jwt"
    cookie_duration: int = 86400

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> AuthTokenConfig:
        return cls(
            instance_id=uuid.UUID(str(config["INSTANCE_ID"])),
            access_ttl=int(config.get("JWT_EXP", 3600)),
            cookie_key=str(config.get("COOKIE_KEY", "nf_jwt")),
            cookie_duration=int(config.get("COOKIE_DURATION", 86400)),
        )


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class CookieDirective:
    """
    Session cookie the HTTP layer must set.

    :param name: Cookie name.
    :param value: Access token.
    :param max_age: Lifetime in seconds; ``None`` for a browser-session cookie.
    """

    name: str
    value: str
    max_age: int | None


@dataclass(frozen=True, slots=True)
class GrantOut:
    """Successful grant: the JSON body and, optionally, a cookie to set."""

    token: AccessTokenResponse
    cookie: CookieDirective | None = None
