"""
DTOs for IdentityService.

Data Transfer Objects (DTOs) isolate the service layer from ORM models,
ensuring clear input/output contracts. No output DTO ever carries the
credential columns.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

# --------------------------------------------------------------------------- #
# Input DTOs
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class SignupIn:
    """
    Input DTO for sign-up.

    :param email: Login email (normalized to lowercase by the model).
    :type email: str
    :param password: Raw password; stored AES-encrypted.
    :type password: str
    :param aud: Audience the account is created for.
    :type aud: str
    :param data: Initial user metadata.
    :type data: dict[str, Any]
    """

    email: str
    password: str
    aud: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RecoverIn:
    """Input DTO for ``POST /recover``: the account whose password was lost."""

    email: str
    aud: str


@dataclass(frozen=True, slots=True)
class VerifyIn:
    """
    Input DTO for ``POST /verify``.

    :param type: Verification kind, ``"signup"`` or ``"recovery"``.
    :type type: str
    :param token: Confirmation or recovery token from the e-mail.
    :type token: str
    :param use_cookie: ``x-use-cookie`` header value, ``None`` when absent.
    :type use_cookie: str | None
    """

    type: str
    token: str
    use_cookie: str | None = None


@dataclass(frozen=True, slots=True)
class UserUpdateIn:
    """
    Input DTO for ``PUT /user``.

    :param password: New password; re-encrypted under a fresh IV.
    :type password: str | None
    :param data: User metadata updates; a ``None`` value deletes the key.
    :type data: dict[str, Any] | None
    """

    password: str | None = None
    data: dict[str, Any] | None = None


# --------------------------------------------------------------------------- #
# Configuration
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class SignupPolicy:
    """
    Sign-up and account-mail behaviour of the instance.

    :param disable_signup: Reject every sign-up.
    :param autoconfirm: Confirm new accounts without sending mail.
    :param site_url: Public base URL used in confirmation and recovery links.
    :param max_frequency: Minimum seconds between two mails of the same kind
        to one user; ``0`` disables the throttle.
    """

    disable_signup: bool = False
    autoconfirm: bool = False
    site_url: str = "http://localhost"
    max_frequency: int = 900

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> SignupPolicy:
        site = str(config.get("SITE_URL", "localhost"))
        if "://" not in site:
            site = f"http://{site}"
        return cls(
            disable_signup=bool(config.get("DISABLE_SIGNUP", False)),
            autoconfirm=bool(config.get("MAILER_AUTOCONFIRM", False)),
            site_url=site.rstrip("/"),
            max_frequency=int(config.get("SMTP_MAX_FREQUENCY", 900)),
        )


# --------------------------------------------------------------------------- #
# Output DTOs
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class UserPublicOut:
    """
    Output DTO representing public-safe user data.

    :param id: User identifier.
    :type id: uuid.UUID
    :param aud: Audience.
    :type aud: str
    :param role: Role name.
    :type role: str
    :param email: Email address.
    :type email: str
    :param confirmed_at: Confirmation time, ``None`` while unconfirmed.
    :type confirmed_at: datetime | None
    :param confirmation_sent_at: Last confirmation mail time.
    :type confirmation_sent_at: datetime | None
    :param recovery_sent_at: Last recovery mail time.
    :type recovery_sent_at: datetime | None
    :param last_sign_in_at: Last successful grant.
    :type last_sign_in_at: datetime | None
    :param app_metadata: Operator-managed metadata.
    :type app_metadata: dict[str, Any]
    :param user_metadata: User-managed metadata.
    :type user_metadata: dict[str, Any]
    :param created_at: Creation time.
    :type created_at: datetime
    :param updated_at: Last update time.
    :type updated_at: datetime
    """

    id: uuid.UUID
    aud: str
    role: str
    email: str
    confirmed_at: datetime | None
    confirmation_sent_at: datetime | None
    recovery_sent_at: datetime | None
    last_sign_in_at: datetime | None
    app_metadata: dict[str, Any]
    user_metadata: dict[str, Any]
    created_at: datetime
    updated_at: datetime
