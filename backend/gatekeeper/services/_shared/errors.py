"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and never import Flask or HTTP
machinery. The translation to HTTP responses is handled by
``BaseService.translate_exceptions()``, wired as an error handler in
``gatekeeper.api``.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError


def violates(exc: IntegrityError, constraint_name: str) -> bool:
    """
    Check whether an IntegrityError originates from a specific constraint.

    Parameters
    ----------
    exc : IntegrityError
        The exception raised by SQLAlchemy during flush/commit.
    constraint_name : str
        The name of the database constraint to match.

    Returns
    -------
    bool
        True if the IntegrityError mentions the given constraint. SQLite only
        reports the column list, so callers also accept the column names.
    """
    message = str(exc.orig).lower() if exc.orig else ""
    return constraint_name.lower() in message


# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - They can be safely raised from repositories or domain logic.
    """

    pass


# --------------------------------------------------------------------------- #
# Generic domain errors
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found in the repository.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param key: Identifier or search key.
    :type key: str
    """

    entity: str
    key: str

    def __str__(self) -> str:
        return f"{self.entity} not found: {self.key}"


@dataclass(slots=True)
class ConflictError(ServiceError):
    """
    Raised when a unique constraint or business rule conflict occurs.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param detail: Short human-readable explanation.
    :type detail: str
    """

    entity: str
    detail: str

    def __str__(self) -> str:
        return self.detail


class AuthorizationError(ServiceError):
    """Raised when an operation is not permitted (e.g. sign-ups disabled)."""


class ValidationFailedError(ServiceError):
    """Raised for semantically invalid input that passed schema validation."""


# --------------------------------------------------------------------------- #
# Token grant errors
# --------------------------------------------------------------------------- #


class GrantError(ServiceError):
    """
    Failure of a token grant, carrying an OAuth2 error code.

    :param description: Client-facing message.
    :param internal: Operator-facing detail; logged, never sent to clients.
    """

    error = "invalid_request"
    clear_cookie = False

    def __init__(self, description: str, *, internal: str | None = None) -> None:
        super().__init__(description)
        self.description = description
        self.internal = internal


class InvalidRequestError(GrantError):
    """Malformed grant request (missing parameter)."""

    error = "invalid_request"


class InvalidGrantError(GrantError):
    """Credentials or refresh token rejected."""

    error = "invalid_grant"


class UnsupportedGrantTypeError(GrantError):
    error = "unsupported_grant_type"

    def __init__(self, grant_type: str = "") -> None:
        super().__init__("Unsupported grant type", internal=f"grant_type={grant_type!r}")


class RefreshTokenReuseError(InvalidGrantError):
    """A revoked refresh token was presented again; the session cookie is dropped."""

    clear_cookie = True


class RefreshTokenNotFoundError(InvalidGrantError):
    """No refresh token with the presented value exists."""


class HookError(ServiceError):
    """An event hook rejected the event or could not be delivered."""


class MailerError(ServiceError):
    """An outgoing message could not be sent."""
