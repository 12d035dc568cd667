"""Refresh-token chains: issue, rotate, look up, terminate.

A chain starts with the token issued at login. Each refresh-token grant
revokes the presented token and appends a successor whose ``parent`` is the
presented token's value, so at any time exactly one token of a chain is
usable::

    Active --rotate--> Revoked          (successor inserted as Active)
    Active --logout--> (deleted)        (every chain of the user)
    Revoked --rotate--> REVOKED result  (no successor, caller rejects)

All methods work inside the caller's Unit of Work and never commit.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime
from enum import Enum, auto

from gatekeeper.infra.crypto.secure_token import secure_token
from gatekeeper.models.refresh_token import RefreshToken
from gatekeeper.models.user import User
from gatekeeper.services._shared.errors import RefreshTokenNotFoundError
from gatekeeper.uow.base import UnitOfWork


class RotationResult(Enum):
    """Outcome of a rotation attempt."""

    OK = auto()
    REVOKED = auto()


class RefreshTokenProtocol:
    """
    Refresh-token state machine on top of :class:`RefreshTokenRepository`.

    :param token_factory: Source of new token strings (128-bit by default).
    """

    def __init__(self, *, token_factory: Callable[[], str] = secure_token) -> None:
        self._new_token = token_factory

    def grant(self, uow: UnitOfWork, user: User) -> RefreshToken:
        """Start a new chain for ``user``."""
        token = RefreshToken(
            instance_id=user.instance_id,
            user_id=user.id,
            token=self._new_token(),
            parent=None,
            revoked=False,
        )
        return uow.refresh_tokens.add(token)

    def find_with_user(self, uow: UnitOfWork, token: str) -> tuple[User, RefreshToken]:
        """Resolve a presented token string to its row and owner.

        :raises RefreshTokenNotFoundError: No such token, or its user is gone.
        """
        row = uow.refresh_tokens.find_by_token(token) if token else None
        if row is None:
            raise RefreshTokenNotFoundError("Invalid Refresh Token")
        user = uow.users.get(row.user_id)
        if user is None:
            raise RefreshTokenNotFoundError(
                "Invalid Refresh Token", internal=f"refresh token {row.id} has no user"
            )
        return user, row

    def rotate(
        self, uow: UnitOfWork, user: User, current: RefreshToken
    ) -> tuple[RotationResult, RefreshToken | None]:
        """Revoke ``current`` and issue its successor.

        The revocation is a compare-and-set on ``revoked = false``: of two
        concurrent rotations of the same token only one sees its UPDATE match,
        the other gets :attr:`RotationResult.REVOKED` and no successor.
        """
        if not uow.refresh_tokens.revoke_if_active(current.id):
            return RotationResult.REVOKED, None
        successor = RefreshToken(
            instance_id=user.instance_id,
            user_id=user.id,
            token=self._new_token(),
            parent=current.token,
            revoked=False,
        )
        return RotationResult.OK, uow.refresh_tokens.add(successor)

    def logout(self, uow: UnitOfWork, *, instance_id: uuid.UUID, user_id: uuid.UUID) -> int:
        """Terminate every chain of the user. Idempotent; returns rows removed."""
        return uow.refresh_tokens.delete_for_user(instance_id, user_id)

    def sweep(self, uow: UnitOfWork, *, older_than: datetime) -> int:
        """Delete revoked tokens created before ``older_than``."""
        return uow.refresh_tokens.delete_revoked_before(older_than)
