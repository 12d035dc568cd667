"""Refresh-token repository: chain storage and the rotation compare-and-set."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import cast

from sqlalchemy import delete, select, update

from gatekeeper.models.base import utcnow
from gatekeeper.models.refresh_token import RefreshToken
from gatekeeper.repositories.base import BaseRepository


class RefreshTokenRepository(BaseRepository[RefreshToken]):
    model = RefreshToken

    def _filterable_fields(self):
        return {
            "instance_id": RefreshToken.instance_id,
            "user_id": RefreshToken.user_id,
            "token": RefreshToken.token,
            "parent": RefreshToken.parent,
            "revoked": RefreshToken.revoked,
        }

    def find_by_token(self, token: str) -> RefreshToken | None:
        stmt = select(RefreshToken).where(RefreshToken.token == token)
        return cast(RefreshToken | None, self.session.execute(stmt).scalars().first())

    def revoke_if_active(self, token_id: uuid.UUID) -> bool:
        """Flip ``revoked`` from ``False`` to ``True`` in a single guarded UPDATE.

        This is the compare-and-set that serialises concurrent rotations of
        the same token: the database applies the two UPDATEs one after the
        other and only the first one matches ``revoked = false``.

        :param token_id: Primary key of the presented token.
        :returns: ``True`` when this call revoked the token, ``False`` when it
                  was already revoked (or no longer exists).
        :rtype: bool
        """
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.id == token_id, RefreshToken.revoked.is_(False))
            .values(revoked=True, updated_at=utcnow())
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1

    def delete_for_user(self, instance_id: uuid.UUID, user_id: uuid.UUID) -> int:
        """Remove every refresh token of a user within an instance.

        :returns: Number of deleted rows (``0`` when already logged out).
        :rtype: int
        """
        stmt = delete(RefreshToken).where(
            RefreshToken.instance_id == instance_id,
            RefreshToken.user_id == user_id,
        )
        return int(self.session.execute(stmt).rowcount or 0)

    def delete_revoked_before(self, cutoff: datetime) -> int:
        """Delete revoked tokens created strictly before ``cutoff``."""
        stmt = delete(RefreshToken).where(
            RefreshToken.revoked.is_(True),
            RefreshToken.created_at < cutoff,
        )
        # Timestamps read back from SQLite are naive; skip in-memory evaluation.
        stmt = stmt.execution_options(synchronize_session=False)
        return int(self.session.execute(stmt).rowcount or 0)

    def list_for_user(self, user_id: uuid.UUID) -> list[RefreshToken]:
        stmt = (
            select(RefreshToken)
            .where(RefreshToken.user_id == user_id)
            .order_by(RefreshToken.created_at.asc(), RefreshToken.id.asc())
        )
        return list(self.session.execute(stmt).scalars().all())
