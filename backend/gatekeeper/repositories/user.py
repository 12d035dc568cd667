"""User repository for persistence and lookup utilities."""

from __future__ import annotations

import uuid
from typing import cast

from sqlalchemy import select

from gatekeeper.models.user import User
from gatekeeper.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    It NEVER verifies credentials or issues tokens; the grant service does.
    """

    model = User

    def _filterable_fields(self):
        return {
            "instance_id": User.instance_id,
            "email": User.email,
            "aud": User.aud,
            "confirmation_token": User.confirmation_token,
            "recovery_token": User.recovery_token,
        }

    def find_by_email_and_audience(
        self, instance_id: uuid.UUID, email: str, aud: str
    ) -> User | None:
        """Fetch the user identified by ``(instance_id, email, aud)``.

        The email is normalised the same way the model stores it.

        :param instance_id: Tenant the user belongs to.
        :param email: Login name as typed by the client.
        :param aud: Audience requested for the token.
        :returns: User instance or ``None`` when not found.
        :rtype: User | None
        """
        stmt = select(User).where(
            User.instance_id == instance_id,
            User.email == email.strip().lower(),
            User.aud == aud,
        )
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def find_by_confirmation_token(self, token: str) -> User | None:
        if not token:
            return None
        return self.find_one(confirmation_token=token)

    def find_by_recovery_token(self, token: str) -> User | None:
        if not token:
            return None
        return self.find_one(recovery_token=token)
