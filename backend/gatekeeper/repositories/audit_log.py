"""Audit log repository (append-only)."""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import select

from gatekeeper.models.audit_log import AuditAction, AuditLogEntry
from gatekeeper.models.user import User
from gatekeeper.repositories.base import BaseRepository


class AuditLogRepository(BaseRepository[AuditLogEntry]):
    model = AuditLogEntry

    def _filterable_fields(self):
        return {"instance_id": AuditLogEntry.instance_id}

    def record(
        self,
        instance_id: uuid.UUID,
        actor: User,
        action: AuditAction,
        traits: dict[str, Any] | None = None,
    ) -> AuditLogEntry:
        """Append an entry for ``actor`` performing ``action``.

        :param instance_id: Instance the action happened in.
        :param actor: User performing the action.
        :param action: Audited action.
        :param traits: Extra action-specific data (e.g. the login method).
        :returns: The staged, flushed entry.
        """
        entry = AuditLogEntry(
            instance_id=instance_id,
            payload={
                "actor_id": str(actor.id),
                "actor_username": actor.email,
                "action": action.value,
                "traits": dict(traits or {}),
            },
        )
        return self.add(entry)

    def list_for_instance(self, instance_id: uuid.UUID) -> list[AuditLogEntry]:
        stmt = (
            select(AuditLogEntry)
            .where(AuditLogEntry.instance_id == instance_id)
            .order_by(AuditLogEntry.created_at.asc())
        )
        return list(self.session.execute(stmt).scalars().all())
