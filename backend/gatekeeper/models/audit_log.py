"""Append-only audit trail of account activity."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from gatekeeper.core.extensions import db

from .base import ReprMixin, UUIDPKMixin, utcnow


class AuditAction(str, Enum):
    LOGIN = "login"
    LOGOUT = "logout"
    TOKEN_REFRESHED = "token_refreshed"
    USER_SIGNED_UP = "user_signedup"
    USER_CONFIRMATION_REQUESTED = "user_confirmation_requested"
    USER_RECOVERY_REQUESTED = "user_recovery_requested"
    USER_MODIFIED = "user_modified"


class AuditLogEntry(UUIDPKMixin, ReprMixin, db.Model):
    """One audited action; ``payload`` holds actor, action and traits."""

    __tablename__ = "audit_log_entries"

    instance_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    __table_args__ = (Index("ix_audit_log_entries_instance_id", "instance_id"),)

    @property
    def action(self) -> str | None:
        return (self.payload or {}).get("action")
