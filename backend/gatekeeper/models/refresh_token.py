"""Refresh token rows: links of a rotation chain."""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from gatekeeper.core.extensions import db

from .base import ReprMixin, TimestampMixin, UUIDPKMixin


class RefreshToken(UUIDPKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Opaque refresh token belonging to one user.

    ``parent`` holds the token string of the predecessor it was rotated from
    (``None`` for the root issued at login). Within a chain at most one row
    has ``revoked = False``.
    """

    __tablename__ = "refresh_tokens"

    instance_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    token: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    parent: Mapped[str | None] = mapped_column(String(255))
    revoked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_refresh_tokens_instance_id_user_id", "instance_id", "user_id"),
        Index("ix_refresh_tokens_parent", "parent"),
    )
