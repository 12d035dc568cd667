"""User model: an identity scoped to one instance and one audience."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, validates

from gatekeeper.core.extensions import db

from .base import ReprMixin, TimestampMixin, UUIDPKMixin, utcnow

SUBJECT_PREFIX = "gt|"


class User(UUIDPKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Account able to obtain access tokens.

    Fields
    ------
    instance_id : uuid.UUID
        Tenant the account belongs to.
    aud : str
        Audience the account was created for; also the ``aud`` claim of its
        access tokens.
    role : str
        Free-form role name copied into API responses.
    email : str
        Login name. Stored normalized (lowercase, trimmed).
    encrypted_password : str
        Base64 AES-CBC ciphertext of the password.
    encryption_iv : str
        Base64 16-byte IV used for ``encrypted_password``.
    confirmed_at : datetime | None
        Set once the e-mail address is confirmed; unconfirmed users cannot
        use the password grant.
    confirmation_token : str | None
        Outstanding sign-up confirmation token.
    recovery_token : str | None
        Outstanding password-recovery token.
    app_metadata / user_metadata : dict
        Operator-managed and user-managed JSON blobs.
    """

    __tablename__ = "users"

    instance_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    aud: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    role: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(254), nullable=False)
    encrypted_password: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    encryption_iv: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    confirmation_token: Mapped[str | None] = mapped_column(String(255))
    confirmation_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    recovery_token: Mapped[str | None] = mapped_column(String(255))
    recovery_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_sign_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    app_metadata: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    user_metadata: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    is_super_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("instance_id", "email", "aud", name="uq_users_instance_email_aud"),
        Index("ix_users_instance_id_email", "instance_id", "email"),
        Index("ix_users_confirmation_token", "confirmation_token"),
        Index("ix_users_recovery_token", "recovery_token"),
    )

    @validates("email")
    def _normalize_email(self, _key: str, value: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Email must be a non-empty string.")
        return value.strip().lower()

    @property
    def is_confirmed(self) -> bool:
        return self.confirmed_at is not None

    @property
    def subject(self) -> str:
        """``sub`` claim for this user's access tokens."""
        return f"{SUBJECT_PREFIX}{self.id}"

    def confirm(self) -> None:
        """Mark the e-mail as confirmed and consume the confirmation token."""
        self.confirmed_at = utcnow()
        self.confirmation_token = None

    def recover(self) -> None:
        """Consume the recovery token."""
        self.recovery_token = None

    def set_encrypted_password(self, ciphertext: str, iv: str) -> None:
        """Store a freshly encrypted credential; both halves always change together."""
        self.encrypted_password = ciphertext
        self.encryption_iv = iv

    def merge_user_metadata(self, updates: dict[str, Any]) -> None:
        """Shallow-merge ``updates``; a ``None`` value deletes the key.

        A new dict is assigned so the JSON column is flagged dirty.
        """
        merged = dict(self.user_metadata or {})
        for key, value in updates.items():
            if value is None:
                merged.pop(key, None)
            else:
                merged[key] = value
        self.user_metadata = merged


def sent_recently(sent_at: datetime | None, max_frequency: int) -> bool:
    """Whether a mail stamped ``sent_at`` is younger than ``max_frequency`` seconds."""
    if sent_at is None or max_frequency <= 0:
        return False
    if sent_at.tzinfo is None:
        # SQLite hands timestamps back naive.
        sent_at = sent_at.replace(tzinfo=UTC)
    return sent_at + timedelta(seconds=max_frequency) > utcnow()
