"""Factory Boy definition for :class:`gatekeeper.models.user.User`."""

from __future__ import annotations

import uuid

import factory
from flask import current_app

from gatekeeper.core.security import get_components
from gatekeeper.models.base import utcnow
from gatekeeper.models.user import User
from tests.factories import BaseFactory, SQLAlchemySession

DEFAULT_PASSWORD = "Passw0rd!"


class UserFactory(BaseFactory):
    """
    Build persisted, confirmed :class:`User` instances in the app's instance.

    Notes
    -----
    - The credential is produced by the application's cipher; pass
      ``password=...`` to choose the plaintext.
    - ``confirmed_at=None`` builds an unconfirmed account.
    """

    class Meta:
        model = User

    instance_id = factory.LazyFunction(lambda: uuid.UUID(str(current_app.config["INSTANCE_ID"])))
    aud = factory.LazyFunction(lambda: current_app.config["JWT_AUD"])
    role = "authenticated"
    email = factory.Sequence(lambda n: f"user{n}@example.com")
    confirmed_at = factory.LazyFunction(utcnow)
    app_metadata = factory.LazyFunction(lambda: {"namespace": "ns-1", "project": "proj-1"})
    user_metadata = factory.LazyFunction(dict)

    @factory.post_generation
    def password(obj, create, extracted, **kwargs):
        """Encrypt the password with the application's credential cipher."""
        obj.set_encrypted_password(*get_components().cipher.encrypt(extracted or DEFAULT_PASSWORD))
        if create:
            SQLAlchemySession.get().commit()
