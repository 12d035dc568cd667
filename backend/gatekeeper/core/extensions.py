"""Global Flask extension instances and initialization helpers."""

from __future__ import annotations

from flask import Flask
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import MetaData

# Global naming convention for all constraints
convention = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

# Global singletons (import-safe). Signer, cipher and cache are *not* here:
# they are per-app and live in ``app.extensions["gatekeeper"]``.
db: SQLAlchemy = SQLAlchemy(session_options={"autoflush": False}, metadata=metadata)
migrate = Migrate(render_as_batch=True)
jwt = JWTManager()
limiter = Limiter(key_func=get_remote_address)


def init_app(app: Flask) -> None:
    """Initialize SQLAlchemy, migrations, bearer-token verification and rate limiting.

    Parameters
    ----------
    app: flask.Flask
        Application used to bind extension instances. This call imports the
        :mod:`gatekeeper.models` package to ensure SQLAlchemy metadata is ready
        for migrations.

    Notes
    -----
    ``flask-jwt-extended`` only *verifies* tokens here. Its decode settings
    (``JWT_DECODE_ALGORITHMS``, key material, audience, issuer) are filled
    in by :func:`gatekeeper.core.security.init_app` from the token signer, so
    verification accepts exactly what the signer produces.
    """
    db.init_app(app)

    # Ensure models are imported so Alembic sees metadata
    from gatekeeper import models as _models  # noqa: F401

    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)

    from gatekeeper.core.errors import unauthorized_response

    @jwt.unauthorized_loader
    def _missing_token(reason: str):
        return unauthorized_response(reason)

    @jwt.invalid_token_loader
    def _invalid_token(reason: str):
        return unauthorized_response(f"Invalid token: {reason}")

    @jwt.expired_token_loader
    def _expired_token(_header: dict, _payload: dict):
        return unauthorized_response("Token has expired")
