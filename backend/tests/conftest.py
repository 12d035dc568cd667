"""Pytest fixtures: one application per session, a fresh schema per test.

The in-memory SQLite database is shared by every session of the process
(Flask-SQLAlchemy uses a static pool for ``:memory:``), so rows committed by
factories are visible to requests made through the test client.
"""

from __future__ import annotations

import os

import pytest

from gatekeeper.core.config import TestingConfig
from gatekeeper.core.extensions import db as _db
from gatekeeper.core.security import get_components
from gatekeeper.factory import create_app
from gatekeeper.services._shared.ports import RecordingEventHooks, RecordingMailer

# Distinct from the default access-token lifetime so issued tokens live longer
# than the cache freshness margin.
TEST_JWT_EXP = 7200


class TestConfig(TestingConfig):
    """Testing configuration for creating the Flask app.

    Notes
    -----
    - Uses an in-memory SQLite database for speed.
    - Enables the access-token cache with a token lifetime above its margin.
    - Avoids hitting external services (no webhook URL, no SMTP host).
    """

    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    JWT_EXP = TEST_JWT_EXP
    TOKEN_CACHE_ENABLED = True
    TOKEN_CACHE_SIZE = 100
    INSTANCE_ID = "11111111-2222-3333-4444-555555555555"
    SITE_URL = "auth.example.test"
    USE_PROXYFIX = False


@pytest.fixture(scope="session")
def app():
    """Create a Flask application configured for testing.

    Returns
    -------
    flask.Flask
        Application instance with :class:`TestConfig` applied and logging
        noise reduced.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    app = create_app(TestConfig)
    app.logger.setLevel("WARNING")
    return app


@pytest.fixture()
def session(app):
    """Provide the application session on a freshly created schema.

    Yields
    ------
    sqlalchemy.orm.scoping.scoped_session
        ``db.session`` inside a pushed application context. Tables are
        dropped after each test.
    """
    with app.app_context():
        _db.create_all()
        try:
            yield _db.session
        finally:
            _db.session.remove()
            _db.drop_all()


@pytest.fixture()
def components(app, session):
    """Security components of the app with fresh recording doubles.

    The access-token cache is emptied so no response leaks between tests.
    """
    comps = get_components()
    comps.hooks = RecordingEventHooks()
    comps.mailer = RecordingMailer()
    comps.cache.clear()
    return comps


@pytest.fixture()
def hooks(components) -> RecordingEventHooks:
    return components.hooks


@pytest.fixture()
def mailer(components) -> RecordingMailer:
    return components.mailer


@pytest.fixture()
def client(app, components):
    return app.test_client()


@pytest.fixture(scope="session")
def faker():
    """Provide a :class:`faker.Faker` instance seeded for deterministic tests."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


# -- Hook up Factory Boy to the session fixture ---------------------------------
@pytest.fixture(autouse=True)
def _factories_session(request):
    """Wire Factory Boy's session helper to the ``session`` fixture when used."""
    from tests.factories import SQLAlchemySession

    if "session" in request.fixturenames:
        SQLAlchemySession.set(request.getfixturevalue("session"))
    yield
    SQLAlchemySession.set(None)
