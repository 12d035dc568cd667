"""Application factory wiring Flask extensions, security components and blueprints."""

from __future__ import annotations

from flask import Flask

from gatekeeper.core.config import BaseConfig, get_config
from gatekeeper.core.logger import configure_logging
from gatekeeper.core.logger import init_app as init_logging
from gatekeeper.core.security import SecurityComponents


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    components: SecurityComponents | None = None,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application.

    :param config: Config object/class or import path; ``APP_ENV`` decides when omitted.
    :param components: Pre-built security components (tests inject recording
        hooks and mailers here). Built from configuration when omitted.
    :raises SignerConfigurationError: Unusable signing key material.
    :raises CipherConfigurationError: Unusable ``ENCRYPTION_KEY``.
    """

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(get_config() if config is None else config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    from gatekeeper.core import middleware

    middleware.init_app(app)

    from gatekeeper.core import extensions

    extensions.init_app(app)

    # Key material is checked here; a bad key aborts start-up.
    from gatekeeper.core import security

    security.init_app(app, components)

    init_logging(app)

    from gatekeeper.api import init_app as init_api

    init_api(app)

    from gatekeeper.core import errors

    errors.init_app(app)

    from gatekeeper import cli as app_cli

    app_cli.init_app(app)

    return app
