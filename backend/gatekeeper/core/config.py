"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'

NIL_INSTANCE_ID: Final[str] = "00000000-0000-0000-0000-000000000000"


# Load .env during development (no-op when the file is missing)
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_int(name: str, default: int) -> int:
    """Parse an integer from an environment variable.

    Blank values fall back to ``default``; malformed values raise so that a
    typo in deployment configuration is caught at startup.
    """
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    try:
        return int(val.strip())
    except ValueError as exc:
        raise RuntimeError(f"Environment variable {name} must be an integer, got {val!r}") from exc


def env_list(name: str, default: str = "") -> list[str]:
    """Split a comma-separated environment variable into trimmed entries."""
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret. Not used for token signing.
    SITE_URL: str
        Public host name; the default issuer is derived from it.
    INSTANCE_ID: str
        Tenant/instance UUID every user and refresh token is scoped to.
    JWT_ALGORITHM: str
        ``"HS256"`` or ``"RS256"``. Also read by ``flask-jwt-extended`` when
        verifying bearer tokens on protected routes.
    JWT_SECRET: str
        Shared secret for HS256.
    JWT_RSA_PRIVATE_KEY_PATH / JWT_RSA_PUBLIC_KEY_PATH: str
        PEM files for RS256. The public key is derived from the private key
        when the public path is blank.
    JWT_EXP: int
        Access-token lifetime in seconds.
    JWT_AUD: str
        Default audience when the request carries no ``X-JWT-AUD`` header.
    JWT_ISSUER: str
        ``iss`` claim; defaults to ``http://<SITE_URL>`` when blank.
    ENCRYPTION_KEY: str
        AES key (16, 24 or 32 bytes) protecting stored credentials.
    TOKEN_CACHE_ENABLED / TOKEN_CACHE_SIZE:
        Access-token cache switch and capacity.
    COOKIE_KEY / COOKIE_DURATION:
        Session cookie name and lifetime in seconds (``0`` disables it).
    MAILER_AUTOCONFIRM / DISABLE_SIGNUP: bool
        Sign-up behaviour.
    SMTP_*:
        Outgoing mail; the logging mailer is used when ``SMTP_HOST`` is blank.
        ``SMTP_MAX_FREQUENCY`` is the minimum number of seconds between two
        confirmation (or recovery) mails to one user.
    WEBHOOK_*:
        Event-hook endpoint, signing secret, subscribed events and timeout.
    AUTH_TOKEN_RATE_LIMIT: str
        Flask-Limiter expression guarding ``POST /token``.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    SITE_URL = os.getenv("SITE_URL", "localhost:8081")
    INSTANCE_ID = os.getenv("INSTANCE_ID", NIL_INSTANCE_ID)

    # Access-token signing
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_SECRET = os.getenv("JWT_SECRET", "")
    JWT_RSA_PRIVATE_KEY_PATH = os.getenv("JWT_RSA_PRIVATE_KEY_PATH", "")
    JWT_RSA_PUBLIC_KEY_PATH = os.getenv("JWT_RSA_PUBLIC_KEY_PATH", "")
    JWT_EXP = env_int("JWT_EXP", 3600)
    JWT_AUD = os.getenv("JWT_AUD", "authenticated")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "")
    JWT_TOKEN_LOCATION = ["headers"]

    # Credential encryption
    ENCRYPTION_KEY = os.getenv("ENCRYPTION_KEY", "")

    # Access-token cache
    TOKEN_CACHE_ENABLED = env_bool("TOKEN_CACHE_ENABLED", False)
    TOKEN_CACHE_SIZE = env_int("TOKEN_CACHE_SIZE", 1000)

    # Session cookie
    COOKIE_KEY = os.getenv("COOKIE_KEY", "nf_jwt")
    COOKIE_DURATION = env_int("COOKIE_DURATION", 86400)

    # Sign-up
    MAILER_AUTOCONFIRM = env_bool("MAILER_AUTOCONFIRM", False)
    DISABLE_SIGNUP = env_bool("DISABLE_SIGNUP", False)

    # Mail
    SMTP_HOST = os.getenv("SMTP_HOST", "")
    SMTP_PORT = env_int("SMTP_PORT", 587)
    SMTP_USER = os.getenv("SMTP_USER", "")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
    SMTP_USE_TLS = env_bool("SMTP_USE_TLS", True)
    MAILER_FROM = os.getenv("MAILER_FROM", "no-reply@localhost")
    SMTP_MAX_FREQUENCY = env_int("SMTP_MAX_FREQUENCY", 900)

    # Event hooks
    WEBHOOK_URL = os.getenv("WEBHOOK_URL", "")
    WEBHOOK_SECRET = os.getenv("WEBHOOK_SECRET", "")
    WEBHOOK_EVENTS = env_list("WEBHOOK_EVENTS", "validate,signup,login")
    WEBHOOK_TIMEOUT = env_int("WEBHOOK_TIMEOUT", 5)

    # Rate limiting
    AUTH_TOKEN_RATE_LIMIT = os.getenv("AUTH_TOKEN_RATE_LIMIT", "30 per 5 minutes")
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_ENABLED = env_bool("RATELIMIT_ENABLED", True)

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging & CORS
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Enables debug mode by default and honors ``SQLALCHEMY_ECHO`` for verbose
    SQL logging when requested.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Ships throwaway signing and encryption keys.
    - Turns the rate limiter off.
    """

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    PROPAGATE_EXCEPTIONS = True
    JWT_ALGORITHM = "HS256"
    JWT_SECRET = "testsecret-testsecret-testsecret-0001"
    ENCRYPTION_KEY = "testkey_testkey_testkey_testkey_"
    RATELIMIT_ENABLED = False
    WEBHOOK_URL = ""
    SMTP_HOST = ""


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Keeps debug and SQL echoing disabled while relying on WSGI-level log
    configuration for noise control.
    """

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
