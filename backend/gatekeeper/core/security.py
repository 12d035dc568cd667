"""Per-application security components.

The signer, credential cipher, access-token cache, refresh-token protocol,
event hooks and mailer are built once in the application factory and stored
on ``app.extensions["gatekeeper"]``. Construction failures (bad key
material, bad encryption key) abort application start.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from flask import Flask, current_app

from gatekeeper.infra.cache.access_token_cache import AccessTokenCache
from gatekeeper.infra.crypto.aes_cipher import AESCredentialCipher
from gatekeeper.infra.jwt.token_signer import TokenSigner
from gatekeeper.infra.mail.smtp_mailer import LogMailer, SMTPMailer
from gatekeeper.infra.webhooks.webhook_event_hooks import WebhookEventHooks
from gatekeeper.services._shared.ports import EventHooks, Mailer, NullEventHooks
from gatekeeper.services.tokens.refresh import RefreshTokenProtocol

EXTENSION_KEY = "gatekeeper"

log = logging.getLogger(__name__)


@dataclass
class SecurityComponents:
    signer: TokenSigner
    cipher: AESCredentialCipher
    cache: AccessTokenCache
    refresh_tokens: RefreshTokenProtocol
    hooks: EventHooks
    mailer: Mailer


def build_components(app: Flask) -> SecurityComponents:
    cfg = app.config
    hooks: EventHooks
    if cfg.get("WEBHOOK_URL"):
        hooks = WebhookEventHooks(
            cfg["WEBHOOK_URL"],
            cfg.get("WEBHOOK_SECRET", ""),
            events=cfg.get("WEBHOOK_EVENTS") or (),
            timeout=cfg.get("WEBHOOK_TIMEOUT", 5),
        )
    else:
        hooks = NullEventHooks()

    mailer: Mailer
    if cfg.get("SMTP_HOST"):
        mailer = SMTPMailer(
            host=cfg["SMTP_HOST"],
            port=cfg.get("SMTP_PORT", 587),
            user=cfg.get("SMTP_USER", ""),
            password=cfg.get("SMTP_PASSWORD", ""),
            use_tls=cfg.get("SMTP_USE_TLS", True),
            sender=cfg.get("MAILER_FROM", "no-reply@localhost"),
        )
    else:
        mailer = LogMailer()

    return SecurityComponents(
        signer=TokenSigner.from_config(cfg),
        cipher=AESCredentialCipher(cfg.get("ENCRYPTION_KEY") or ""),
        cache=AccessTokenCache(
            cfg.get("TOKEN_CACHE_SIZE", 0),
            enabled=cfg.get("TOKEN_CACHE_ENABLED", False),
        ),
        refresh_tokens=RefreshTokenProtocol(),
        hooks=hooks,
        mailer=mailer,
    )


def init_app(app: Flask, components: SecurityComponents | None = None) -> None:
    """Build (or install the given) components and align bearer-token verification.

    :param components: Pre-built components, e.g. with test doubles for hooks.
    """
    components = components or build_components(app)
    app.extensions[EXTENSION_KEY] = components
    app.config.update(components.signer.verification_settings())
    # Audience depends on the request (X-JWT-AUD); ``require_auth`` checks it.
    app.config["JWT_DECODE_AUDIENCE"] = None
    log.info(
        "Security components ready: alg=%s cache=%s",
        components.signer.algorithm.value,
        "on" if components.cache.enabled else "off",
    )


def get_components() -> SecurityComponents:
    return current_app.extensions[EXTENSION_KEY]
