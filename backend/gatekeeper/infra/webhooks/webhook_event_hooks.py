"""HTTP webhook adapter for :class:`~gatekeeper.services._shared.ports.EventHooks`.

Each subscribed event is POSTed as JSON::

    {"event": "login", "instance_id": "...", "user": {...}}

with an ``X-Webhook-Signature`` header holding an HS256 JWT whose ``sha256``
claim is the hex digest of the body, so receivers can authenticate the call
and detect tampering. A transport error or a non-2xx answer raises
:class:`HookError`, which aborts the grant that triggered it.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
import uuid
from collections.abc import Iterable
from typing import Any

import jwt
import requests

from gatekeeper.models.user import User
from gatekeeper.services._shared.errors import HookError
from gatekeeper.services._shared.ports.event_hooks import EventHooks, HookEvent

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Webhook-Signature"
SIGNATURE_ISSUER = "gatekeeper"


def user_payload(user: User) -> dict[str, Any]:
    return {
        "id": str(user.id),
        "aud": user.aud,
        "role": user.role,
        "email": user.email,
        "app_metadata": dict(user.app_metadata or {}),
        "user_metadata": dict(user.user_metadata or {}),
    }


class WebhookEventHooks(EventHooks):
    """
    Deliver events to one endpoint.

    :param url: Endpoint receiving the POSTs.
    :param secret: HS256 secret for the signature header.
    :param events: Event names to deliver; others are accepted silently.
    :param timeout: Request timeout in seconds.
    :param session: Optional :class:`requests.Session` (connection pooling).
    """

    def __init__(
        self,
        url: str,
        secret: str,
        *,
        events: Iterable[str] = ("validate", "signup", "login"),
        timeout: float = 5,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url
        self.secret = secret
        self.events = {HookEvent(name) for name in events}
        self.timeout = timeout
        self._session = session or requests.Session()
        # Webhook targets are operator-configured; do not chase long redirect chains.
        self._session.max_redirects = 3

    def _signature(self, body: bytes, instance_id: uuid.UUID) -> str:
        now = int(time.time())
        claims = {
            "iss": SIGNATURE_ISSUER,
            "sub": str(instance_id),
            "iat": now,
            "exp": now + 300,
            "sha256": hashlib.sha256(body).hexdigest(),
        }
        return jwt.encode(claims, self.secret, algorithm="HS256")

    def trigger(self, event: HookEvent, user: User, instance_id: uuid.UUID) -> None:
        if event not in self.events:
            return
        body = json.dumps(
            {"event": event.value, "instance_id": str(instance_id), "user": user_payload(user)}
        ).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if self.secret:
            headers[SIGNATURE_HEADER] = self._signature(body, instance_id)
        try:
            resp = self._session.post(self.url, data=body, headers=headers, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            logger.warning(
                "Webhook %s failed: %s", event.value, exc, extra={"event": event.value}
            )
            raise HookError(f"Webhook {event.value} failed: {exc}") from exc
        logger.info("Webhook delivered", extra={"event": event.value})
