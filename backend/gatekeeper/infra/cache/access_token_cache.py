"""Bounded in-process cache of issued access-token responses.

A repeated password login may be answered with the previous response while
the cached access token still has more than :data:`FRESHNESS_MARGIN` seconds
to live. The expiry is read from the token's own payload, so the cache never
hands out a token closer to expiry than the margin regardless of when it was
stored.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, replace

log = logging.getLogger(__name__)

FRESHNESS_MARGIN = 3600  # seconds


class TokenPayloadError(ValueError):
    """The cached token's payload segment cannot be read."""


@dataclass(frozen=True, slots=True)
class AccessTokenResponse:
    """
    Body of a successful grant.

    :ivar access_token: Signed JWT.
    :ivar token_type: Always ``"bearer"``.
    :ivar expires_in: Seconds until ``access_token`` expires.
    :ivar refresh_token: Opaque refresh token.
    """

    access_token: str
    token_type: str
    expires_in: int
    refresh_token: str


def read_expiry(token: str) -> int:
    """Return the ``exp`` claim of a compact JWS without verifying it.

    Only ever applied to tokens this service signed itself.

    :raises TokenPayloadError: When the token is not three segments, the
        payload is not Base64url JSON or ``exp`` is missing.
    """
    try:
        segment = token.split(".")[1]
        raw = base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
        return int(json.loads(raw)["exp"])
    except (IndexError, KeyError, TypeError, binascii.Error, ValueError) as exc:
        raise TokenPayloadError(f"Unreadable access token payload: {exc}") from exc


class AccessTokenCache:
    """
    Thread-safe LRU map of identity key -> :class:`AccessTokenResponse`.

    :param capacity: Maximum number of entries; ``<= 0`` disables the cache.
    :param enabled: Feature switch; when ``False`` lookups always miss and
        stores are ignored.
    :param clock: Optional ``() -> seconds`` override for tests; the module
        ``time.time`` is read at call time otherwise.
    """

    def __init__(
        self,
        capacity: int,
        *,
        enabled: bool = True,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.capacity = int(capacity)
        self._enabled = bool(enabled) and self.capacity > 0
        self._clock = clock
        self._entries: OrderedDict[str, AccessTokenResponse] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._enabled

    def _now(self) -> int:
        return int(self._clock() if self._clock is not None else time.time())

    def lookup(self, identity: str) -> AccessTokenResponse | None:
        """Return a fresh copy of the cached response for ``identity``.

        Entries within :data:`FRESHNESS_MARGIN` of expiry, or with an
        unreadable token, are evicted and reported as a miss.
        """
        if not self._enabled:
            return None
        with self._lock:
            cached = self._entries.get(identity)
            if cached is None:
                return None
            try:
                exp = read_expiry(cached.access_token)
            except TokenPayloadError as exc:
                log.warning("Evicting cached access token: %s", exc)
                del self._entries[identity]
                return None
            now = self._now()
            if now + FRESHNESS_MARGIN >= exp:
                del self._entries[identity]
                return None
            self._entries.move_to_end(identity)
        return replace(cached, expires_in=exp - now)

    def store(self, identity: str, response: AccessTokenResponse) -> None:
        if not self._enabled:
            return
        with self._lock:
            self._entries[identity] = response
            self._entries.move_to_end(identity)
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)

    def evict(self, identity: str) -> bool:
        with self._lock:
            return self._entries.pop(identity, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
