from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from gatekeeper.models.user import User
from gatekeeper.services._shared.errors import HookError


class HookEvent(str, Enum):
    """Account events external systems can subscribe to."""

    VALIDATE = "validate"
    SIGNUP = "signup"
    LOGIN = "login"


class EventHooks(Protocol):
    """
    Notify external systems about account events.

    ``trigger`` runs inside the caller's Unit of Work: raising
    :class:`HookError` aborts the surrounding transaction, so nothing the grant
    wrote so far is persisted.
    """

    def trigger(self, event: HookEvent, user: User, instance_id: uuid.UUID) -> None: ...


class NullEventHooks(EventHooks):
    """No hook configured: every event is accepted."""

    def trigger(self, event: HookEvent, user: User, instance_id: uuid.UUID) -> None:
        return None


@dataclass
class RecordingEventHooks(EventHooks):
    """
    In-memory double recording triggered events.

    :ivar fail_on: Events for which ``trigger`` raises :class:`HookError`.
    """

    fail_on: set[HookEvent] = field(default_factory=set)
    events: list[tuple[HookEvent, str]] = field(default_factory=list)

    def trigger(self, event: HookEvent, user: User, instance_id: uuid.UUID) -> None:
        if event in self.fail_on:
            raise HookError(f"Hook rejected {event.value} for {user.email}")
        self.events.append((event, user.email))
