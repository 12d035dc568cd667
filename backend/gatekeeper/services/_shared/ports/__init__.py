"""
gatekeeper.services._shared.ports
=================================

*Ports* (hexagonal interfaces) the services depend on for side effects that
leave the database: event hooks and outgoing mail.

Concrete adapters live under ``gatekeeper.infra``; the in-memory doubles
here back the unit tests and deployments without a hook endpoint.
"""

from __future__ import annotations

from .event_hooks import EventHooks, HookEvent, NullEventHooks, RecordingEventHooks
from .mailer import Mailer, MailTemplate, RecordingMailer

__all__ = [
    "EventHooks",
    "HookEvent",
    "NullEventHooks",
    "RecordingEventHooks",
    "Mailer",
    "MailTemplate",
    "RecordingMailer",
]
