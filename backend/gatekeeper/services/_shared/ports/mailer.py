from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


class MailTemplate(str, Enum):
    CONFIRMATION = "confirmation"
    RECOVERY = "recovery"


class Mailer(Protocol):
    """Send templated account e-mails. Failures raise ``MailerError``."""

    def send(self, address: str, template: MailTemplate, data: dict[str, Any]) -> None: ...


@dataclass
class RecordingMailer(Mailer):
    """In-memory double keeping every message it was asked to send."""

    sent: list[tuple[str, MailTemplate, dict[str, Any]]] = field(default_factory=list)

    def send(self, address: str, template: MailTemplate, data: dict[str, Any]) -> None:
        self.sent.append((address, template, dict(data)))
