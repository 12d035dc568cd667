"""Mailer adapters: SMTP delivery and a logging fallback for development."""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Any

from gatekeeper.services._shared.errors import MailerError
from gatekeeper.services._shared.ports.mailer import Mailer, MailTemplate

logger = logging.getLogger(__name__)

SUBJECTS = {
    MailTemplate.CONFIRMATION: "Confirm your sign-up",
    MailTemplate.RECOVERY: "Reset your password",
}


def render(template: MailTemplate, data: dict[str, Any]) -> str:
    if template is MailTemplate.CONFIRMATION:
        return (
            "Follow this link to confirm your account:\n\n"
            f"{data['site_url']}/verify?type=signup&token={data['token']}\n"
        )
    if template is MailTemplate.RECOVERY:
        return (
            "Follow this link to reset the password for your account:\n\n"
            f"{data['site_url']}/verify?type=recovery&token={data['token']}\n"
        )
    raise MailerError(f"Unknown mail template {template!r}")


def redact(address: str) -> str:
    """Keep the domain and the first character of the local part for logs."""
    local, _, domain = address.partition("@")
    if not domain:
        return "redacted"
    return f"{local[:1]}***@{domain}"


class SMTPMailer(Mailer):
    """Send plain-text mail over SMTP with STARTTLS (or implicit TLS)."""

    def __init__(
        self,
        *,
        host: str,
        port: int = 587,
        user: str = "",
        password: str = "",
        use_tls: bool = True,
        sender: str,
        timeout: float = 30,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.use_tls = use_tls
        self.sender = sender
        self.timeout = timeout

    def send(self, address: str, template: MailTemplate, data: dict[str, Any]) -> None:
        msg = EmailMessage()
        msg["Subject"] = SUBJECTS[template]
        msg["From"] = self.sender
        msg["To"] = address
        msg.set_content(render(template, data))

        context = ssl.create_default_context()
        try:
            if self.use_tls:
                with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                    server.starttls(context=context)
                    if self.user and self.password:
                        server.login(self.user, self.password)
                    server.send_message(msg)
            else:
                with smtplib.SMTP_SSL(
                    self.host, self.port, context=context, timeout=self.timeout
                ) as server:
                    if self.user and self.password:
                        server.login(self.user, self.password)
                    server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Mail to %s failed: %s", redact(address), exc)
            raise MailerError(f"Could not send {template.value} mail") from exc
        logger.info("Mail sent: template=%s to=%s", template.value, redact(address))


class LogMailer(Mailer):
    """Write messages to the log instead of sending them (no SMTP configured)."""

    def send(self, address: str, template: MailTemplate, data: dict[str, Any]) -> None:
        logger.info(
            "Mail not sent (no SMTP_HOST): template=%s to=%s\n%s",
            template.value,
            redact(address),
            render(template, data),
        )
