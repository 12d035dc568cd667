"""Unit tests for the SMTP and logging mailers."""

from __future__ import annotations

import logging
import smtplib

import pytest

from gatekeeper.infra.mail.smtp_mailer import LogMailer, SMTPMailer, redact, render
from gatekeeper.services._shared.errors import MailerError
from gatekeeper.services._shared.ports import MailTemplate

DATA = {"site_url": "http://auth.example.test", "token": "tok-123"}


class FakeSMTP:
    instances: list[FakeSMTP] = []
    fail_with: Exception | None = None

    def __init__(self, host, port, timeout=None, **kwargs):
        self.host = host
        self.port = port
        self.started_tls = False
        self.logged_in = None
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self, context=None):
        self.started_tls = True

    def login(self, user, password):
        self.logged_in = (user, password)

    def send_message(self, msg):
        if FakeSMTP.fail_with is not None:
            raise FakeSMTP.fail_with
        self.messages.append(msg)


@pytest.fixture()
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    FakeSMTP.fail_with = None
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


def _mailer(**kwargs) -> SMTPMailer:
    return SMTPMailer(host="smtp.example.test", sender="auth@example.test", **kwargs)


def test_confirmation_link():
    assert "http://auth.example.test/verify?type=signup&token=tok-123" in render(
        MailTemplate.CONFIRMATION, DATA
    )


def test_recovery_link():
    body = render(MailTemplate.RECOVERY, {"site_url": "http://auth.example.test", "token": "rec-9"})

    assert "http://auth.example.test/verify?type=recovery&token=rec-9" in body


def test_send_over_starttls(fake_smtp):
    _mailer(user="u", password="p").send("ada@example.com", MailTemplate.CONFIRMATION, DATA)

    (server,) = fake_smtp.instances
    assert server.started_tls is True
    assert server.logged_in == ("u", "p")
    (msg,) = server.messages
    assert msg["To"] == "ada@example.com"
    assert msg["From"] == "auth@example.test"
    assert "tok-123" in msg.get_content()


def test_send_without_credentials_skips_login(fake_smtp):
    _mailer().send("ada@example.com", MailTemplate.CONFIRMATION, DATA)

    assert fake_smtp.instances[0].logged_in is None


def test_smtp_failure_becomes_mailer_error(fake_smtp, caplog):
    fake_smtp.fail_with = smtplib.SMTPRecipientsRefused({})

    with pytest.raises(MailerError):
        _mailer().send("ada@example.com", MailTemplate.CONFIRMATION, DATA)

    assert "a***@example.com" in caplog.text
    assert "ada@example.com" not in caplog.text


def test_log_mailer_writes_link(caplog):
    caplog.set_level(logging.INFO, logger="gatekeeper.infra.mail.smtp_mailer")

    LogMailer().send("ada@example.com", MailTemplate.CONFIRMATION, DATA)

    assert "token=tok-123" in caplog.text


@pytest.mark.parametrize(
    "address,expected",
    [("ada@example.com", "a***@example.com"), ("not-an-address", "redacted")],
)
def test_redact(address, expected):
    assert redact(address) == expected
