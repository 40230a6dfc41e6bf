from __future__ import annotations

import smtplib

from smartspend.integrations import mailer
from smartspend.integrations.mailer import SmtpNotifier


class _FakeSMTP:
    instances: list["_FakeSMTP"] = []
    fail_login = False

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.messages = []
        self.tls = False
        _FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.tls = True

    def login(self, username, password):
        if self.fail_login:
            raise smtplib.SMTPAuthenticationError(535, b"bad credentials")

    def send_message(self, message):
        self.messages.append(message)


def _notifier(monkeypatch, **kwargs) -> SmtpNotifier:
    _FakeSMTP.instances = []
    _FakeSMTP.fail_login = False
    monkeypatch.setattr(mailer.smtplib, "SMTP", _FakeSMTP)
    return SmtpNotifier("mail.local", 2525, "SmartSpend <noreply@smartspend.local>", **kwargs)


def test_send_delivers_plain_text(monkeypatch):
    notifier = _notifier(monkeypatch, username="bot", password="pw")

    result = notifier.send("demo@example.com", "Budget Alert for Main", "Hello")

    assert result.success is True and result.error is None
    [smtp] = _FakeSMTP.instances
    assert (smtp.host, smtp.port, smtp.tls) == ("mail.local", 2525, True)
    [message] = smtp.messages
    assert message["To"] == "demo@example.com"
    assert message["Subject"] == "Budget Alert for Main"
    assert message.get_content().strip() == "Hello"


def test_send_reports_failure_instead_of_raising(monkeypatch):
    notifier = _notifier(monkeypatch, username="bot", password="wrong", use_tls=False)
    _FakeSMTP.fail_login = True

    result = notifier.send("demo@example.com", "subject", "body")

    assert result.success is False
    assert "bad credentials" in result.error
