import smtplib
from types import SimpleNamespace

import pytest

import civic_portal.accounts.notifier as notifier_mod
from civic_portal.accounts.notifier import CredentialNotifier


class FakeSMTP:
    sent = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        self.user = user

    def send_message(self, msg):
        FakeSMTP.sent.append(msg)


@pytest.fixture
def account():
    return SimpleNamespace(id=7, full_name="Jane Doe", email="jane@example.com")


@pytest.fixture(autouse=True)
def fake_smtp(monkeypatch):
    FakeSMTP.sent = []
    monkeypatch.setattr(notifier_mod.smtplib, "SMTP", FakeSMTP)


def test_sends_credential_by_email(account):
    notifier = CredentialNotifier(smtp_server="smtp.example.com", sender="clerk@example.com")
    assert notifier.send_temporary_credential(account, "Abc123Def456") is True
    msg = FakeSMTP.sent[0]
    assert msg["To"] == "jane@example.com"
    assert "Abc123Def456" in msg.get_payload()


def test_no_server_means_not_delivered(account):
    assert CredentialNotifier().send_temporary_credential(account, "Abc123Def456") is False
    assert FakeSMTP.sent == []


def test_account_without_email_is_not_delivered(account):
    account.email = None
    notifier = CredentialNotifier(smtp_server="smtp.example.com")
    assert notifier.send_temporary_credential(account, "Abc123Def456") is False


def test_smtp_failure_reports_undelivered(account, monkeypatch):
    class BrokenSMTP(FakeSMTP):
        def send_message(self, msg):
            raise smtplib.SMTPException("relay refused")

    monkeypatch.setattr(notifier_mod.smtplib, "SMTP", BrokenSMTP)
    notifier = CredentialNotifier(smtp_server="smtp.example.com")
    assert notifier.send_temporary_credential(account, "Abc123Def456") is False


def test_credential_never_logged(account, caplog):
    notifier = CredentialNotifier(smtp_server="smtp.example.com")
    with caplog.at_level("DEBUG"):
        notifier.send_temporary_credential(account, "Abc123Def456")
    assert "Abc123Def456" not in caplog.text


def test_can_deliver_needs_server_and_email(account):
    assert CredentialNotifier(smtp_server="smtp.example.com").can_deliver(account) is True
    assert CredentialNotifier().can_deliver(account) is False
    account.email = None
    assert CredentialNotifier(smtp_server="smtp.example.com").can_deliver(account) is False
