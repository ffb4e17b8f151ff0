import base64
from email import message_from_bytes

import pytest

from skills.seller_quality.config import QualityConfig
from skills.seller_quality.mailer import DryRunMailer, GmailMailer, is_valid_email, split_addresses
from skills.seller_quality.types import DeliveryError


class _Exec:
    def __init__(self, result=None, exc=None):
        self.result = result
        self.exc = exc

    def execute(self):
        if self.exc:
            raise self.exc
        return self.result


class FakeGmailService:
    def __init__(self, fail: bool = False, profile_error: Exception | None = None):
        self.fail = fail
        self.profile_error = profile_error
        self.bodies = []

    def users(self):
        return self

    def messages(self):
        return self

    def getProfile(self, userId):  # noqa: N802
        if self.profile_error:
            return _Exec(exc=self.profile_error)
        return _Exec({"emailAddress": "alerts@backmarket.example"})

    def send(self, userId, body):
        if self.fail:
            return _Exec(exc=RuntimeError("quota exceeded"))
        self.bodies.append(body)
        return _Exec({"id": f"msg-{len(self.bodies)}"})


def test_is_valid_email():
    assert is_valid_email("ops@shop.example.com")
    assert not is_valid_email("ops@shop")
    assert not is_valid_email("ops shop@example.com")
    assert not is_valid_email("")


def test_split_addresses_trims_and_drops_blanks():
    assert split_addresses(" a@x.com, b@y.com ,,") == ["a@x.com", "b@y.com"]
    assert split_addresses("") == []


def test_gmail_mailer_sends_raw_mime_with_reply_to():
    service = FakeGmailService()
    mailer = GmailMailer(QualityConfig(), service=service)

    message_id = mailer.send(to="ops@shop.example.com", subject="件名", html_body="<p>hi</p>", text_body="hi")

    assert message_id == "msg-1"
    raw = service.bodies[0]["raw"]
    parsed = message_from_bytes(base64.urlsafe_b64decode(raw))
    assert parsed["To"] == "ops@shop.example.com"
    assert parsed["Reply-To"] == "quality@backmarket.com"
    assert "alerts@backmarket.example" in parsed["From"]
    assert parsed.is_multipart()


def test_gmail_mailer_wraps_transport_errors():
    mailer = GmailMailer(QualityConfig(), service=FakeGmailService(fail=True))
    with pytest.raises(DeliveryError):
        mailer.send(to="ops@shop.example.com", subject="s", html_body="<p>x</p>", text_body="x")


def test_dry_run_mailer_records_messages():
    mailer = DryRunMailer()
    assert mailer.send(to="a@x.com", subject="s", html_body="h", text_body="t") == "dry-run-1"
    assert [m.to for m in mailer.sent] == ["a@x.com"]


def test_gmail_mailer_profile_lookup_failure_is_a_delivery_error():
    service = FakeGmailService(profile_error=RuntimeError("HttpError 503 backendError"))
    mailer = GmailMailer(QualityConfig(), service=service)

    with pytest.raises(DeliveryError, match="backendError"):
        mailer.send(to="ops@shop.example.com", subject="s", html_body="<p>x</p>", text_body="x")
    assert service.bodies == []

    # the profile is looked up again on the next message once the API recovers
    service.profile_error = None
    assert mailer.send(to="ops@shop.example.com", subject="s", html_body="<p>x</p>", text_body="x") == "msg-1"


def test_gmail_mailer_missing_token_is_a_delivery_error(monkeypatch):
    import skills.seller_quality.mailer as mailer_module

    def _no_token(*args, **kwargs):
        raise RuntimeError("Gmail send token not found")

    monkeypatch.setattr(mailer_module, "_load_gmail_service", _no_token)
    mailer = GmailMailer(QualityConfig())

    with pytest.raises(DeliveryError, match="token not found"):
        mailer.send(to="ops@shop.example.com", subject="s", html_body="<p>x</p>", text_body="x")
