"""Outbound mail transports."""

from __future__ import annotations

import base64
import re
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import formataddr
from pathlib import Path
from typing import Any, Optional, Protocol

from skills.seller_quality.config import QualityConfig
from skills.seller_quality.types import DeliveryError

SCOPES = ["https://www.googleapis.com/auth/gmail.send"]

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(address: str) -> bool:
    return bool(_EMAIL_RE.match(address or ""))


def split_addresses(raw: str) -> list[str]:
    return [part.strip() for part in (raw or "").split(",") if part.strip()]


class Mailer(Protocol):
    def send(self, *, to: str, subject: str, html_body: str, text_body: str) -> str:
        """Send one message; returns a transport message ID or raises DeliveryError."""


def build_message(
    *,
    to: str,
    subject: str,
    html_body: str,
    text_body: str,
    sender_name: str,
    reply_to: str,
    sender_address: str = "me",
) -> EmailMessage:
    msg = EmailMessage()
    msg["To"] = to
    msg["From"] = formataddr((sender_name, sender_address)) if "@" in sender_address else sender_name
    msg["Reply-To"] = reply_to
    msg["Subject"] = subject
    msg.set_content(text_body)
    msg.add_alternative(html_body, subtype="html")
    return msg


def _load_gmail_service(credentials_path: Path, token_path: Path, *, allow_interactive_auth: bool) -> Any:
    try:
        from google.auth.transport.requests import Request
        from google.oauth2.credentials import Credentials
        from google_auth_oauthlib.flow import InstalledAppFlow
        from googleapiclient.discovery import build
    except ImportError as exc:
        raise RuntimeError("Missing Google API dependencies. Install google-api-python-client") from exc

    creds = None
    if token_path.exists():
        creds = Credentials.from_authorized_user_file(str(token_path), SCOPES)

    if not creds or not creds.valid:
        if creds and creds.expired and creds.refresh_token:
            creds.refresh(Request())
        elif allow_interactive_auth:
            if not credentials_path.exists():
                raise RuntimeError(f"Credentials file not found: {credentials_path}")
            flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), SCOPES)
            creds = flow.run_local_server(port=0)
        else:
            raise RuntimeError("Gmail send token missing/expired. Run `check --authorize` to reconnect.")
        token_path.parent.mkdir(parents=True, exist_ok=True)
        token_path.write_text(creds.to_json(), encoding="utf-8")

    return build("gmail", "v1", credentials=creds)


class GmailMailer:
    def __init__(self, config: QualityConfig, *, allow_interactive_auth: bool = False, service: Any = None) -> None:
        self.config = config
        self.allow_interactive_auth = allow_interactive_auth
        self._service = service
        self._sender_address: Optional[str] = None

    @property
    def service(self) -> Any:
        if self._service is None:
            self._service = _load_gmail_service(
                Path(self.config.gmail_credentials_file).expanduser().resolve(),
                Path(self.config.gmail_token_file).expanduser().resolve(),
                allow_interactive_auth=self.allow_interactive_auth,
            )
        return self._service

    def sender_address(self) -> str:
        if self._sender_address is None:
            profile = self.service.users().getProfile(userId="me").execute()
            self._sender_address = str(profile.get("emailAddress", "") or "me")
        return self._sender_address

    def send(self, *, to: str, subject: str, html_body: str, text_body: str) -> str:
        try:
            # Service bootstrap and the profile lookup fail per message, not per run.
            msg = build_message(
                to=to,
                subject=subject,
                html_body=html_body,
                text_body=text_body,
                sender_name=self.config.sender_name,
                reply_to=self.config.reply_to,
                sender_address=self.sender_address(),
            )
            raw = base64.urlsafe_b64encode(msg.as_bytes()).decode("ascii")
            sent = self.service.users().messages().send(userId="me", body={"raw": raw}).execute()
        except Exception as exc:  # noqa: BLE001
            raise DeliveryError(f"Gmail rejected message to {to}: {exc}") from exc
        return str(sent.get("id", ""))


@dataclass(slots=True)
class SentMessage:
    to: str
    subject: str
    html_body: str
    text_body: str


@dataclass(slots=True)
class DryRunMailer:
    """Records messages instead of sending them."""

    sent: list[SentMessage] = field(default_factory=list)

    def send(self, *, to: str, subject: str, html_body: str, text_body: str) -> str:
        self.sent.append(SentMessage(to=to, subject=subject, html_body=html_body, text_body=text_body))
        return f"dry-run-{len(self.sent)}"


def check_mail_transport(config: QualityConfig) -> tuple[bool, str]:
    """Whether a send token is usable without prompting."""
    token = Path(config.gmail_token_file).expanduser().resolve()
    if not token.exists():
        return False, f"Gmail send token not found: {token}"
    try:
        GmailMailer(config).service
    except Exception as exc:  # noqa: BLE001
        return False, f"Gmail transport unavailable: {exc}"
    return True, "Gmail transport ready"
