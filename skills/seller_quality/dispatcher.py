"""Send one seller's escalation email to every listed address."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from skills.seller_quality.config import QualityConfig
from skills.seller_quality.mailer import Mailer, is_valid_email, split_addresses
from skills.seller_quality.templates import TemplateRenderer
from skills.seller_quality.tracking import ResponseStore, TrackingStore
from skills.seller_quality.types import Action, DataAccessError, DeliveryError, EmailType, SellerSnapshot


@dataclass(slots=True)
class DispatchOutcome:
    seller_id: str
    email_type: Optional[EmailType] = None
    sent: list[str] = field(default_factory=list)
    invalid: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    tracking_ids: list[str] = field(default_factory=list)
    # Sent, but the tracking or response row could not be written.
    store_errors: list[str] = field(default_factory=list)
    used_fallback: bool = False
    response_recorded: bool = False

    @property
    def any_sent(self) -> bool:
        return bool(self.sent)


def tracking_pixel(web_app_url: str, tracking_id: str) -> str:
    sep = "&" if "?" in web_app_url else "?"
    return (
        f'<img src="{web_app_url}{sep}id={tracking_id}&action=open" '
        'width="1" height="1" style="display:none" alt="">'
    )


class NotificationDispatcher:
    def __init__(
        self,
        *,
        config: QualityConfig,
        renderer: TemplateRenderer,
        mailer: Mailer,
        tracking: TrackingStore,
        responses: ResponseStore,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config = config
        self.renderer = renderer
        self.mailer = mailer
        self.tracking = tracking
        self.responses = responses
        self.clock = clock

    def dispatch(self, snapshot: SellerSnapshot) -> DispatchOutcome:
        """Raises TemplateError if no template can be rendered; per-address failures are collected."""
        outcome = DispatchOutcome(seller_id=snapshot.seller_id)
        if snapshot.final_action is Action.NO_ACTION:
            return outcome
        addresses = split_addresses(snapshot.email)
        if not addresses:
            return outcome

        rendered = self.renderer.render_for_action(snapshot.final_action, snapshot)
        outcome.email_type = rendered.email_type
        outcome.used_fallback = rendered.used_fallback

        for address in addresses:
            if not is_valid_email(address):
                print(f"[SEND SKIP] seller_id={snapshot.seller_id} email={address} reason=invalid_address", flush=True)
                outcome.invalid.append(address)
                continue

            tracking_id = self.tracking.new_tracking_id()
            html_body = rendered.html_body + tracking_pixel(self.config.web_app_url, tracking_id)
            try:
                self.mailer.send(
                    to=address,
                    subject=rendered.subject,
                    html_body=html_body,
                    text_body=rendered.text_body,
                )
            except DeliveryError as exc:
                print(f"[SEND FAIL] seller_id={snapshot.seller_id} email={address} error={exc}", flush=True)
                outcome.failed.append(address)
                continue

            outcome.sent.append(address)
            try:
                self.tracking.record_send(
                    tracking_id=tracking_id,
                    email=address,
                    seller_id=snapshot.seller_id,
                    email_type=rendered.email_type,
                    now=self.clock(),
                )
            except DataAccessError as exc:
                print(f"[TRACK FAIL] seller_id={snapshot.seller_id} tracking_id={tracking_id} error={exc}", flush=True)
                outcome.store_errors.append(f"tracking_id={tracking_id}: {exc}")
                continue
            outcome.tracking_ids.append(tracking_id)
            print(
                f"[SEND OK] seller_id={snapshot.seller_id} email={address} "
                f"email_type={rendered.email_type.value} tracking_id={tracking_id}",
                flush=True,
            )

        if outcome.any_sent:
            try:
                self.responses.record_pending(snapshot, rendered.email_type, self.clock())
                outcome.response_recorded = True
            except DataAccessError as exc:
                print(f"[TRACK FAIL] seller_id={snapshot.seller_id} table=responses error={exc}", flush=True)
                outcome.store_errors.append(f"response: {exc}")
        return outcome
