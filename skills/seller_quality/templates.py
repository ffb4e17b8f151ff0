from __future__ import annotations

import html
from dataclasses import dataclass
from pathlib import Path
from string import Template
from typing import Optional

from skills.seller_quality.config import QualityConfig
from skills.seller_quality.types import Action, EmailType, SellerSnapshot, TemplateError

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

TEMPLATE_FILES = {
    EmailType.FIRST_WARNING: "first_warning.html",
    EmailType.LAST_WARNING: "last_warning.html",
    EmailType.SUSPENSION: "suspension.html",
}


@dataclass(slots=True)
class RenderedEmail:
    email_type: EmailType
    subject: str
    html_body: str
    text_body: str
    used_fallback: bool = False


def format_percentage(value: Optional[float]) -> str:
    if value is None:
        return "0%"
    return f"{value * 100:.2f}%"


def format_kpi_date(snapshot: SellerSnapshot) -> str:
    if snapshot.date_kpi is None:
        return ""
    return snapshot.date_kpi.strftime("%Y年%m月%d日")


def _pct_text(value: float) -> str:
    text = f"{value * 100:.2f}".rstrip("0").rstrip(".")
    return f"{text}%"


def template_context(snapshot: SellerSnapshot, config: QualityConfig) -> dict[str, str]:
    raw = {
        "seller_id": snapshot.seller_id,
        "seller_name": snapshot.seller_name,
        "owner_name": snapshot.owner_name,
        "tier": snapshot.tier,
        "activity_type": snapshot.activity_type,
        "defective_rate": format_percentage(snapshot.defective_rate),
        "defective_count": str(snapshot.defective_count),
        "defective_streak": str(snapshot.defective_streak),
        "defective_label": snapshot.defective_label.value or "-",
        "appearance_rate": format_percentage(snapshot.appearance_rate),
        "appearance_count": str(snapshot.appearance_count),
        "appearance_streak": str(snapshot.appearance_streak),
        "appearance_label": snapshot.appearance_label.value or "-",
        "week_number": snapshot.week_number,
        "time_period": snapshot.time_period,
        "kpi_date": format_kpi_date(snapshot),
        "defective_critical": _pct_text(config.defective.critical_threshold),
        "defective_alerting": _pct_text(config.defective.rate_threshold),
        "appearance_critical": _pct_text(config.appearance.critical_threshold),
        "appearance_alerting": _pct_text(config.appearance.rate_threshold),
        "reply_to": config.reply_to,
        "sender_name": config.sender_name,
    }
    return {key: html.escape(value) for key, value in raw.items()}


class TemplateRenderer:
    def __init__(self, config: QualityConfig, template_dir: Optional[str] = None) -> None:
        self.config = config
        chosen = template_dir or config.template_dir
        self.template_dir = Path(chosen).expanduser().resolve() if chosen else DEFAULT_TEMPLATE_DIR
        self._cache: dict[EmailType, Template] = {}

    def load(self, email_type: EmailType) -> Template:
        if email_type in self._cache:
            return self._cache[email_type]
        path = self.template_dir / TEMPLATE_FILES[email_type]
        try:
            source = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise TemplateError(f"Cannot load template {path.name}: {exc}") from exc
        template = Template(source)
        self._cache[email_type] = template
        return template

    def render(self, email_type: EmailType, snapshot: SellerSnapshot) -> str:
        template = self.load(email_type)
        try:
            return template.substitute(template_context(snapshot, self.config))
        except (KeyError, ValueError) as exc:
            raise TemplateError(f"Cannot render {TEMPLATE_FILES[email_type]}: {exc}") from exc

    def render_for_action(self, action: Action, snapshot: SellerSnapshot) -> RenderedEmail:
        email_type = EmailType.for_action(action)
        used_fallback = False
        try:
            body = self.render(email_type, snapshot)
        except TemplateError as exc:
            if email_type is EmailType.FIRST_WARNING:
                raise
            print(
                f"[TEMPLATE FALLBACK] seller_id={snapshot.seller_id} email_type={email_type.value} error={exc}",
                flush=True,
            )
            body = self.render(EmailType.FIRST_WARNING, snapshot)
            used_fallback = True

        return RenderedEmail(
            email_type=email_type,
            subject=self.config.subject_for(email_type.value, snapshot.seller_name),
            html_body=body,
            text_body=plain_text_body(email_type, snapshot, self.config),
            used_fallback=used_fallback,
        )

    def check_all(self) -> dict[EmailType, Optional[str]]:
        """Load every template; maps each type to None or its load error."""
        out: dict[EmailType, Optional[str]] = {}
        for email_type in TEMPLATE_FILES:
            try:
                self.load(email_type)
                out[email_type] = None
            except TemplateError as exc:
                out[email_type] = str(exc)
        return out


_TEXT_HEADLINES = {
    EmailType.FIRST_WARNING: "品質指標が基準値を超えています。",
    EmailType.LAST_WARNING: "品質指標が4週連続で基準値を超えています。これは最終警告です。",
    EmailType.SUSPENSION: "品質指標が5週連続で基準値を超えたため、アカウントを停止します。",
}


def plain_text_body(email_type: EmailType, snapshot: SellerSnapshot, config: QualityConfig) -> str:
    lines = [
        f"{snapshot.seller_name} 様",
        "",
        _TEXT_HEADLINES[email_type],
        "",
        f"対象期間: {snapshot.time_period} ({snapshot.week_number})",
        f"不良率: {format_percentage(snapshot.defective_rate)} ({snapshot.defective_streak}週連続)",
        f"外観不良率: {format_percentage(snapshot.appearance_rate)} ({snapshot.appearance_streak}週連続)",
        "",
        f"ご質問は {config.reply_to} までご連絡ください。",
        config.sender_name,
    ]
    return "\n".join(lines)
