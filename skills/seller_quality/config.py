"""Immutable run configuration loaded from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from datetime import date
from pathlib import Path
from typing import Optional


@dataclass(slots=True, frozen=True)
class MetricThresholds:
    rate_threshold: float
    critical_threshold: float
    min_issue_count: int = 2


DEFECTIVE_THRESHOLDS = MetricThresholds(rate_threshold=0.03, critical_threshold=0.04)
APPEARANCE_THRESHOLDS = MetricThresholds(rate_threshold=0.0075, critical_threshold=0.01)

RESPONSE_SHEET_NAMES = {
    "first_warning": "First Warning Responses",
    "last_warning": "Last Warning Responses",
    "suspension": "Suspension Responses",
}

EMAIL_SUBJECTS = {
    "first_warning": "⚠️ 品質問題アラート: {seller_name}",
    "last_warning": "⚠️ 最終警告: {seller_name}",
    "suspension": "⛔ アカウント停止のお知らせ: {seller_name}",
}


@dataclass(slots=True, frozen=True)
class QualityConfig:
    defective: MetricThresholds = DEFECTIVE_THRESHOLDS
    appearance: MetricThresholds = APPEARANCE_THRESHOLDS
    max_streak: int = 5
    market: str = "JP"
    start_date: date = date(2025, 3, 10)
    quality_sheet_name: str = "Seller Quality"
    tracking_sheet_name: str = "Email Tracking"
    header_row_count: int = 1
    response_sheet_names: dict[str, str] = field(default_factory=lambda: dict(RESPONSE_SHEET_NAMES))
    email_subjects: dict[str, str] = field(default_factory=lambda: dict(EMAIL_SUBJECTS))
    sender_name: str = "Back Market Quality Team"
    reply_to: str = "quality@backmarket.com"
    web_app_url: str = "http://localhost:8000/"
    timezone: str = "Asia/Tokyo"
    table_backend: str = "csv"
    data_dir: str = "data"
    spreadsheet_id: str = ""
    service_account_file: str = "service_account.json"
    template_dir: Optional[str] = None
    gmail_credentials_file: str = "credentials.json"
    gmail_token_file: str = "tokens/gmail_send_token.json"

    def response_sheet_name(self, email_type: str) -> str:
        try:
            return self.response_sheet_names[email_type]
        except KeyError as exc:
            raise ValueError(f"No response sheet configured for {email_type!r}") from exc

    def subject_for(self, email_type: str, seller_name: str) -> str:
        template = self.email_subjects.get(email_type) or self.email_subjects["first_warning"]
        return template.replace("{seller_name}", seller_name)

    def with_overrides(self, **changes: object) -> "QualityConfig":
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def _first_env_value(*names: str) -> str:
    for name in names:
        value = os.getenv(name, "").strip()
        if value:
            return value
    return ""


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_date(name: str, default: date) -> date:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be YYYY-MM-DD, got {raw!r}") from exc


def load_config() -> QualityConfig:
    defaults = QualityConfig()
    backend = (os.getenv("QUALITY_TABLE_BACKEND", "").strip().lower() or defaults.table_backend)
    if backend not in {"csv", "sheets"}:
        raise ValueError(f"QUALITY_TABLE_BACKEND must be 'csv' or 'sheets', got {backend!r}")

    defective = MetricThresholds(
        rate_threshold=_env_float("QUALITY_DEFECTIVE_THRESHOLD", DEFECTIVE_THRESHOLDS.rate_threshold),
        critical_threshold=_env_float("QUALITY_DEFECTIVE_CRITICAL", DEFECTIVE_THRESHOLDS.critical_threshold),
    )
    appearance = MetricThresholds(
        rate_threshold=_env_float("QUALITY_APPEARANCE_THRESHOLD", APPEARANCE_THRESHOLDS.rate_threshold),
        critical_threshold=_env_float("QUALITY_APPEARANCE_CRITICAL", APPEARANCE_THRESHOLDS.critical_threshold),
    )
    template_dir = os.getenv("QUALITY_TEMPLATE_DIR", "").strip()

    return QualityConfig(
        defective=defective,
        appearance=appearance,
        market=os.getenv("QUALITY_MARKET", "").strip() or defaults.market,
        start_date=_env_date("QUALITY_START_DATE", defaults.start_date),
        sender_name=os.getenv("QUALITY_SENDER_NAME", "").strip() or defaults.sender_name,
        reply_to=os.getenv("QUALITY_REPLY_TO", "").strip() or defaults.reply_to,
        web_app_url=os.getenv("QUALITY_WEB_APP_URL", "").strip() or defaults.web_app_url,
        timezone=os.getenv("QUALITY_TIMEZONE", "").strip() or defaults.timezone,
        table_backend=backend,
        data_dir=str(Path(os.getenv("QUALITY_DATA_DIR", "").strip() or defaults.data_dir).expanduser()),
        spreadsheet_id=_first_env_value("QUALITY_SPREADSHEET_ID", "GOOGLE_SPREADSHEET_ID"),
        service_account_file=(
            _first_env_value("GOOGLE_SERVICE_ACCOUNT_FILE", "GOOGLE_APPLICATION_CREDENTIALS")
            or defaults.service_account_file
        ),
        template_dir=template_dir or None,
        gmail_credentials_file=(
            _first_env_value("GOOGLE_OAUTH_CREDENTIALS_PATH", "GMAIL_CREDENTIALS_FILE")
            or defaults.gmail_credentials_file
        ),
        gmail_token_file=os.getenv("GMAIL_TOKEN_FILE", "").strip() or defaults.gmail_token_file,
    )
