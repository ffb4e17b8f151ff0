"""Open-rate statistics over the tracking table."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Optional
from zoneinfo import ZoneInfo

from skills.seller_quality.tracking import TrackingStore, parse_timestamp


@dataclass(slots=True)
class EmailStats:
    total_emails: int = 0
    opened_emails: int = 0
    open_rate: str = "0.00%"
    total_views: int = 0
    average_views: str = "0.00"
    last_week_emails: int = 0
    last_week_opened: int = 0
    last_week_open_rate: str = "0.00%"
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _pct(part: int, whole: int) -> str:
    if whole <= 0:
        return "0.00%"
    return f"{part / whole * 100:.2f}%"


def compute_email_stats(tracking: TrackingStore, now: datetime) -> EmailStats:
    rows = tracking.store.read_rows(tracking.sheet_name)
    if rows is None:
        return EmailStats(error="Tracking sheet not found. It will be created automatically after sending emails.")
    records = tracking.records()
    if not records:
        return EmailStats(error="No tracking data available. Statistics will appear after emails are sent.")

    tz_name = tracking.config.timezone
    reference = now if now.tzinfo else now.replace(tzinfo=ZoneInfo(tz_name))
    week_ago = reference - timedelta(days=7)

    opened = 0
    views = 0
    last_week = 0
    last_week_opened = 0
    for record in records:
        if record.opened:
            opened += 1
            # An opened row counts at least once even before any repeat view.
            views += record.view_count or 1
        sent_at = parse_timestamp(record.send_timestamp, tz_name)
        if sent_at is not None and sent_at > week_ago:
            last_week += 1
            if record.opened:
                last_week_opened += 1

    return EmailStats(
        total_emails=len(records),
        opened_emails=opened,
        open_rate=_pct(opened, len(records)),
        total_views=views,
        average_views=f"{views / opened:.2f}" if opened else "0.00",
        last_week_emails=last_week,
        last_week_opened=last_week_opened,
        last_week_open_rate=_pct(last_week_opened, last_week),
    )


def build_email_stats_summary(stats: EmailStats) -> list[str]:
    if stats.error:
        return [f"Error: {stats.error}"]
    return [
        "Email Statistics:",
        f"Total emails sent: {stats.total_emails}",
        f"Emails opened: {stats.opened_emails}",
        f"Open rate: {stats.open_rate}",
        f"Total views: {stats.total_views}",
        f"Average views per opened email: {stats.average_views}",
        f"Last 7 days emails: {stats.last_week_emails}",
        f"Last 7 days opened: {stats.last_week_opened}",
        f"Last 7 days open rate: {stats.last_week_open_rate}",
    ]
