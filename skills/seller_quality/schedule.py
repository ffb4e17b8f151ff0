"""Weekly trigger: every Monday at 09:00 local time."""

from __future__ import annotations

from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

RUN_WEEKDAY = 0
RUN_TIME = time(9, 0)


def next_run(now: datetime, tz_name: str = "Asia/Tokyo") -> datetime:
    tz = ZoneInfo(tz_name)
    local = now.astimezone(tz) if now.tzinfo else now.replace(tzinfo=tz)
    days_ahead = (RUN_WEEKDAY - local.weekday()) % 7
    candidate = datetime.combine(local.date() + timedelta(days=days_ahead), RUN_TIME, tzinfo=tz)
    if candidate <= local:
        candidate += timedelta(days=7)
    return candidate


def cron_entry(command: str, tz_name: str = "Asia/Tokyo") -> str:
    return "\n".join(
        [
            f"CRON_TZ={tz_name}",
            f"{RUN_TIME.minute} {RUN_TIME.hour} * * 1 {command}",
        ]
    )


def build_schedule_summary(now: datetime, command: str, tz_name: str) -> list[str]:
    upcoming = next_run(now, tz_name)
    return [
        "Weekly schedule: every Monday at 09:00 " + tz_name,
        f"Next run: {upcoming.strftime('%Y-%m-%d %H:%M %Z')}",
        "Install with `crontab -e` and add:",
        cron_entry(command, tz_name),
    ]
