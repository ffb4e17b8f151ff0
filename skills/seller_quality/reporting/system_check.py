"""Operator self-test: table access, templates, timezone, mail transport."""

from __future__ import annotations

from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from skills.seller_quality.config import QualityConfig
from skills.seller_quality.quality_table import COL, QUALITY_COLUMNS
from skills.seller_quality.tables import TableStore
from skills.seller_quality.templates import TEMPLATE_FILES, TemplateRenderer

OK = "✓"
FAIL = "✗"


def _count_issue_rows(rows: list[list[str]], header_row_count: int) -> tuple[int, int]:
    issues = 0
    with_email = 0
    for row in rows[header_row_count:]:
        if len(row) < len(QUALITY_COLUMNS):
            continue
        has_issue = bool(str(row[COL["DEFECTIVE_30D_LABEL"]]).strip()) or bool(
            str(row[COL["APPEARANCE_ISSUE_LABEL"]]).strip()
        )
        if has_issue:
            issues += 1
            if str(row[COL["EMAIL"]]).strip():
                with_email += 1
    return issues, with_email


def run_system_check(
    config: QualityConfig,
    *,
    open_store: Callable[[QualityConfig], TableStore],
    renderer: TemplateRenderer,
    mail_check: Callable[[QualityConfig], tuple[bool, str]],
) -> list[str]:
    lines: list[str] = []

    store: Optional[TableStore] = None
    try:
        store = open_store(config)
        lines.append(f"{OK} Table store access OK: backend={config.table_backend}")
    except Exception as exc:  # noqa: BLE001
        lines.append(f"{FAIL} Table store access failed: {exc}")

    if store is not None:
        rows = store.read_rows(config.quality_sheet_name)
        if rows is None:
            lines.append(f'{FAIL} Quality sheet not found: "{config.quality_sheet_name}"')
        else:
            lines.append(f'{OK} Quality sheet access OK: "{config.quality_sheet_name}"')
            lines.append(f"{OK} Data access OK: {len(rows)} rows retrieved")
            if len(rows) > config.header_row_count:
                issues, with_email = _count_issue_rows(rows, config.header_row_count)
                lines.append(f"{issues} rows with quality issues found ({with_email} with emails)")

    for email_type, error in renderer.check_all().items():
        name = TEMPLATE_FILES[email_type]
        if error is None:
            lines.append(f'{OK} Email template access OK: "{name}"')
        else:
            lines.append(f'{FAIL} Email template access failed: "{name}" ({error})')

    try:
        ZoneInfo(config.timezone)
        lines.append(f'{OK} Using timezone: "{config.timezone}"')
    except (ZoneInfoNotFoundError, ValueError):
        lines.append(f'{FAIL} Unknown timezone: "{config.timezone}"')

    ok, message = mail_check(config)
    lines.append(f"{OK if ok else FAIL} {message}")
    return lines


def system_check_passed(lines: list[str]) -> bool:
    return not any(line.startswith(FAIL) for line in lines)
