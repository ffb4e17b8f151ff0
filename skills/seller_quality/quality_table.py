"""Positional codec for the "Seller Quality" table."""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Optional

from skills.seller_quality.types import Action, DataAccessError, Label, SellerSnapshot

QUALITY_COLUMNS = [
    "DATE_KPI",
    "TIME_PERIOD",
    "SELLER_ID",
    "SELLER_NAME",
    "SELLER_OWNER_NAME",
    "SELLER_TIERING",
    "TYPE_OF_ACTIVITY",
    "DEFECTIVE_RATE_30D",
    "NB_DEFECTIVE_30D",
    "CONSECUTIVE_DEFECTIVE_WEEKS",
    "DEFECTIVE_30D_LABEL",
    "DEFECTIVE_EMAIL_ACTION",
    "APPEARANCE_ISSUE_RATE_30D",
    "NB_APPEARANCE_ISSUE_30D",
    "CONSECUTIVE_APPEARANCE_WEEKS",
    "APPEARANCE_ISSUE_LABEL",
    "APPEARANCE_EMAIL_ACTION",
    "WEEK_NUMBER",
    "FINAL_EMAIL_ACTION",
    "EMAIL",
]

COL = {name: idx for idx, name in enumerate(QUALITY_COLUMNS)}

_INTEGRAL_FLOAT = re.compile(r"^-?\d+\.0+$")


def normalize_seller_id(value: Any) -> str:
    """Canonical string form for seller IDs coming from sheets, CSV or URLs."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    text = str(value).strip()
    if _INTEGRAL_FLOAT.match(text):
        return text.split(".", 1)[0]
    return text


def _cell(row: list[Any], name: str) -> Any:
    value = row[COL[name]]
    return value.strip() if isinstance(value, str) else value


def _to_float(raw: Any, column: str) -> float:
    if raw is None or raw == "":
        return 0.0
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return float(raw)
    text = str(raw).strip().replace(",", "")
    try:
        if text.endswith("%"):
            return round(float(text[:-1]) / 100.0, 6)
        return float(text)
    except ValueError as exc:
        raise DataAccessError(f"{column} is not a number: {raw!r}") from exc


def _to_int(raw: Any, column: str) -> int:
    value = _to_float(raw, column)
    if not value.is_integer():
        raise DataAccessError(f"{column} must be a whole number: {raw!r}")
    return int(value)


def _to_date(raw: Any) -> Optional[date]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    text = str(raw).strip().replace("/", "-")
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def _parse_enum(parser, raw: Any, column: str):
    try:
        return parser(raw)
    except ValueError as exc:
        raise DataAccessError(f"{column}: {exc}") from exc


def decode_row(row: list[Any]) -> SellerSnapshot:
    if len(row) < len(QUALITY_COLUMNS):
        raise DataAccessError(f"Not enough columns ({len(row)} found, {len(QUALITY_COLUMNS)} expected)")

    seller_id = normalize_seller_id(_cell(row, "SELLER_ID"))
    if not seller_id:
        raise DataAccessError("SELLER_ID is empty")

    return SellerSnapshot(
        seller_id=seller_id,
        seller_name=str(_cell(row, "SELLER_NAME") or ""),
        owner_name=str(_cell(row, "SELLER_OWNER_NAME") or ""),
        tier=str(_cell(row, "SELLER_TIERING") or ""),
        activity_type=str(_cell(row, "TYPE_OF_ACTIVITY") or ""),
        defective_rate=_to_float(_cell(row, "DEFECTIVE_RATE_30D"), "DEFECTIVE_RATE_30D"),
        defective_count=_to_int(_cell(row, "NB_DEFECTIVE_30D"), "NB_DEFECTIVE_30D"),
        defective_streak=_to_int(_cell(row, "CONSECUTIVE_DEFECTIVE_WEEKS"), "CONSECUTIVE_DEFECTIVE_WEEKS"),
        defective_label=_parse_enum(Label.parse, _cell(row, "DEFECTIVE_30D_LABEL"), "DEFECTIVE_30D_LABEL"),
        defective_action=_parse_enum(Action.parse, _cell(row, "DEFECTIVE_EMAIL_ACTION"), "DEFECTIVE_EMAIL_ACTION"),
        appearance_rate=_to_float(_cell(row, "APPEARANCE_ISSUE_RATE_30D"), "APPEARANCE_ISSUE_RATE_30D"),
        appearance_count=_to_int(_cell(row, "NB_APPEARANCE_ISSUE_30D"), "NB_APPEARANCE_ISSUE_30D"),
        appearance_streak=_to_int(_cell(row, "CONSECUTIVE_APPEARANCE_WEEKS"), "CONSECUTIVE_APPEARANCE_WEEKS"),
        appearance_label=_parse_enum(Label.parse, _cell(row, "APPEARANCE_ISSUE_LABEL"), "APPEARANCE_ISSUE_LABEL"),
        appearance_action=_parse_enum(
            Action.parse, _cell(row, "APPEARANCE_EMAIL_ACTION"), "APPEARANCE_EMAIL_ACTION"
        ),
        final_action=_parse_enum(Action.parse, _cell(row, "FINAL_EMAIL_ACTION"), "FINAL_EMAIL_ACTION"),
        email=str(_cell(row, "EMAIL") or ""),
        week_number=str(_cell(row, "WEEK_NUMBER") or ""),
        date_kpi=_to_date(_cell(row, "DATE_KPI")),
        time_period=str(_cell(row, "TIME_PERIOD") or ""),
    )


def encode_row(snapshot: SellerSnapshot) -> list[str]:
    values = {
        "DATE_KPI": snapshot.date_kpi.isoformat() if snapshot.date_kpi else "",
        "TIME_PERIOD": snapshot.time_period,
        "SELLER_ID": snapshot.seller_id,
        "SELLER_NAME": snapshot.seller_name,
        "SELLER_OWNER_NAME": snapshot.owner_name,
        "SELLER_TIERING": snapshot.tier,
        "TYPE_OF_ACTIVITY": snapshot.activity_type,
        "DEFECTIVE_RATE_30D": f"{snapshot.defective_rate:.6f}",
        "NB_DEFECTIVE_30D": str(snapshot.defective_count),
        "CONSECUTIVE_DEFECTIVE_WEEKS": str(snapshot.defective_streak),
        "DEFECTIVE_30D_LABEL": snapshot.defective_label.value,
        "DEFECTIVE_EMAIL_ACTION": snapshot.defective_action.value,
        "APPEARANCE_ISSUE_RATE_30D": f"{snapshot.appearance_rate:.6f}",
        "NB_APPEARANCE_ISSUE_30D": str(snapshot.appearance_count),
        "CONSECUTIVE_APPEARANCE_WEEKS": str(snapshot.appearance_streak),
        "APPEARANCE_ISSUE_LABEL": snapshot.appearance_label.value,
        "APPEARANCE_EMAIL_ACTION": snapshot.appearance_action.value,
        "WEEK_NUMBER": snapshot.week_number,
        "FINAL_EMAIL_ACTION": snapshot.final_action.value,
        "EMAIL": snapshot.email,
    }
    return [values[name] for name in QUALITY_COLUMNS]
