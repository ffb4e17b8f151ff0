"""CSV adapters for raw KPI history, the seller directory and seller contacts."""

from __future__ import annotations

import csv
from datetime import date
from pathlib import Path
from typing import Any

from skills.seller_quality.quality_table import normalize_seller_id
from skills.seller_quality.types import DataAccessError
from skills.seller_quality.weekly import KpiRow, SellerInfo


def _read_dict_rows(csv_path: str, required: list[str]) -> list[dict[str, Any]]:
    path = Path(csv_path).expanduser().resolve()
    if not path.exists():
        raise DataAccessError(f"CSV file not found: {path}")
    with path.open("r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        header = [h.strip().upper() for h in (reader.fieldnames or [])]
        missing = [col for col in required if col not in header]
        if missing:
            raise DataAccessError(f"{path.name} is missing columns: {', '.join(missing)}")
        return [{(k or "").strip().upper(): (v or "").strip() for k, v in row.items()} for row in reader]


def _count(raw: str) -> int:
    if not raw:
        return 0
    try:
        return int(float(raw))
    except ValueError:
        return 0


def load_kpi_rows(csv_path: str) -> list[KpiRow]:
    out: list[KpiRow] = []
    rows = _read_dict_rows(
        csv_path,
        ["DATE_KPI", "MARKET", "SELLER_ID", "NB_DEFECTIVE_ISSUE", "NB_APPEARANCE_ISSUE", "NB_ORDERLINE_DELIVERED_30D"],
    )
    for row in rows:
        try:
            d = date.fromisoformat(row["DATE_KPI"][:10])
        except ValueError:
            continue
        seller_id = normalize_seller_id(row["SELLER_ID"])
        if not seller_id:
            continue
        out.append(
            KpiRow(
                date_kpi=d,
                market=row["MARKET"],
                seller_id=seller_id,
                defective_issues=_count(row["NB_DEFECTIVE_ISSUE"]),
                appearance_issues=_count(row["NB_APPEARANCE_ISSUE"]),
                delivered=_count(row["NB_ORDERLINE_DELIVERED_30D"]),
            )
        )
    return out


def load_sellers(csv_path: str) -> dict[str, SellerInfo]:
    out: dict[str, SellerInfo] = {}
    for row in _read_dict_rows(csv_path, ["SELLER_ID", "SELLER_NAME"]):
        seller_id = normalize_seller_id(row["SELLER_ID"])
        if not seller_id:
            continue
        out[seller_id] = SellerInfo(
            seller_id=seller_id,
            seller_name=row.get("SELLER_NAME", ""),
            owner_name=row.get("SELLER_OWNER_NAME", ""),
            tier=row.get("SELLER_TIERING", ""),
            activity_type=row.get("TYPE_OF_ACTIVITY", ""),
        )
    return out


def load_contacts(csv_path: str) -> dict[str, str]:
    out: dict[str, str] = {}
    for row in _read_dict_rows(csv_path, ["SELLER_ID", "EMAIL"]):
        seller_id = normalize_seller_id(row["SELLER_ID"])
        if seller_id and row["EMAIL"]:
            out[seller_id] = row["EMAIL"]
    return out
