"""CSV source adapter for the precomputed Seller Quality table."""

from __future__ import annotations

import csv
from pathlib import Path

from skills.seller_quality.quality_table import QUALITY_COLUMNS, encode_row
from skills.seller_quality.types import DataAccessError, SellerSnapshot


def load_quality_rows(csv_path: str, header_row_count: int = 1) -> list[list[str]]:
    path = Path(csv_path).expanduser().resolve()
    if not path.exists():
        raise DataAccessError(f"Quality table CSV not found: {path}")

    with path.open("r", encoding="utf-8-sig", newline="") as f:
        rows = [row for row in csv.reader(f) if any(cell.strip() for cell in row)]
    return rows[header_row_count:]


def write_quality_table(csv_path: str, snapshots: list[SellerSnapshot]) -> str:
    out = Path(csv_path).expanduser().resolve()
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(QUALITY_COLUMNS)
        writer.writerows(encode_row(s) for s in snapshots)
    return str(out)
