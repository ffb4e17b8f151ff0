"""Read the precomputed Seller Quality table from a table store (Google Sheets in production)."""

from __future__ import annotations

from skills.seller_quality.tables import TableStore
from skills.seller_quality.types import DataAccessError


def load_quality_rows(store: TableStore, sheet_name: str, header_row_count: int = 1) -> list[list[str]]:
    rows = store.read_rows(sheet_name)
    if rows is None:
        raise DataAccessError(f'Sheet "{sheet_name}" not found')
    rows = [row for row in rows if any(str(cell).strip() for cell in row)]
    print(f"Retrieved {len(rows)} rows from sheet \"{sheet_name}\"", flush=True)
    return rows[header_row_count:]
