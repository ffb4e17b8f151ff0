"""Sheet-backed tables: one CSV per table locally, or worksheets in a Google Sheet."""

from __future__ import annotations

import csv
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Optional, Protocol

from skills.seller_quality.config import QualityConfig
from skills.seller_quality.types import DataAccessError

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


class TableStore(Protocol):
    def read_rows(self, name: str) -> Optional[list[list[str]]]:
        """All rows including the header, or None when the table does not exist."""

    def ensure_table(self, name: str, header: list[str]) -> None: ...

    def append_row(self, name: str, row: list[Any]) -> None: ...

    def update_cell(self, name: str, row_index: int, col_index: int, value: Any) -> None:
        """Set one cell; indexes are 0-based and count the header as row 0."""


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    return str(value)


def _safe_table_name(name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_.-]", "_", name.strip().lower())


class MemoryTableStore:
    """Process-local tables, used for dry runs."""

    def __init__(self, tables: Optional[dict[str, list[list[str]]]] = None) -> None:
        self.tables: dict[str, list[list[str]]] = tables if tables is not None else {}

    def read_rows(self, name: str) -> Optional[list[list[str]]]:
        rows = self.tables.get(name)
        return [list(row) for row in rows] if rows is not None else None

    def ensure_table(self, name: str, header: list[str]) -> None:
        self.tables.setdefault(name, [list(header)])

    def append_row(self, name: str, row: list[Any]) -> None:
        if name not in self.tables:
            raise DataAccessError(f"Table {name!r} does not exist")
        self.tables[name].append([_cell_text(v) for v in row])

    def update_cell(self, name: str, row_index: int, col_index: int, value: Any) -> None:
        rows = self.tables.get(name)
        if rows is None:
            raise DataAccessError(f"Table {name!r} does not exist")
        if row_index >= len(rows):
            raise DataAccessError(f"Table {name!r} has no row {row_index}")
        row = rows[row_index]
        if col_index >= len(row):
            row.extend([""] * (col_index + 1 - len(row)))
        row[col_index] = _cell_text(value)


class CsvTableStore:
    def __init__(self, root_dir: str) -> None:
        self.root = Path(root_dir).expanduser().resolve()

    def path_for(self, name: str) -> Path:
        return self.root / f"{_safe_table_name(name)}.csv"

    def read_rows(self, name: str) -> Optional[list[list[str]]]:
        path = self.path_for(name)
        if not path.exists():
            return None
        with path.open("r", encoding="utf-8-sig", newline="") as f:
            return [row for row in csv.reader(f)]

    def ensure_table(self, name: str, header: list[str]) -> None:
        path = self.path_for(name)
        if path.exists():
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8", newline="") as f:
            csv.writer(f).writerow(header)

    def append_row(self, name: str, row: list[Any]) -> None:
        path = self.path_for(name)
        if not path.exists():
            raise DataAccessError(f"Table {name!r} does not exist: {path}")
        with path.open("a", encoding="utf-8", newline="") as f:
            csv.writer(f).writerow([_cell_text(v) for v in row])

    def update_cell(self, name: str, row_index: int, col_index: int, value: Any) -> None:
        rows = self.read_rows(name)
        if rows is None:
            raise DataAccessError(f"Table {name!r} does not exist")
        if row_index >= len(rows):
            raise DataAccessError(f"Table {name!r} has no row {row_index}")
        row = rows[row_index]
        if col_index >= len(row):
            row.extend([""] * (col_index + 1 - len(row)))
        row[col_index] = _cell_text(value)

        path = self.path_for(name)
        fd, tmp_name = tempfile.mkstemp(prefix=".tmp_", suffix=".csv", dir=str(path.parent))
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            csv.writer(f).writerows(rows)
        os.replace(tmp_name, path)


class SheetsTableStore:
    def __init__(self, spreadsheet: Any) -> None:
        self.spreadsheet = spreadsheet
        self._worksheets: dict[str, Any] = {}

    def _call(self, name: str, fn: Any, *args: Any, **kwargs: Any) -> Any:
        import gspread

        try:
            return fn(*args, **kwargs)
        except gspread.exceptions.APIError as exc:
            # Quota (429) and backend errors surface as row-level data errors.
            raise DataAccessError(f"Sheets API error on {name!r}: {exc}") from exc

    def _worksheet(self, name: str) -> Optional[Any]:
        if name in self._worksheets:
            return self._worksheets[name]
        import gspread

        try:
            ws = self._call(name, self.spreadsheet.worksheet, name)
        except gspread.exceptions.WorksheetNotFound:
            return None
        self._worksheets[name] = ws
        return ws

    def read_rows(self, name: str) -> Optional[list[list[str]]]:
        ws = self._worksheet(name)
        if ws is None:
            return None
        return self._call(name, ws.get_all_values)

    def ensure_table(self, name: str, header: list[str]) -> None:
        if self._worksheet(name) is not None:
            return
        ws = self._call(name, self.spreadsheet.add_worksheet, title=name, rows=1000, cols=len(header))
        self._call(name, ws.append_row, header, value_input_option="RAW")
        self._worksheets[name] = ws

    def append_row(self, name: str, row: list[Any]) -> None:
        ws = self._worksheet(name)
        if ws is None:
            raise DataAccessError(f"Worksheet {name!r} does not exist")
        # RAW keeps seller IDs as text instead of letting Sheets coerce them to numbers.
        self._call(name, ws.append_row, [_cell_text(v) for v in row], value_input_option="RAW")

    def update_cell(self, name: str, row_index: int, col_index: int, value: Any) -> None:
        ws = self._worksheet(name)
        if ws is None:
            raise DataAccessError(f"Worksheet {name!r} does not exist")
        self._call(name, ws.update_cell, row_index + 1, col_index + 1, _cell_text(value))


def open_spreadsheet(config: QualityConfig) -> Any:
    if not config.spreadsheet_id:
        raise DataAccessError("QUALITY_SPREADSHEET_ID is not configured")
    try:
        import gspread
    except ImportError as exc:
        raise RuntimeError("Missing Google Sheets dependencies. Install gspread") from exc

    credentials = Path(config.service_account_file).expanduser().resolve()
    if not credentials.exists():
        raise DataAccessError(f"Service account file not found: {credentials}")
    client = gspread.service_account(filename=str(credentials), scopes=SHEETS_SCOPES)
    try:
        return client.open_by_key(config.spreadsheet_id)
    except gspread.exceptions.SpreadsheetNotFound as exc:
        raise DataAccessError(f"Spreadsheet not found: {config.spreadsheet_id}") from exc


def open_table_store(config: QualityConfig) -> TableStore:
    if config.table_backend == "sheets":
        return SheetsTableStore(open_spreadsheet(config))
    return CsvTableStore(config.data_dir)
