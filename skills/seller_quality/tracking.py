"""Email open tracking and seller response tables."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo

from skills.seller_quality.config import QualityConfig
from skills.seller_quality.quality_table import normalize_seller_id
from skills.seller_quality.tables import TableStore
from skills.seller_quality.types import (
    EmailType,
    ResponseRecord,
    ResponseStatus,
    SellerSnapshot,
    TrackingRecord,
)

TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S"

TRACKING_HEADER = ["Tracking ID", "Email", "Seller ID", "Email Type", "Send Date", "Open Date", "Opened", "Views"]
T_ID, T_EMAIL, T_SELLER, T_TYPE, T_SENT, T_OPEN_DATE, T_OPENED, T_VIEWS = range(len(TRACKING_HEADER))

RESPONSE_HEADER = [
    "Seller ID",
    "Seller Name",
    "Defective Rate",
    "Defective Streak",
    "Defective Label",
    "Appearance Rate",
    "Appearance Streak",
    "Appearance Label",
    "Week Number",
    "Send Date",
    "Response Date",
    "Response Received",
    "Resolution Status",
    "Notes",
]
R_SELLER = 0
R_SENT = 9
R_RESPONSE_DATE = 10
R_RECEIVED = 11
R_STATUS = 12
R_NOTES = 13


class OpenResult(str, Enum):
    FIRST_OPEN = "first_open"
    REPEAT_VIEW = "repeat_view"
    NOT_FOUND = "not_found"


@dataclass(slots=True)
class UpdateResult:
    found: bool
    seller_id: str
    email_type: str
    message: str
    record: Optional[ResponseRecord] = None


@dataclass(slots=True)
class SellerHistory:
    seller_id: str
    tracking: list[TrackingRecord] = field(default_factory=list)
    responses: dict[str, list[ResponseRecord]] = field(default_factory=dict)

    @property
    def found(self) -> bool:
        return bool(self.tracking) or any(self.responses.values())


def format_timestamp(moment: datetime, tz_name: str) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=ZoneInfo(tz_name))
    return moment.astimezone(ZoneInfo(tz_name)).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(raw: str, tz_name: str) -> Optional[datetime]:
    text = (raw or "").strip()
    if not text:
        return None
    for fmt in (TIMESTAMP_FORMAT, "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S"):
        try:
            return datetime.strptime(text[:19], fmt).replace(tzinfo=ZoneInfo(tz_name))
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=ZoneInfo(tz_name))


def parse_status(raw: str) -> str:
    text = (raw or "").strip()
    if not text:
        raise ValueError("status is required")
    key = text.lower().replace("-", "_").replace(" ", "_")
    known = {
        "resolved": ResponseStatus.RESOLVED,
        "in_progress": ResponseStatus.IN_PROGRESS,
        "inprogress": ResponseStatus.IN_PROGRESS,
        "pending": ResponseStatus.PENDING,
    }
    if key in known:
        return known[key].value
    return text


def _get(row: list[str], idx: int) -> str:
    return str(row[idx]).strip() if idx < len(row) else ""


def _to_int(raw: str) -> int:
    try:
        return int(float(raw)) if raw else 0
    except ValueError:
        return 0


def _to_float(raw: str) -> float:
    try:
        return float(raw) if raw else 0.0
    except ValueError:
        return 0.0


def _tracking_from_row(row: list[str]) -> TrackingRecord:
    return TrackingRecord(
        tracking_id=_get(row, T_ID),
        email=_get(row, T_EMAIL),
        seller_id=normalize_seller_id(_get(row, T_SELLER)),
        email_type=_get(row, T_TYPE),
        send_timestamp=_get(row, T_SENT),
        open_timestamp=_get(row, T_OPEN_DATE),
        opened=_get(row, T_OPENED).lower() == "yes",
        view_count=_to_int(_get(row, T_VIEWS)),
    )


def _response_from_row(row: list[str]) -> ResponseRecord:
    return ResponseRecord(
        seller_id=normalize_seller_id(_get(row, R_SELLER)),
        seller_name=_get(row, 1),
        defective_rate=_to_float(_get(row, 2)),
        defective_streak=_to_int(_get(row, 3)),
        defective_label=_get(row, 4),
        appearance_rate=_to_float(_get(row, 5)),
        appearance_streak=_to_int(_get(row, 6)),
        appearance_label=_get(row, 7),
        week_number=_get(row, 8),
        send_timestamp=_get(row, R_SENT),
        response_timestamp=_get(row, R_RESPONSE_DATE),
        response_received=_get(row, R_RECEIVED).lower() == "yes",
        resolution_status=_get(row, R_STATUS) or ResponseStatus.PENDING.value,
        notes=_get(row, R_NOTES),
    )


class TrackingStore:
    def __init__(self, store: TableStore, config: QualityConfig) -> None:
        self.store = store
        self.config = config
        self.sheet_name = config.tracking_sheet_name

    @staticmethod
    def new_tracking_id() -> str:
        return str(uuid.uuid4())

    def record_send(
        self,
        *,
        tracking_id: str,
        email: str,
        seller_id: str,
        email_type: EmailType,
        now: datetime,
    ) -> TrackingRecord:
        record = TrackingRecord(
            tracking_id=tracking_id,
            email=email,
            seller_id=normalize_seller_id(seller_id),
            email_type=email_type.value,
            send_timestamp=format_timestamp(now, self.config.timezone),
        )
        self.store.ensure_table(self.sheet_name, TRACKING_HEADER)
        self.store.append_row(
            self.sheet_name,
            [
                record.tracking_id,
                record.email,
                record.seller_id,
                record.email_type,
                record.send_timestamp,
                "",
                "No",
                0,
            ],
        )
        return record

    def _rows(self) -> list[list[str]]:
        rows = self.store.read_rows(self.sheet_name)
        return rows or []

    def records(self) -> list[TrackingRecord]:
        return [_tracking_from_row(row) for row in self._rows()[1:] if _get(row, T_ID)]

    def find(self, tracking_id: str) -> Optional[TrackingRecord]:
        wanted = (tracking_id or "").strip()
        for record in self.records():
            if record.tracking_id == wanted:
                return record
        return None

    def record_open(self, tracking_id: str, now: datetime) -> OpenResult:
        wanted = (tracking_id or "").strip()
        if not wanted:
            return OpenResult.NOT_FOUND
        rows = self._rows()
        for idx, row in enumerate(rows[1:], start=1):
            if _get(row, T_ID) != wanted:
                continue
            if _get(row, T_OPENED).lower() != "yes":
                self.store.update_cell(self.sheet_name, idx, T_OPEN_DATE, format_timestamp(now, self.config.timezone))
                self.store.update_cell(self.sheet_name, idx, T_OPENED, "Yes")
                return OpenResult.FIRST_OPEN
            views = _to_int(_get(row, T_VIEWS))
            self.store.update_cell(self.sheet_name, idx, T_VIEWS, views + 1)
            return OpenResult.REPEAT_VIEW
        return OpenResult.NOT_FOUND

    def for_seller(self, seller_id: str) -> list[TrackingRecord]:
        wanted = normalize_seller_id(seller_id)
        return [r for r in self.records() if r.seller_id == wanted]


class ResponseStore:
    def __init__(self, store: TableStore, config: QualityConfig) -> None:
        self.store = store
        self.config = config

    def sheet_name(self, email_type: EmailType) -> str:
        return self.config.response_sheet_name(email_type.value)

    def record_pending(self, snapshot: SellerSnapshot, email_type: EmailType, now: datetime) -> ResponseRecord:
        record = ResponseRecord(
            seller_id=normalize_seller_id(snapshot.seller_id),
            seller_name=snapshot.seller_name,
            defective_rate=snapshot.defective_rate,
            defective_streak=snapshot.defective_streak,
            defective_label=snapshot.defective_label.value,
            appearance_rate=snapshot.appearance_rate,
            appearance_streak=snapshot.appearance_streak,
            appearance_label=snapshot.appearance_label.value,
            week_number=snapshot.week_number,
            send_timestamp=format_timestamp(now, self.config.timezone),
        )
        name = self.sheet_name(email_type)
        self.store.ensure_table(name, RESPONSE_HEADER)
        self.store.append_row(
            name,
            [
                record.seller_id,
                record.seller_name,
                f"{record.defective_rate:.6f}",
                record.defective_streak,
                record.defective_label,
                f"{record.appearance_rate:.6f}",
                record.appearance_streak,
                record.appearance_label,
                record.week_number,
                record.send_timestamp,
                "",
                "No",
                record.resolution_status,
                "",
            ],
        )
        return record

    def records(self, email_type: EmailType) -> list[ResponseRecord]:
        rows = self.store.read_rows(self.sheet_name(email_type)) or []
        return [_response_from_row(row) for row in rows[1:] if _get(row, R_SELLER)]

    def update_status(
        self,
        *,
        seller_id: str,
        email_type: EmailType,
        status: str,
        notes: str = "",
        now: datetime,
    ) -> UpdateResult:
        resolved_status = parse_status(status)
        wanted = normalize_seller_id(seller_id)
        name = self.sheet_name(email_type)
        rows = self.store.read_rows(name)
        if rows is None:
            return UpdateResult(False, wanted, email_type.value, f'Response sheet "{name}" not found')

        # Latest send wins when a seller has been warned more than once at this tier.
        match_idx = None
        for idx, row in enumerate(rows[1:], start=1):
            if normalize_seller_id(_get(row, R_SELLER)) == wanted:
                match_idx = idx
        if match_idx is None:
            return UpdateResult(False, wanted, email_type.value, f"Seller ID {wanted} not found in {name}")

        stamp = format_timestamp(now, self.config.timezone)
        self.store.update_cell(name, match_idx, R_RESPONSE_DATE, stamp)
        self.store.update_cell(name, match_idx, R_RECEIVED, "Yes")
        self.store.update_cell(name, match_idx, R_STATUS, resolved_status)
        self.store.update_cell(name, match_idx, R_NOTES, notes or "")

        record = _response_from_row(rows[match_idx])
        record.response_timestamp = stamp
        record.response_received = True
        record.resolution_status = resolved_status
        record.notes = notes or ""
        return UpdateResult(
            True,
            wanted,
            email_type.value,
            f"Response status for seller {wanted} updated to {resolved_status}",
            record,
        )

    def for_seller(self, seller_id: str) -> dict[str, list[ResponseRecord]]:
        wanted = normalize_seller_id(seller_id)
        out: dict[str, list[ResponseRecord]] = {}
        for email_type in EmailType:
            matches = [r for r in self.records(email_type) if r.seller_id == wanted]
            if matches:
                out[email_type.value] = matches
        return out


def seller_history(tracking: TrackingStore, responses: ResponseStore, seller_id: str) -> SellerHistory:
    wanted = normalize_seller_id(seller_id)
    return SellerHistory(
        seller_id=wanted,
        tracking=tracking.for_seller(wanted),
        responses=responses.for_seller(wanted),
    )
