"""Seller quality tracking web app."""

from __future__ import annotations

import base64
import html
import os
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, PlainTextResponse, Response
from pydantic import BaseModel

from skills.seller_quality.config import QualityConfig, load_config
from skills.seller_quality.reporting.email_stats import compute_email_stats
from skills.seller_quality.tables import TableStore, open_table_store
from skills.seller_quality.tracking import ResponseStore, SellerHistory, TrackingStore, seller_history
from skills.seller_quality.types import EmailType

# 1x1 transparent GIF89a.
PIXEL_GIF = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")


class StatusUpdateRequest(BaseModel):
    seller_id: str
    email_type: str
    status: str
    notes: str = ""


class EmailStatsResponse(BaseModel):
    total_emails: int
    opened_emails: int
    open_rate: str
    total_views: int
    average_views: str
    last_week_emails: int
    last_week_opened: int
    last_week_open_rate: str
    error: Optional[str] = None


app = FastAPI(title="Seller Quality Tracking", version="0.1.0")

allowed_origins_raw = os.getenv("ALLOWED_ORIGINS", "*").strip()
if allowed_origins_raw == "*" or not allowed_origins_raw:
    allowed_origins = ["*"]
else:
    allowed_origins = [item.strip() for item in allowed_origins_raw.split(",") if item.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


def _config() -> QualityConfig:
    return load_config()


def _store(config: QualityConfig) -> TableStore:
    return open_table_store(config)


def _now(config: QualityConfig) -> datetime:
    return datetime.now(ZoneInfo(config.timezone))


def _pixel_response() -> Response:
    return Response(
        content=PIXEL_GIF,
        media_type="image/gif",
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )


def _html_page(title: str, body: str, status_code: int = 200) -> HTMLResponse:
    page = (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{html.escape(title)}</title>"
        "<style>body{font-family:Arial,sans-serif;margin:24px;}"
        "table{border-collapse:collapse;margin-bottom:24px;}"
        "th,td{border:1px solid #ccc;padding:6px 10px;text-align:left;}"
        "th{background:#f3f4f6;}</style></head><body>"
        f"<h2>{html.escape(title)}</h2>{body}</body></html>"
    )
    return HTMLResponse(content=page, status_code=status_code)


def _table(headers: list[str], rows: list[list[object]]) -> str:
    head = "".join(f"<th>{html.escape(h)}</th>" for h in headers)
    body = "".join(
        "<tr>" + "".join(f"<td>{html.escape(str(cell))}</td>" for cell in row) + "</tr>" for row in rows
    )
    return f"<table><tr>{head}</tr>{body}</table>"


def _history_html(history: SellerHistory) -> str:
    parts: list[str] = []
    if history.tracking:
        parts.append("<h3>Email Tracking</h3>")
        parts.append(
            _table(
                ["Tracking ID", "Email", "Email Type", "Send Date", "Open Date", "Opened", "Views"],
                [
                    [r.tracking_id, r.email, r.email_type, r.send_timestamp, r.open_timestamp,
                     "Yes" if r.opened else "No", r.view_count]
                    for r in history.tracking
                ],
            )
        )
    for email_type, records in history.responses.items():
        parts.append(f"<h3>{html.escape(email_type)}</h3>")
        parts.append(
            _table(
                ["Week", "Send Date", "Defective", "Appearance", "Response Date", "Status", "Notes"],
                [
                    [
                        r.week_number,
                        r.send_timestamp,
                        f"{r.defective_rate * 100:.2f}% ({r.defective_streak}w {r.defective_label})",
                        f"{r.appearance_rate * 100:.2f}% ({r.appearance_streak}w {r.appearance_label})",
                        r.response_timestamp,
                        r.resolution_status,
                        r.notes,
                    ]
                    for r in records
                ],
            )
        )
    return "".join(parts)


def _handle_open(tracking_id: str) -> Response:
    # The pixel must render whatever happens to the bookkeeping.
    try:
        config = _config()
        outcome = TrackingStore(_store(config), config).record_open(tracking_id, _now(config))
        print(f"[OPEN] tracking_id={tracking_id} result={outcome.value}", flush=True)
    except Exception as exc:  # noqa: BLE001
        print(f"[OPEN ERROR] tracking_id={tracking_id} error={exc}", flush=True)
    return _pixel_response()


def _handle_update(seller_id: str, email_type_raw: str, status: str, notes: str) -> HTMLResponse:
    if not seller_id.strip():
        return _html_page("Invalid request", "<p>sellerId is required.</p>", 400)
    try:
        email_type = EmailType.parse(email_type_raw)
    except ValueError as exc:
        return _html_page("Invalid request", f"<p>{html.escape(str(exc))}</p>", 400)
    if not status.strip():
        return _html_page("Invalid request", "<p>status is required.</p>", 400)

    config = _config()
    result = ResponseStore(_store(config), config).update_status(
        seller_id=seller_id,
        email_type=email_type,
        status=status,
        notes=notes,
        now=_now(config),
    )
    print(f"[RESPONSE UPDATE] seller_id={result.seller_id} email_type={result.email_type} found={result.found}", flush=True)
    if not result.found:
        return _html_page("Not found", f"<p>{html.escape(result.message)}</p>", 404)
    record = result.record
    body = (
        f"<p>{html.escape(result.message)}</p>"
        f"<p>Seller: {html.escape(record.seller_name if record else '')} ({html.escape(result.seller_id)})</p>"
        f"<p>Response date: {html.escape(record.response_timestamp if record else '')}</p>"
    )
    return _html_page("Response recorded", body)


def _handle_history(seller_id: str) -> HTMLResponse:
    if not seller_id.strip():
        return _html_page("Invalid request", "<p>sellerId is required.</p>", 400)
    config = _config()
    store = _store(config)
    history = seller_history(TrackingStore(store, config), ResponseStore(store, config), seller_id)
    if not history.found:
        return _html_page(
            f"Seller {history.seller_id}",
            f"<p>No records found for seller {html.escape(history.seller_id)}.</p>",
            404,
        )
    return _html_page(f"Seller {history.seller_id}", _history_html(history))


@app.get("/")
def web_app(
    action: str = Query(default=""),
    id: str = Query(default=""),
    sellerId: str = Query(default=""),
    emailType: str = Query(default=""),
    status: str = Query(default=""),
    notes: str = Query(default=""),
) -> Response:
    if action == "open":
        return _handle_open(id)
    if action == "updateResponse":
        return _handle_update(sellerId, emailType, status, notes)
    if action == "viewHistory":
        return _handle_history(sellerId)
    return PlainTextResponse("Invalid request", status_code=400)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/stats", response_model=EmailStatsResponse)
def email_stats() -> dict[str, object]:
    config = _config()
    stats = compute_email_stats(TrackingStore(_store(config), config), _now(config))
    return stats.to_dict()


@app.post("/api/responses")
def update_response(payload: StatusUpdateRequest) -> dict[str, object]:
    try:
        email_type = EmailType.parse(payload.email_type)
        config = _config()
        result = ResponseStore(_store(config), config).update_status(
            seller_id=payload.seller_id,
            email_type=email_type,
            status=payload.status,
            notes=payload.notes,
            now=_now(config),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if not result.found:
        raise HTTPException(status_code=404, detail=result.message)
    return {"ok": True, "message": result.message, "seller_id": result.seller_id, "email_type": result.email_type}
