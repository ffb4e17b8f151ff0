from datetime import datetime
from zoneinfo import ZoneInfo

from fastapi.testclient import TestClient

import api.server as server
from skills.seller_quality.config import QualityConfig
from skills.seller_quality.quality_table import decode_row
from skills.seller_quality.sources.sample_source import load_sample_rows
from skills.seller_quality.tables import MemoryTableStore
from skills.seller_quality.tracking import ResponseStore, TrackingStore
from skills.seller_quality.types import EmailType

NOW = datetime(2025, 6, 2, 9, 0, tzinfo=ZoneInfo("Asia/Tokyo"))


def _client(monkeypatch, store: MemoryTableStore) -> TestClient:
    config = QualityConfig()
    monkeypatch.setattr(server, "_config", lambda: config)
    monkeypatch.setattr(server, "_store", lambda _config: store)
    monkeypatch.setattr(server, "_now", lambda _config: NOW)
    return TestClient(server.app)


def _seeded_store() -> MemoryTableStore:
    store = MemoryTableStore()
    config = QualityConfig()
    snapshot = next(decode_row(r) for r in load_sample_rows() if decode_row(r).seller_id == "10002")
    TrackingStore(store, config).record_send(
        tracking_id="track-1",
        email="ops@last.example.com",
        seller_id="10002",
        email_type=EmailType.LAST_WARNING,
        now=NOW,
    )
    ResponseStore(store, config).record_pending(snapshot, EmailType.LAST_WARNING, NOW)
    return store


def test_open_marks_tracking_row_and_returns_gif(monkeypatch):
    store = _seeded_store()
    client = _client(monkeypatch, store)

    response = client.get("/", params={"action": "open", "id": "track-1"})

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/gif"
    assert response.content == server.PIXEL_GIF
    row = store.read_rows("Email Tracking")[1]
    assert row[5] == "2025/06/02 09:00:00"
    assert row[6] == "Yes"


def test_open_unknown_id_still_returns_gif(monkeypatch):
    client = _client(monkeypatch, MemoryTableStore())
    response = client.get("/", params={"action": "open", "id": "nope"})
    assert response.status_code == 200
    assert response.content == server.PIXEL_GIF


def test_open_returns_gif_when_store_fails(monkeypatch):
    client = _client(monkeypatch, MemoryTableStore())

    def _broken(_config):
        raise RuntimeError("sheets down")

    monkeypatch.setattr(server, "_store", _broken)
    response = client.get("/", params={"action": "open", "id": "track-1"})
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/gif"


def test_update_response_records_status(monkeypatch):
    store = _seeded_store()
    client = _client(monkeypatch, store)

    response = client.get(
        "/",
        params={
            "action": "updateResponse",
            "sellerId": "10002",
            "emailType": "last_warning",
            "status": "in_progress",
            "notes": "Called seller",
        },
    )

    assert response.status_code == 200
    assert "In Progress" in response.text
    row = store.read_rows("Last Warning Responses")[1]
    assert row[11] == "Yes"
    assert row[12] == "In Progress"
    assert row[13] == "Called seller"


def test_update_response_errors(monkeypatch):
    client = _client(monkeypatch, _seeded_store())

    missing = client.get("/", params={"action": "updateResponse", "sellerId": "999", "emailType": "last_warning", "status": "resolved"})
    assert missing.status_code == 404

    bad_type = client.get("/", params={"action": "updateResponse", "sellerId": "10002", "emailType": "final", "status": "resolved"})
    assert bad_type.status_code == 400

    no_status = client.get("/", params={"action": "updateResponse", "sellerId": "10002", "emailType": "last_warning"})
    assert no_status.status_code == 400


def test_view_history(monkeypatch):
    client = _client(monkeypatch, _seeded_store())

    found = client.get("/", params={"action": "viewHistory", "sellerId": "10002"})
    assert found.status_code == 200
    assert "track-1" in found.text
    assert "last_warning" in found.text

    missing = client.get("/", params={"action": "viewHistory", "sellerId": "424242"})
    assert missing.status_code == 404
    assert "No records" in missing.text


def test_unknown_action_is_rejected(monkeypatch):
    client = _client(monkeypatch, MemoryTableStore())
    assert client.get("/").status_code == 400
    assert client.get("/", params={"action": "delete"}).status_code == 400


def test_stats_and_json_status_update(monkeypatch):
    client = _client(monkeypatch, _seeded_store())

    stats = client.get("/api/stats").json()
    assert stats["total_emails"] == 1
    assert stats["opened_emails"] == 0

    ok = client.post(
        "/api/responses",
        json={"seller_id": "10002", "email_type": "last_warning", "status": "resolved"},
    )
    assert ok.status_code == 200
    assert ok.json()["ok"] is True

    missing = client.post(
        "/api/responses",
        json={"seller_id": "1", "email_type": "last_warning", "status": "resolved"},
    )
    assert missing.status_code == 404

    assert client.get("/health").json() == {"status": "ok"}
