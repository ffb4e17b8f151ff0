import csv
import json
from datetime import date, datetime, timedelta
from pathlib import Path
from zoneinfo import ZoneInfo

import skills.seller_quality.pipeline as pipeline
from skills.seller_quality.config import QualityConfig
from skills.seller_quality.mailer import DryRunMailer
from skills.seller_quality.quality_table import COL, QUALITY_COLUMNS, decode_row
from skills.seller_quality.sources.sample_source import load_sample_rows
from skills.seller_quality.tables import MemoryTableStore
from skills.seller_quality.types import Action

NOW = datetime(2025, 5, 26, 9, 0, tzinfo=ZoneInfo("Asia/Tokyo"))


def _fake_chart(stats_by_action, title, out_path):
    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    Path(out_path).write_bytes(b"png")
    return out_path


def _write_table(path: Path, rows: list[list[str]]) -> str:
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(QUALITY_COLUMNS)
        writer.writerows(rows)
    return str(path)


def test_sample_dry_run_counts_and_writes_nothing(tmp_path):
    mailer = DryRunMailer()
    result = pipeline.run("sample", config=QualityConfig(), out_dir=str(tmp_path / "out"), dry_run=True, mailer=mailer, clock=lambda: NOW)

    s = result.stats
    assert s.processed == 5
    assert s.emails_sent == 4
    assert s.skipped_no_action == 1
    assert s.skipped_no_email == 1
    assert s.errors == 0
    assert s.actions == {
        Action.SUSPENSION.value: 1,
        Action.LAST_WARNING.value: 1,
        Action.FIRST_WARNING.value: 2,
        Action.NO_ACTION.value: 1,
    }
    assert result.warnings == []
    assert result.artifacts == {}
    assert sorted(m.to for m in mailer.sent) == [
        "backup@last.example.com",
        "ops@last.example.com",
        "ops@suspension.example.com",
        "quality@first.example.com",
    ]
    assert not (tmp_path / "out").exists()


def test_csv_run_isolates_bad_rows_and_recomputes_actions(tmp_path, monkeypatch):
    monkeypatch.setattr(pipeline, "render_action_chart", _fake_chart)
    rows = load_sample_rows()
    stale = list(rows[2])
    stale[COL["FINAL_EMAIL_ACTION"]] = "No Action"
    excluded = list(rows[0])
    excluded[COL["SELLER_ID"]] = "20001"
    excluded[COL["CONSECUTIVE_DEFECTIVE_WEEKS"]] = "6"
    table = _write_table(tmp_path / "quality.csv", [rows[0], ["short", "row"], stale, excluded])

    store = MemoryTableStore()
    mailer = DryRunMailer()
    result = pipeline.run(
        "csv",
        config=QualityConfig(),
        out_dir=str(tmp_path / "out"),
        csv_path=table,
        store=store,
        mailer=mailer,
        clock=lambda: NOW,
    )

    s = result.stats
    assert s.data_errors == 1
    assert s.errors == 1
    assert s.processed == 3
    assert s.excluded == 1
    assert s.emails_sent == 2
    assert any(w.startswith("row_3:") for w in result.warnings)
    assert any("action_mismatch: seller_id=10003 field=final_action" in w for w in result.warnings)

    summary = json.loads((tmp_path / "out" / "run_summary.json").read_text(encoding="utf-8"))
    assert summary["run_id"] == result.run_id
    assert summary["stats"]["emails_sent"] == 2
    assert Path(result.artifacts["png_path"]).exists()

    tracking_rows = store.read_rows("Email Tracking")
    assert len(tracking_rows) == 3
    assert len(store.read_rows("Suspension Responses")) == 2
    assert len(store.read_rows("First Warning Responses")) == 2


def test_failed_addresses_count_as_errors(tmp_path, monkeypatch):
    monkeypatch.setattr(pipeline, "render_action_chart", _fake_chart)

    class Rejecting:
        def send(self, *, to, subject, html_body, text_body):
            from skills.seller_quality.types import DeliveryError

            raise DeliveryError("nope")

    result = pipeline.run(
        "sample",
        config=QualityConfig(),
        out_dir=str(tmp_path),
        store=MemoryTableStore(),
        mailer=Rejecting(),
        clock=lambda: NOW,
    )
    assert result.stats.emails_sent == 0
    assert result.stats.failed_addresses == 4
    assert result.stats.errors == 4


def test_build_table_from_history(tmp_path):
    kpi = tmp_path / "kpi.csv"
    start = date(2025, 3, 10)
    with kpi.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["DATE_KPI", "MARKET", "SELLER_ID", "NB_DEFECTIVE_ISSUE", "NB_APPEARANCE_ISSUE", "NB_ORDERLINE_DELIVERED_30D"])
        for i in range(4):
            d = start + timedelta(days=7 * i)
            writer.writerow([d.isoformat(), "JP", "321AP", 5, 0, 100])
    contacts = tmp_path / "contacts.csv"
    contacts.write_text("SELLER_ID,EMAIL\n321AP,ops@321.example.com\n", encoding="utf-8")

    path, snapshots = pipeline.build_table(
        config=QualityConfig(),
        kpi_path=str(kpi),
        contacts_path=str(contacts),
        out_path=str(tmp_path / "table.csv"),
        as_of=date(2025, 4, 2),
    )

    assert len(snapshots) == 1
    with open(path, encoding="utf-8", newline="") as f:
        rows = list(csv.reader(f))
    decoded = decode_row(rows[1])
    assert decoded.seller_id == "321"
    assert decoded.email == "ops@321.example.com"
    assert decoded.final_action is Action.LAST_WARNING
    assert decoded.week_number == "Week 4"


def test_run_summary_lines():
    result = pipeline.run("sample", config=QualityConfig(), dry_run=True, clock=lambda: NOW)
    lines = pipeline.build_run_summary(result)
    assert lines[1] == "Processed 5 sellers, sent 4 emails, 0 errors."
    assert "  Send Suspension Notice: 1" in lines


class _FlakyStore(MemoryTableStore):
    """Fails the first append with the given error, then behaves normally."""

    def __init__(self, error: Exception):
        super().__init__()
        self.error = error
        self.failures_left = 1

    def append_row(self, name, row):
        if self.failures_left:
            self.failures_left -= 1
            raise self.error
        super().append_row(name, row)


def test_unexpected_store_error_only_costs_one_seller(tmp_path, monkeypatch):
    monkeypatch.setattr(pipeline, "render_action_chart", _fake_chart)
    store = _FlakyStore(RuntimeError("APIError: [429] Quota exceeded"))
    mailer = DryRunMailer()

    result = pipeline.run("sample", config=QualityConfig(), out_dir=str(tmp_path), store=store, mailer=mailer, clock=lambda: NOW)

    s = result.stats
    assert s.processed == 5
    assert s.errors == 1
    # every seller with an address still got mail; only the first seller's outcome was lost
    assert len(mailer.sent) == 4
    assert s.emails_sent == 3
    assert any(w.startswith("seller_10001: unexpected RuntimeError") for w in result.warnings)
    assert (tmp_path / "run_summary.json").exists()
    assert len(store.read_rows("Email Tracking")) == 4


def test_tracking_write_failure_still_counts_the_send(tmp_path, monkeypatch):
    from skills.seller_quality.types import DataAccessError

    monkeypatch.setattr(pipeline, "render_action_chart", _fake_chart)
    store = _FlakyStore(DataAccessError("Sheets API error on 'Email Tracking': [429] Quota exceeded"))

    result = pipeline.run("sample", config=QualityConfig(), out_dir=str(tmp_path), store=store, mailer=DryRunMailer(), clock=lambda: NOW)

    s = result.stats
    assert s.emails_sent == 4
    assert s.store_errors == 1
    assert s.errors == 1
    assert len(store.read_rows("Email Tracking")) == 4
    # the seller still gets a response row even though its tracking row was lost
    assert len(store.read_rows("Suspension Responses")) == 2
