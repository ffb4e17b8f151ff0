from datetime import date

import pytest

from skills.seller_quality.config import QualityConfig, load_config


def test_defaults_mirror_production_constants(monkeypatch):
    for name in ["QUALITY_TABLE_BACKEND", "QUALITY_MARKET", "QUALITY_DEFECTIVE_THRESHOLD", "QUALITY_START_DATE"]:
        monkeypatch.delenv(name, raising=False)
    config = load_config()
    assert config.market == "JP"
    assert config.start_date == date(2025, 3, 10)
    assert config.defective.rate_threshold == 0.03
    assert config.appearance.critical_threshold == 0.01
    assert config.timezone == "Asia/Tokyo"
    assert config.table_backend == "csv"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("QUALITY_TABLE_BACKEND", "Sheets")
    monkeypatch.setenv("QUALITY_DEFECTIVE_THRESHOLD", "0.025")
    monkeypatch.setenv("QUALITY_START_DATE", "2025-01-06")
    monkeypatch.setenv("GOOGLE_SPREADSHEET_ID", "sheet-123")
    monkeypatch.setenv("QUALITY_WEB_APP_URL", "https://track.example/")

    config = load_config()

    assert config.table_backend == "sheets"
    assert config.defective.rate_threshold == 0.025
    assert config.start_date == date(2025, 1, 6)
    assert config.spreadsheet_id == "sheet-123"
    assert config.web_app_url == "https://track.example/"


def test_invalid_env_values_raise(monkeypatch):
    monkeypatch.setenv("QUALITY_TABLE_BACKEND", "postgres")
    with pytest.raises(ValueError):
        load_config()
    monkeypatch.setenv("QUALITY_TABLE_BACKEND", "csv")
    monkeypatch.setenv("QUALITY_APPEARANCE_THRESHOLD", "high")
    with pytest.raises(ValueError):
        load_config()


def test_with_overrides_skips_none_and_subjects():
    config = QualityConfig().with_overrides(data_dir="/tmp/q", table_backend=None)
    assert config.data_dir == "/tmp/q"
    assert config.table_backend == "csv"
    assert config.subject_for("first_warning", "Shop") == "⚠️ 品質問題アラート: Shop"
    assert config.response_sheet_name("suspension") == "Suspension Responses"
    with pytest.raises(ValueError):
        config.response_sheet_name("unknown")
