from datetime import date, timedelta

import pytest

from skills.seller_quality.config import QualityConfig
from skills.seller_quality.types import Action, Label
from skills.seller_quality.weekly import (
    KpiRow,
    SellerInfo,
    build_snapshots,
    current_monday,
    display_seller_id,
    reporting_period,
    week_number,
    weekly_series,
)

START = date(2025, 3, 10)


def _mondays(n: int) -> list[date]:
    return [START + timedelta(days=7 * i) for i in range(n)]


def _row(d: date, seller_id: str, defective: int = 0, appearance: int = 0, delivered: int = 100, market: str = "JP") -> KpiRow:
    return KpiRow(
        date_kpi=d,
        market=market,
        seller_id=seller_id,
        defective_issues=defective,
        appearance_issues=appearance,
        delivered=delivered,
    )


def test_calendar_helpers():
    assert current_monday(date(2025, 4, 2)) == date(2025, 3, 31)
    assert reporting_period(date(2025, 3, 31)) == "2025-03-24 to 2025-03-30"
    assert week_number(date(2025, 3, 31), START) == "Week 4"
    assert display_seller_id("123AP") == "123"
    assert display_seller_id("456") == "456"


def test_weekly_series_keeps_monday_rows_in_market():
    rows = [
        _row(START, "1", defective=1),
        _row(START + timedelta(days=1), "1", defective=50),
        _row(START, "1", defective=2, market="FR"),
        _row(START + timedelta(days=7), "1", defective=3),
    ]
    series = weekly_series(rows, "JP", START, START + timedelta(days=7))
    assert series == {"1": [(START, 1, 0, 100), (START + timedelta(days=7), 3, 0, 100)]}


def test_build_snapshots_resolves_and_orders_sellers():
    weeks = _mondays(4)
    monday = weeks[-1]
    rows = []
    for d in weeks:
        rows.append(_row(d, "100AP", defective=5))
        rows.append(_row(d, "200", appearance=2 if d == monday else 0))
        rows.append(_row(d, "400"))
        # tuesday noise never counts
        rows.append(_row(d + timedelta(days=1), "200", defective=90))
    rows.append(_row(weeks[0], "300", defective=9))

    snapshots = build_snapshots(
        rows,
        {"100AP": SellerInfo(seller_id="100AP", seller_name="Alpha", owner_name="Aki")},
        {"100AP": "alpha@example.com", "200": "beta@example.com"},
        monday,
        QualityConfig(),
    )

    assert [s.seller_id for s in snapshots] == ["100", "200"]
    alpha, beta = snapshots
    assert alpha.seller_name == "Alpha"
    assert alpha.email == "alpha@example.com"
    assert alpha.defective_streak == 4
    assert alpha.defective_label is Label.CRITICAL
    assert alpha.defective_action is Action.LAST_WARNING
    assert alpha.final_action is Action.LAST_WARNING
    assert alpha.week_number == "Week 4"
    assert alpha.time_period == "2025-03-24 to 2025-03-30"
    assert alpha.date_kpi == monday

    assert beta.appearance_streak == 1
    assert beta.appearance_label is Label.CRITICAL
    assert beta.final_action is Action.FIRST_WARNING
    assert beta.defective_streak == 0


def test_build_snapshots_include_inactive():
    monday = START
    snapshots = build_snapshots([_row(monday, "400")], {}, {}, monday, QualityConfig(), include_inactive=True)
    assert len(snapshots) == 1
    assert snapshots[0].final_action is Action.NO_ACTION


def test_streak_past_suspension_is_excluded():
    weeks = _mondays(6)
    rows = [_row(d, "500", defective=6) for d in weeks]
    assert build_snapshots(rows, {}, {}, weeks[-1], QualityConfig()) == []
    assert build_snapshots(rows[:5], {}, {}, weeks[4], QualityConfig())[0].final_action is Action.SUSPENSION


def test_as_of_must_be_monday():
    with pytest.raises(ValueError):
        build_snapshots([], {}, {}, date(2025, 3, 11), QualityConfig())


def test_seller_without_a_row_one_week_keeps_counting():
    weeks = _mondays(5)
    rows = [_row(d, "600", defective=5) for i, d in enumerate(weeks) if i != 2]
    snapshots = build_snapshots(rows, {}, {"600": "gap@example.com"}, weeks[-1], QualityConfig())
    assert len(snapshots) == 1
    assert snapshots[0].defective_streak == 4
    assert snapshots[0].final_action is Action.LAST_WARNING
