"""Sample source for a local demo without Sheets or warehouse access."""

from __future__ import annotations

from datetime import date

from skills.seller_quality.escalation import MetricStreak, action_for_streak, resolve_final_action
from skills.seller_quality.quality_table import encode_row
from skills.seller_quality.types import Label, SellerSnapshot


def _snapshot(
    seller_id: str,
    name: str,
    defective: tuple[float, int, int, Label],
    appearance: tuple[float, int, int, Label],
    email: str,
) -> SellerSnapshot:
    d_streak = MetricStreak(defective[2], defective[3].is_failing)
    a_streak = MetricStreak(appearance[2], appearance[3].is_failing)
    return SellerSnapshot(
        seller_id=seller_id,
        seller_name=name,
        owner_name="Sample Owner",
        tier="Silver",
        activity_type="Refurbisher",
        defective_rate=defective[0],
        defective_count=defective[1],
        defective_streak=defective[2],
        defective_label=defective[3],
        defective_action=action_for_streak(d_streak.streak, d_streak.failing),
        appearance_rate=appearance[0],
        appearance_count=appearance[1],
        appearance_streak=appearance[2],
        appearance_label=appearance[3],
        appearance_action=action_for_streak(a_streak.streak, a_streak.failing),
        final_action=resolve_final_action(d_streak, a_streak),
        email=email,
        week_number="Week 12",
        date_kpi=date(2025, 5, 26),
        time_period="2025-05-19 to 2025-05-25",
    )


def load_sample_rows() -> list[list[str]]:
    snapshots = [
        _snapshot(
            "10001",
            "Sample Suspension Seller",
            (0.052, 6, 5, Label.CRITICAL),
            (0.0, 0, 0, Label.NONE),
            "ops@suspension.example.com",
        ),
        _snapshot(
            "10002",
            "Sample Last Warning Seller",
            (0.035, 3, 4, Label.ALERTING),
            (0.012, 2, 2, Label.CRITICAL),
            "ops@last.example.com, backup@last.example.com",
        ),
        _snapshot(
            "10003",
            "Sample First Warning Seller",
            (0.0, 0, 0, Label.HISTORICAL),
            (0.009, 2, 1, Label.ALERTING),
            "quality@first.example.com",
        ),
        _snapshot(
            "10004",
            "Sample Monitored Seller",
            (0.031, 2, 3, Label.ALERTING),
            (0.0, 0, 0, Label.NONE),
            "monitor@silent.example.com",
        ),
        _snapshot(
            "10005",
            "Sample Missing Contact Seller",
            (0.045, 4, 1, Label.CRITICAL),
            (0.0, 0, 0, Label.NONE),
            "",
        ),
    ]
    return [encode_row(s) for s in snapshots]
