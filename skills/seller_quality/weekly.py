"""Build Seller Quality snapshots from raw daily KPI history.

This is the in-process equivalent of the warehouse query that feeds the
"Seller Quality" sheet: Monday KPI rows form each seller's weekly series,
the streak evaluator runs per metric, and the escalation resolver assigns
actions. Sellers with no active streak, or with a streak past the
suspension point, are left out.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from skills.seller_quality.config import QualityConfig
from skills.seller_quality.escalation import EscalationResolver, MetricStreak
from skills.seller_quality.quality_table import normalize_seller_id
from skills.seller_quality.streaks import MetricEvaluator
from skills.seller_quality.types import SellerSnapshot, WeeklyObservation

MONDAY = 0


@dataclass(slots=True, frozen=True)
class KpiRow:
    date_kpi: date
    market: str
    seller_id: str
    defective_issues: int
    appearance_issues: int
    delivered: int


@dataclass(slots=True, frozen=True)
class SellerInfo:
    seller_id: str
    seller_name: str = ""
    owner_name: str = ""
    tier: str = ""
    activity_type: str = ""


def current_monday(today: date) -> date:
    return today - timedelta(days=today.weekday())


def reporting_period(monday: date) -> str:
    """Previous Monday..Sunday, the week the KPI snapshot describes."""
    prev_monday = monday - timedelta(days=7)
    prev_sunday = monday - timedelta(days=1)
    return f"{prev_monday.isoformat()} to {prev_sunday.isoformat()}"


def week_number(monday: date, start_date: date) -> str:
    start_monday = current_monday(start_date)
    return f"Week {(monday - start_monday).days // 7 + 1}"


def display_seller_id(raw_id: str) -> str:
    text = raw_id.strip()
    if text.endswith("AP"):
        return text[:-2]
    return text


def weekly_series(
    rows: list[KpiRow],
    market: str,
    start_date: date,
    as_of: date,
) -> dict[str, list[tuple[date, int, int, int]]]:
    """Per seller, Monday-dated totals as (week, defective, appearance, delivered)."""
    totals: dict[tuple[str, date], list[int]] = defaultdict(lambda: [0, 0, 0])
    for row in rows:
        if row.market != market:
            continue
        if row.date_kpi.weekday() != MONDAY:
            continue
        if row.date_kpi < start_date or row.date_kpi > as_of:
            continue
        key = (normalize_seller_id(row.seller_id), row.date_kpi)
        acc = totals[key]
        acc[0] += row.defective_issues
        acc[1] += row.appearance_issues
        acc[2] += row.delivered

    series: dict[str, list[tuple[date, int, int, int]]] = defaultdict(list)
    for (seller_id, week), (defective, appearance, delivered) in sorted(totals.items()):
        series[seller_id].append((week, defective, appearance, delivered))
    return dict(series)


def _observations(seller_id: str, weeks: list[tuple[date, int, int, int]], idx: int) -> list[WeeklyObservation]:
    return [
        WeeklyObservation(
            seller_id=seller_id,
            week_start=week[0],
            issue_count=week[idx],
            delivered_count=week[3],
        )
        for week in weeks
    ]


def build_snapshots(
    rows: list[KpiRow],
    sellers: dict[str, SellerInfo],
    contacts: dict[str, str],
    monday: date,
    config: QualityConfig,
    *,
    include_inactive: bool = False,
) -> list[SellerSnapshot]:
    if monday.weekday() != MONDAY:
        raise ValueError(f"as-of date must be a Monday, got {monday.isoformat()}")

    defective_eval = MetricEvaluator(config.defective)
    appearance_eval = MetricEvaluator(config.appearance)
    resolver = EscalationResolver(config)
    period = reporting_period(monday)
    week_label = week_number(monday, config.start_date)

    out: list[SellerSnapshot] = []
    for seller_id, weeks in weekly_series(rows, config.market, config.start_date, monday).items():
        if weeks[-1][0] != monday:
            # No KPI row for the current week: not part of this run.
            continue

        defective = defective_eval.evaluate(_observations(seller_id, weeks, 1))
        appearance = appearance_eval.evaluate(_observations(seller_id, weeks, 2))

        if not include_inactive and defective.streak == 0 and appearance.streak == 0:
            continue

        resolution = resolver.resolve_streaks(
            MetricStreak(defective.streak, defective.failing),
            MetricStreak(appearance.streak, appearance.failing),
        )
        info: Optional[SellerInfo] = sellers.get(seller_id)
        snapshot = SellerSnapshot(
            seller_id=display_seller_id(seller_id),
            seller_name=info.seller_name if info else "",
            owner_name=info.owner_name if info else "",
            tier=info.tier if info else "",
            activity_type=info.activity_type if info else "",
            defective_rate=defective.rate,
            defective_count=defective.issue_count,
            defective_streak=defective.streak,
            defective_label=defective.label,
            defective_action=resolution.defective_action,
            appearance_rate=appearance.rate,
            appearance_count=appearance.issue_count,
            appearance_streak=appearance.streak,
            appearance_label=appearance.label,
            appearance_action=resolution.appearance_action,
            final_action=resolution.final_action,
            email=contacts.get(seller_id, ""),
            week_number=week_label,
            date_kpi=monday,
            time_period=period,
        )
        if resolver.is_excluded(snapshot):
            continue
        out.append(snapshot)

    out.sort(key=resolver.severity_sort_key)
    return out
