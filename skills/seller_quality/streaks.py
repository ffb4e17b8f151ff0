"""Weekly pass/fail flags and consecutive-failure streaks for one metric."""

from __future__ import annotations

from collections.abc import Sequence

from skills.seller_quality.config import MetricThresholds
from skills.seller_quality.types import Label, MetricStatus, WeeklyObservation


def is_failing(observation: WeeklyObservation, thresholds: MetricThresholds) -> bool:
    return (
        observation.issue_count >= thresholds.min_issue_count
        and observation.rate > thresholds.rate_threshold
    )


def _check_ordering(observations: Sequence[WeeklyObservation]) -> None:
    for prev, curr in zip(observations, observations[1:]):
        if curr.week_start <= prev.week_start:
            raise ValueError(
                f"weeks must be strictly increasing: {prev.week_start.isoformat()} "
                f"then {curr.week_start.isoformat()} for seller {curr.seller_id!r}"
            )


def pass_fail_flags(observations: Sequence[WeeklyObservation], thresholds: MetricThresholds) -> list[bool]:
    _check_ordering(observations)
    return [is_failing(obs, thresholds) for obs in observations]


def trailing_run_length(flags: Sequence[bool]) -> int:
    streak = 0
    for flag in reversed(flags):
        if not flag:
            break
        streak += 1
    return streak


def latest_run_length(flags: Sequence[bool]) -> int:
    """Length of the most recent failing run, even if it has since ended."""
    idx = len(flags) - 1
    while idx >= 0 and not flags[idx]:
        idx -= 1
    return trailing_run_length(flags[: idx + 1])


def current_streak(observations: Sequence[WeeklyObservation], thresholds: MetricThresholds) -> int:
    return trailing_run_length(pass_fail_flags(observations, thresholds))


def label_for(failing: bool, rate: float, historical_streak: int, thresholds: MetricThresholds) -> Label:
    if failing and rate > thresholds.critical_threshold:
        return Label.CRITICAL
    if failing:
        return Label.ALERTING
    if historical_streak > 0:
        return Label.HISTORICAL
    return Label.NONE


class MetricEvaluator:
    """Evaluates one metric's weekly series against fixed thresholds."""

    def __init__(self, thresholds: MetricThresholds) -> None:
        self.thresholds = thresholds

    def flags(self, observations: Sequence[WeeklyObservation]) -> list[bool]:
        return pass_fail_flags(observations, self.thresholds)

    def evaluate(self, observations: Sequence[WeeklyObservation]) -> MetricStatus:
        flags = self.flags(observations)
        if not observations:
            return MetricStatus(
                failing=False,
                streak=0,
                historical_streak=0,
                rate=0.0,
                issue_count=0,
                label=Label.NONE,
            )

        latest = observations[-1]
        failing = flags[-1]
        streak = trailing_run_length(flags)
        historical = latest_run_length(flags)
        return MetricStatus(
            failing=failing,
            streak=streak,
            historical_streak=historical,
            rate=latest.rate,
            issue_count=latest.issue_count,
            label=label_for(failing, latest.rate, historical, self.thresholds),
        )
