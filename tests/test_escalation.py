import pytest

from skills.seller_quality.config import QualityConfig
from skills.seller_quality.escalation import (
    EscalationResolver,
    MetricStreak,
    action_for_streak,
    check_invariant,
    is_excluded,
    resolve_final_action,
)
from skills.seller_quality.types import Action, EscalationInvariantError, Label, SellerSnapshot


def _snapshot(**overrides) -> SellerSnapshot:
    base = dict(
        seller_id="777",
        seller_name="Shop",
        owner_name="Owner",
        tier="Gold",
        activity_type="Refurbisher",
        defective_rate=0.0,
        defective_count=0,
        defective_streak=0,
        defective_label=Label.NONE,
        defective_action=Action.NO_ACTION,
        appearance_rate=0.0,
        appearance_count=0,
        appearance_streak=0,
        appearance_label=Label.NONE,
        appearance_action=Action.NO_ACTION,
        final_action=Action.NO_ACTION,
        email="shop@example.com",
        week_number="Week 3",
    )
    base.update(overrides)
    return SellerSnapshot(**base)


def test_action_for_streak_table():
    assert action_for_streak(0, True) is Action.NO_ACTION
    assert action_for_streak(1, True) is Action.FIRST_WARNING
    assert action_for_streak(2, True) is Action.NO_ACTION
    assert action_for_streak(3, True) is Action.NO_ACTION
    assert action_for_streak(4, True) is Action.LAST_WARNING
    assert action_for_streak(5, True) is Action.SUSPENSION


def test_action_for_streak_requires_failing_metric():
    assert action_for_streak(4, False) is Action.NO_ACTION


def test_negative_streak_rejected():
    with pytest.raises(ValueError):
        action_for_streak(-1, True)


def test_final_action_takes_most_severe_failing_metric():
    assert resolve_final_action(MetricStreak(1, True), MetricStreak(4, True)) is Action.LAST_WARNING
    assert resolve_final_action(MetricStreak(4, True), MetricStreak(5, True)) is Action.SUSPENSION
    assert resolve_final_action(MetricStreak(3, True), MetricStreak(2, True)) is Action.NO_ACTION


@pytest.mark.parametrize("other", [0, 1, 2, 3, 4])
def test_suspension_streak_wins_whatever_the_other_metric(other):
    assert resolve_final_action(MetricStreak(5, True), MetricStreak(other, True)) is Action.SUSPENSION
    assert resolve_final_action(MetricStreak(other, True), MetricStreak(5, True)) is Action.SUSPENSION


def test_final_action_ignores_streak_on_passing_metric():
    assert resolve_final_action(MetricStreak(5, False), MetricStreak(1, True)) is Action.FIRST_WARNING


def test_exclusion_above_max_streak():
    assert is_excluded(6, 0)
    assert is_excluded(0, 7)
    assert not is_excluded(5, 5)


def test_invariant_violation_raises():
    with pytest.raises(EscalationInvariantError):
        check_invariant(Action.FIRST_WARNING, False, False)
    check_invariant(Action.NO_ACTION, False, False)


def test_apply_overwrites_and_reports_mismatches():
    resolver = EscalationResolver(QualityConfig())
    snapshot = _snapshot(
        defective_streak=4,
        defective_label=Label.CRITICAL,
        final_action=Action.FIRST_WARNING,
    )

    warnings = resolver.apply(snapshot)

    assert snapshot.defective_action is Action.LAST_WARNING
    assert snapshot.final_action is Action.LAST_WARNING
    assert len(warnings) == 2
    assert any("field=final_action" in w and "resolved='Send Last Warning'" in w for w in warnings)


def test_apply_is_silent_when_table_agrees():
    resolver = EscalationResolver(QualityConfig())
    snapshot = _snapshot(
        appearance_streak=1,
        appearance_label=Label.ALERTING,
        appearance_action=Action.FIRST_WARNING,
        final_action=Action.FIRST_WARNING,
    )
    assert resolver.apply(snapshot) == []


def test_severity_sort_key_orders_by_action_then_failing_metrics():
    resolver = EscalationResolver(QualityConfig())
    first = _snapshot(seller_id="a", final_action=Action.FIRST_WARNING, defective_label=Label.ALERTING, defective_streak=1)
    suspension = _snapshot(seller_id="b", final_action=Action.SUSPENSION, defective_label=Label.CRITICAL, defective_streak=5)
    both = _snapshot(
        seller_id="c",
        final_action=Action.FIRST_WARNING,
        defective_label=Label.ALERTING,
        defective_streak=1,
        appearance_label=Label.ALERTING,
        appearance_streak=1,
    )
    ordered = sorted([first, suspension, both], key=resolver.severity_sort_key)
    assert [s.seller_id for s in ordered] == ["b", "c", "a"]
