"""Map metric streaks to escalation actions and resolve one action per seller."""

from __future__ import annotations

from dataclasses import dataclass

from skills.seller_quality.config import QualityConfig
from skills.seller_quality.types import Action, EscalationInvariantError, SellerSnapshot

STREAK_ACTIONS = {
    1: Action.FIRST_WARNING,
    4: Action.LAST_WARNING,
    5: Action.SUSPENSION,
}

# Evaluated top to bottom; first match wins.
FINAL_ACTION_PRIORITY = [
    (5, Action.SUSPENSION),
    (4, Action.LAST_WARNING),
    (1, Action.FIRST_WARNING),
]


@dataclass(slots=True, frozen=True)
class MetricStreak:
    streak: int
    failing: bool


@dataclass(slots=True, frozen=True)
class Resolution:
    defective_action: Action
    appearance_action: Action
    final_action: Action


def action_for_streak(streak: int, failing: bool) -> Action:
    if streak < 0:
        raise ValueError(f"streak must be >= 0, got {streak}")
    if not failing:
        return Action.NO_ACTION
    # 2-3 stay silent; >5 never reaches here because those sellers are excluded.
    return STREAK_ACTIONS.get(streak, Action.NO_ACTION)


def resolve_final_action(defective: MetricStreak, appearance: MetricStreak) -> Action:
    for streak, action in FINAL_ACTION_PRIORITY:
        if (defective.streak == streak and defective.failing) or (
            appearance.streak == streak and appearance.failing
        ):
            return action
    return Action.NO_ACTION


def is_excluded(defective_streak: int, appearance_streak: int, max_streak: int = 5) -> bool:
    return defective_streak > max_streak or appearance_streak > max_streak


def check_invariant(final_action: Action, defective_failing: bool, appearance_failing: bool) -> None:
    if final_action is not Action.NO_ACTION and not (defective_failing or appearance_failing):
        raise EscalationInvariantError(
            f"final action {final_action.value!r} resolved with no currently failing metric"
        )


class EscalationResolver:
    """Applies the fixed streak policy to seller snapshots."""

    def __init__(self, config: QualityConfig) -> None:
        self.config = config

    def is_excluded(self, snapshot: SellerSnapshot) -> bool:
        return is_excluded(snapshot.defective_streak, snapshot.appearance_streak, self.config.max_streak)

    def resolve_streaks(self, defective: MetricStreak, appearance: MetricStreak) -> Resolution:
        final = resolve_final_action(defective, appearance)
        check_invariant(final, defective.failing, appearance.failing)
        return Resolution(
            defective_action=action_for_streak(defective.streak, defective.failing),
            appearance_action=action_for_streak(appearance.streak, appearance.failing),
            final_action=final,
        )

    def resolve(self, snapshot: SellerSnapshot) -> Resolution:
        return self.resolve_streaks(
            MetricStreak(snapshot.defective_streak, snapshot.defective_failing),
            MetricStreak(snapshot.appearance_streak, snapshot.appearance_failing),
        )

    def apply(self, snapshot: SellerSnapshot) -> list[str]:
        """Overwrite the snapshot's actions with resolved ones; returns mismatch warnings."""
        resolution = self.resolve(snapshot)
        warnings: list[str] = []
        pairs = [
            ("defective_action", snapshot.defective_action, resolution.defective_action),
            ("appearance_action", snapshot.appearance_action, resolution.appearance_action),
            ("final_action", snapshot.final_action, resolution.final_action),
        ]
        for name, given, resolved in pairs:
            if given is not resolved:
                warnings.append(
                    f"action_mismatch: seller_id={snapshot.seller_id} field={name} "
                    f"table={given.value!r} resolved={resolved.value!r}"
                )
        snapshot.defective_action = resolution.defective_action
        snapshot.appearance_action = resolution.appearance_action
        snapshot.final_action = resolution.final_action
        return warnings

    def severity_sort_key(self, snapshot: SellerSnapshot) -> tuple[int, int, int, float, float]:
        failing = int(snapshot.defective_failing) + int(snapshot.appearance_failing)
        return (
            -snapshot.final_action.severity,
            -failing,
            -max(snapshot.defective_streak, snapshot.appearance_streak),
            -snapshot.defective_rate,
            -snapshot.appearance_rate,
        )
