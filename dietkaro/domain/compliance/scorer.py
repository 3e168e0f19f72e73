"""
Compliance scorer.

Pure computation of a 0-100 score, a traffic-light colour and a list of
issue codes for one meal log. Always derived from the full current row,
never patched incrementally, so re-scoring the same row is idempotent.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from dietkaro.domain.compliance.models import (
    ComplianceColor,
    ComplianceResult,
    IssueCode,
    MealLog,
    MealLogStatus,
    PlannedMeal,
    PlanTargets,
)
from dietkaro.domain.shared.config import ComplianceConfig


def color_for_score(score: int, config: Optional[ComplianceConfig] = None) -> ComplianceColor:
    """
    Map a score to its colour.

    ``score >= green_min`` is GREEN, ``score >= yellow_min`` is YELLOW,
    anything lower is RED.

    Example:
        >>> color_for_score(80), color_for_score(79), color_for_score(49)
        ('GREEN', 'YELLOW', 'RED')
    """
    cfg = config or ComplianceConfig()
    if score >= cfg.green_min:
        return ComplianceColor.GREEN
    if score >= cfg.yellow_min:
        return ComplianceColor.YELLOW
    return ComplianceColor.RED


class ComplianceScorer:
    """
    Scores meal logs.

    Policy:
    - pending: no score, no colour
    - skipped: fixed score
    - eaten: 100 minus penalties (late log, missing photo when the plan
      requires photos, non-default option, calorie deviation)
    - substituted: base score reduced by the calorie delta against the
      planned option, floored, then the timing and photo penalties
    - a dietitian review adds a bonus, clamped to 100

    Example:
        >>> scorer = ComplianceScorer()
        >>> result = scorer.score(meal_log, planned_meal, targets)
        >>> result.score, result.color
        (100, 'GREEN')
    """

    def __init__(self, config: Optional[ComplianceConfig] = None) -> None:
        self.config = config or ComplianceConfig()

    def score(
        self,
        meal_log: MealLog,
        planned_meal: Optional[PlannedMeal] = None,
        targets: Optional[PlanTargets] = None,
    ) -> ComplianceResult:
        """
        Score one meal log.

        Args:
            meal_log: Current row from the meal-log store
            planned_meal: Planned composition (None when the meal was deleted)
            targets: Plan policy (None when the client has no active plan)

        Returns:
            ComplianceResult; score and colour are None for pending logs
        """
        cfg = self.config

        if meal_log.status == MealLogStatus.PENDING:
            return ComplianceResult()

        if meal_log.status == MealLogStatus.SKIPPED:
            return self._result(cfg.skipped_score, [IssueCode.SKIPPED])

        issues: list[IssueCode] = []
        planned = planned_meal.planned_calories(meal_log.chosen_option_group) if planned_meal else 0.0

        if meal_log.status == MealLogStatus.SUBSTITUTED:
            score = self._substitution_score(meal_log, planned, issues)
        else:
            score = 100
            if meal_log.chosen_option_group:
                score -= cfg.option_deviation_penalty
                issues.append(IssueCode.OPTION_DEVIATION)
            score -= self._portion_penalty(meal_log, planned, issues)

        if self._logged_late(meal_log):
            score -= cfg.late_log_penalty
            issues.append(IssueCode.LATE_LOG)

        if not meal_log.has_photo and targets is not None and targets.photo_required:
            score -= cfg.no_photo_penalty
            issues.append(IssueCode.NO_PHOTO)

        if meal_log.status == MealLogStatus.SUBSTITUTED:
            score = max(score, cfg.substitution_floor)

        if meal_log.dietitian_feedback and meal_log.dietitian_feedback.strip():
            score += cfg.dietitian_review_bonus

        return self._result(score, issues)

    # ─── factors ─────────────────────────────────────────────────

    def _substitution_score(
        self, meal_log: MealLog, planned: float, issues: list[IssueCode]
    ) -> int:
        cfg = self.config
        issues.append(IssueCode.SUBSTITUTION)

        estimate = meal_log.substitute_calories_est
        if estimate is None or planned <= 0:
            issues.append(IssueCode.UNKNOWN_SUBSTITUTE_CALORIES)
            return cfg.substitution_base_score

        deviation = abs(estimate - planned) / planned
        if deviation > cfg.large_substitution_pct:
            issues.append(IssueCode.LARGE_SUBSTITUTION)
        reduced = round(cfg.substitution_base_score * (1 - deviation))
        return max(cfg.substitution_floor, reduced)

    def _portion_penalty(self, meal_log: MealLog, planned: float, issues: list[IssueCode]) -> int:
        cfg = self.config
        estimate = meal_log.substitute_calories_est
        if estimate is None or planned <= 0:
            return 0

        deviation = abs(estimate - planned) / planned
        if deviation <= cfg.portion_tolerance_pct:
            return 0
        issues.append(IssueCode.PORTION_DEVIATION)
        return min(cfg.portion_max_penalty, round(cfg.portion_max_penalty * deviation))

    def _logged_late(self, meal_log: MealLog) -> bool:
        if meal_log.logged_at is None or meal_log.scheduled_time is None:
            return False
        scheduled = datetime.combine(
            meal_log.scheduled_date,
            meal_log.scheduled_time,
            tzinfo=meal_log.logged_at.tzinfo,
        )
        minutes = abs((meal_log.logged_at - scheduled).total_seconds()) / 60
        return minutes > self.config.late_log_grace_minutes

    def _result(self, score: int, issues: list[IssueCode]) -> ComplianceResult:
        clamped = max(0, min(100, int(score)))
        return ComplianceResult(
            score=clamped,
            color=color_for_score(clamped, self.config),
            issues=tuple(issues),
        )
