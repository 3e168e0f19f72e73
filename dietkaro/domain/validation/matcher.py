"""
Restriction matcher.

Evaluates one restriction rule against one (food, context) pair.
Stateless except for frequency rules, which read usage counts that the
engine looked up from the meal-log history beforehand.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import time
from typing import Optional

import structlog

from dietkaro.domain.shared.errors import InconsistentStateError
from dietkaro.domain.validation.models import FoodItem, ValidationContext
from dietkaro.domain.validation.restrictions import (
    AlwaysRestriction,
    DayBasedRestriction,
    FoodRestriction,
    FrequencyRestriction,
    QuantityRestriction,
    TimeBasedRestriction,
)
from dietkaro.domain.validation.rules import MEAL_NOMINAL_TIMES

logger = structlog.get_logger(__name__)

EXACT_MATCH_CONFIDENCE = 1.0
FUZZY_MATCH_CONFIDENCE = 0.7


@dataclass(frozen=True)
class FrequencyUsage:
    """How many matching foods the client already logged in the windows."""

    day_count: int = 0
    week_count: int = 0


@dataclass(frozen=True)
class MatchOutcome:
    """Result of one rule evaluation."""

    fired: bool
    reason: Optional[str] = None
    confidence: float = EXACT_MATCH_CONFIDENCE
    limit_grams: Optional[float] = None
    limit_count: Optional[int] = None

    @classmethod
    def no_match(cls) -> MatchOutcome:
        return cls(fired=False)


def match_target(restriction: FoodRestriction, food: FoodItem) -> Optional[float]:
    """
    Check whether the rule's target designates this food.

    ID and category comparisons are exact, name comparison is a
    case-insensitive substring test and yields a lower confidence.

    Returns:
        Match confidence, or None when the target does not apply
    """
    if restriction.food_id is not None:
        return EXACT_MATCH_CONFIDENCE if restriction.food_id == food.id else None
    if restriction.food_category is not None:
        category = restriction.food_category.lower()
        return EXACT_MATCH_CONFIDENCE if category in food.classifications else None
    if restriction.food_name is not None:
        return FUZZY_MATCH_CONFIDENCE if restriction.food_name.lower() in food.name_lower else None
    raise InconsistentStateError("restriction has no target")


def _carved_out(entries: frozenset[str], food: FoodItem) -> bool:
    for entry in entries:
        lowered = entry.strip().lower()
        if not lowered:
            continue
        if entry == food.id:
            return True
        if lowered in food.name_lower:
            return True
        if lowered in food.classifications or lowered in food.allergen_flags:
            return True
    return False


class RestrictionMatcher:
    """
    Evaluates ``FoodRestriction`` rules.

    Malformed rules never raise out of ``matches``: they are logged and
    treated as non-matching.

    Example:
        >>> matcher = RestrictionMatcher()
        >>> outcome = matcher.matches(rule, food, context)
        >>> outcome.fired
        True
    """

    def matches(
        self,
        restriction: FoodRestriction,
        food: FoodItem,
        context: ValidationContext,
        usage: Optional[FrequencyUsage] = None,
    ) -> MatchOutcome:
        """
        Evaluate one rule.

        Args:
            restriction: Rule from the client profile
            food: Candidate food
            context: Day / meal the food would be eaten in
            usage: Lookback counts, required for frequency rules

        Returns:
            MatchOutcome with fired flag and reason
        """
        try:
            return self._evaluate(restriction, food, context, usage)
        except InconsistentStateError as exc:
            logger.error(
                "Inconsistent restriction treated as non-matching",
                food_id=food.id,
                kind=getattr(restriction, "kind", None),
                error=str(exc),
            )
            return MatchOutcome.no_match()

    def _evaluate(
        self,
        restriction: FoodRestriction,
        food: FoodItem,
        context: ValidationContext,
        usage: Optional[FrequencyUsage],
    ) -> MatchOutcome:
        confidence = match_target(restriction, food)
        if confidence is None:
            return MatchOutcome.no_match()
        if _carved_out(restriction.excludes, food):
            return MatchOutcome.no_match()

        if isinstance(restriction, AlwaysRestriction):
            if _carved_out(restriction.includes, food):
                return MatchOutcome.no_match()
            return MatchOutcome(
                fired=True,
                reason=f"Client never eats {restriction.target_label}",
                confidence=confidence,
            )

        if isinstance(restriction, DayBasedRestriction):
            if context.current_day not in restriction.avoid_days:
                return MatchOutcome.no_match()
            return MatchOutcome(
                fired=True,
                reason=f"No {restriction.target_label} on {context.current_day.value}",
                confidence=confidence,
            )

        if isinstance(restriction, TimeBasedRestriction):
            if restriction.avoid_meals:
                if context.meal_type not in restriction.avoid_meals:
                    return MatchOutcome.no_match()
                reason = f"No {restriction.target_label} during {context.meal_type.value}"
            else:
                moment = context.time_of_day or MEAL_NOMINAL_TIMES[context.meal_type]
                if not restriction.covers(moment):
                    return MatchOutcome.no_match()
                reason = f"No {restriction.target_label} at {_fmt(moment)}"
            return MatchOutcome(fired=True, reason=reason, confidence=confidence)

        if isinstance(restriction, FrequencyRestriction):
            if usage is None:
                raise InconsistentStateError("frequency rule evaluated without usage history")
            return self._frequency(restriction, usage, confidence)

        if isinstance(restriction, QuantityRestriction):
            return MatchOutcome(
                fired=True,
                reason=(
                    f"Limit {restriction.target_label} to "
                    f"{restriction.max_grams_per_meal:g}g per meal"
                ),
                confidence=confidence,
                limit_grams=restriction.max_grams_per_meal,
            )

        raise InconsistentStateError(f"unknown restriction kind: {type(restriction).__name__}")

    @staticmethod
    def _frequency(
        restriction: FrequencyRestriction,
        usage: FrequencyUsage,
        confidence: float,
    ) -> MatchOutcome:
        # Fires when this addition reaches or passes a limit
        if restriction.max_per_day is not None and usage.day_count + 1 >= restriction.max_per_day:
            return MatchOutcome(
                fired=True,
                reason=(
                    f"{restriction.target_label} already logged {usage.day_count} time(s) today, "
                    f"limit {restriction.max_per_day}/day"
                ),
                confidence=confidence,
                limit_count=restriction.max_per_day,
            )
        if restriction.max_per_week is not None and usage.week_count + 1 >= restriction.max_per_week:
            return MatchOutcome(
                fired=True,
                reason=(
                    f"{restriction.target_label} already logged {usage.week_count} time(s) "
                    f"this week, limit {restriction.max_per_week}/week"
                ),
                confidence=confidence,
                limit_count=restriction.max_per_week,
            )
        return MatchOutcome.no_match()


def _fmt(moment: time) -> str:
    return moment.strftime("%H:%M")
