"""
Severity resolver.

Runs every rule category for one food and folds the triggered rules
into a single traffic-light severity plus an ordered list of alerts.

Evaluation order:
1. Allergies (RED, cannot be carved out)
2. Intolerances (RED)
3. Diet pattern (RED, pescatarian caution YELLOW)
4. Egg avoid days (RED)
5. Strict restrictions (RED)
6. Flexible restrictions (YELLOW)
7. Quantity caps (YELLOW, non-blocking)
8. Dislikes and avoided categories (YELLOW)
9. Medical and lab-derived cautions (YELLOW)
10. Liked food, preferred cuisine, nutrient match (GREEN, only when
    nothing negative fired)

Severity only ever moves up; alert collection always continues so the
caller sees every reason.
"""

from __future__ import annotations

from typing import Mapping, Optional

from dietkaro.domain.validation.matcher import (
    EXACT_MATCH_CONFIDENCE,
    FUZZY_MATCH_CONFIDENCE,
    FrequencyUsage,
    RestrictionMatcher,
)
from dietkaro.domain.validation.models import (
    AlertType,
    ClientProfile,
    FoodItem,
    Severity,
    ValidationAlert,
    ValidationContext,
    ValidationResult,
    max_severity,
)
from dietkaro.domain.validation.restrictions import (
    AlwaysRestriction,
    DayBasedRestriction,
    FoodRestriction,
    FrequencyRestriction,
    QuantityRestriction,
    TimeBasedRestriction,
)
from dietkaro.domain.validation.rules import (
    DIET_CONFLICTS,
    DIET_PATTERN_MESSAGES,
    EGG_CLASSIFICATIONS,
    INTOLERANCE_MAPPING,
    LAB_CAUTIONS,
    LAB_NUTRIENT_MATCHES,
    MEDICAL_FLAG_MAPPING,
    MEDICAL_RECOMMENDATIONS,
    SEAFOOD_TAGS,
    allergen_flag,
)

PESCATARIAN_CONFIDENCE = 0.6

_ALERT_TYPE_BY_KIND: dict[type, AlertType] = {
    AlwaysRestriction: AlertType.FOOD_RESTRICTION,
    DayBasedRestriction: AlertType.DAY_BASED_RESTRICTION,
    TimeBasedRestriction: AlertType.TIME_BASED_RESTRICTION,
    FrequencyRestriction: AlertType.FREQUENCY_EXCEEDED,
    QuantityRestriction: AlertType.QUANTITY_EXCEEDED,
}


class _Collector:
    """Accumulates alerts, severity and confidence for one food."""

    def __init__(self) -> None:
        self.alerts: list[ValidationAlert] = []
        self.severity = Severity.GREEN
        self.confidence = EXACT_MATCH_CONFIDENCE

    def add(self, alert: ValidationAlert, confidence: float = EXACT_MATCH_CONFIDENCE) -> None:
        self.alerts.append(alert)
        self.severity = max_severity(self.severity, alert.severity)
        if alert.severity != Severity.GREEN:
            self.confidence = min(self.confidence, confidence)


class SeverityResolver:
    """
    Aggregates all rule categories into a ``ValidationResult``.

    Pure and deterministic: tag sets are walked in sorted order so alert
    ordering never depends on hash seeds.

    Example:
        >>> resolver = SeverityResolver()
        >>> result = resolver.resolve(food, profile, context)
        >>> result.severity, result.can_add
        ('RED', False)
    """

    def __init__(self, matcher: Optional[RestrictionMatcher] = None) -> None:
        self.matcher = matcher or RestrictionMatcher()

    def resolve(
        self,
        food: FoodItem,
        profile: ClientProfile,
        context: ValidationContext,
        usage: Optional[Mapping[int, FrequencyUsage]] = None,
    ) -> ValidationResult:
        """
        Evaluate one food for one client.

        Args:
            food: Candidate food item
            profile: Client restriction profile
            context: Day and meal of the evaluation
            usage: Lookback counts per frequency restriction, keyed by the
                restriction's index in ``profile.food_restrictions``

        Returns:
            ValidationResult with severity, can_add, confidence and alerts
        """
        collector = _Collector()

        self._check_allergies(food, profile, collector)
        self._check_intolerances(food, profile, collector)
        self._check_diet_pattern(food, profile, collector)
        self._check_egg_days(food, profile, context, collector)
        self._check_restrictions(food, profile, context, usage or {}, collector)
        self._check_dislikes(food, profile, collector)
        self._check_avoid_categories(food, profile, collector)
        self._check_medical(food, profile, collector)
        self._check_lab_tags(food, profile, collector)

        if collector.severity == Severity.GREEN:
            self._check_positive(food, profile, collector)

        return ValidationResult(
            food_id=food.id,
            food_name=food.name,
            severity=collector.severity,
            can_add=collector.severity != Severity.RED,
            confidence_score=collector.confidence,
            alerts=tuple(collector.alerts),
        )

    # ─── hard constraints ────────────────────────────────────────

    def _check_allergies(self, food: FoodItem, profile: ClientProfile, out: _Collector) -> None:
        for allergy in sorted(profile.allergies):
            flag = allergen_flag(allergy)
            if {allergy, flag} & (food.allergen_flags | food.classifications):
                confidence = EXACT_MATCH_CONFIDENCE
            elif allergy in food.name_lower:
                confidence = FUZZY_MATCH_CONFIDENCE
            else:
                continue
            out.add(
                ValidationAlert(
                    type=AlertType.ALLERGY,
                    severity=Severity.RED,
                    message=f"ALLERGY: Client is allergic to {allergy}",
                    recommendation="Remove this food from the plan",
                ),
                confidence,
            )

    def _check_intolerances(
        self, food: FoodItem, profile: ClientProfile, out: _Collector
    ) -> None:
        tags = food.allergen_flags | food.classifications | food.health_flags
        for intolerance in sorted(profile.intolerances):
            triggers = {intolerance, *INTOLERANCE_MAPPING.get(intolerance, ())}
            if triggers & tags:
                confidence = EXACT_MATCH_CONFIDENCE
            elif intolerance in food.name_lower:
                confidence = FUZZY_MATCH_CONFIDENCE
            else:
                continue
            out.add(
                ValidationAlert(
                    type=AlertType.INTOLERANCE,
                    severity=Severity.RED,
                    message=f"INTOLERANCE: Client is intolerant to {intolerance}",
                ),
                confidence,
            )

    def _check_diet_pattern(
        self, food: FoodItem, profile: ClientProfile, out: _Collector
    ) -> None:
        pattern = profile.diet_pattern
        if pattern is None:
            return
        classes = food.classifications

        conflicts = DIET_CONFLICTS.get(pattern, frozenset())
        if conflicts & classes:
            out.add(
                ValidationAlert(
                    type=AlertType.DIET_PATTERN,
                    severity=Severity.RED,
                    message=DIET_PATTERN_MESSAGES.get(
                        pattern, f"{pattern.upper()}: Food conflicts with diet pattern"
                    ),
                )
            )
            return

        if pattern == "vegetarian" and not profile.egg_allowed:
            if EGG_CLASSIFICATIONS & classes or "eggs" in food.allergen_flags:
                out.add(
                    ValidationAlert(
                        type=AlertType.DIET_PATTERN,
                        severity=Severity.RED,
                        message="VEGETARIAN: Client doesn't eat eggs",
                    )
                )
            return

        if pattern == "pescatarian" and "non_veg" in classes:
            if not SEAFOOD_TAGS & (classes | food.allergen_flags):
                out.add(
                    ValidationAlert(
                        type=AlertType.DIET_PATTERN,
                        severity=Severity.YELLOW,
                        message="PESCATARIAN: Verify this is fish-based, not meat",
                        recommendation="Check if this is seafood",
                    ),
                    PESCATARIAN_CONFIDENCE,
                )

    def _check_egg_days(
        self,
        food: FoodItem,
        profile: ClientProfile,
        context: ValidationContext,
        out: _Collector,
    ) -> None:
        if context.current_day not in profile.egg_avoid_days:
            return
        if "eggs" in food.allergen_flags or EGG_CLASSIFICATIONS & food.classifications:
            out.add(
                ValidationAlert(
                    type=AlertType.DAY_BASED_RESTRICTION,
                    severity=Severity.RED,
                    message=(
                        "DAY RESTRICTION: Client avoids eggs on "
                        f"{context.current_day.value.capitalize()}"
                    ),
                )
            )

    # ─── food restrictions ───────────────────────────────────────

    def _check_restrictions(
        self,
        food: FoodItem,
        profile: ClientProfile,
        context: ValidationContext,
        usage: Mapping[int, FrequencyUsage],
        out: _Collector,
    ) -> None:
        strict: list[tuple[ValidationAlert, float]] = []
        flexible: list[tuple[ValidationAlert, float]] = []
        quantity: list[tuple[ValidationAlert, float]] = []

        for index, restriction in enumerate(profile.food_restrictions):
            outcome = self.matcher.matches(restriction, food, context, usage.get(index))
            if not outcome.fired:
                continue

            if isinstance(restriction, QuantityRestriction):
                severity, bucket = Severity.YELLOW, quantity
            elif restriction.is_strict:
                severity, bucket = Severity.RED, strict
            else:
                severity, bucket = Severity.YELLOW, flexible

            alert = ValidationAlert(
                type=_ALERT_TYPE_BY_KIND[type(restriction)],
                severity=severity,
                message=_restriction_message(restriction, severity, outcome.reason),
                recommendation=restriction.note,
                limit_grams=outcome.limit_grams,
                limit_count=outcome.limit_count,
            )
            bucket.append((alert, outcome.confidence))

        for alert, confidence in (*strict, *flexible, *quantity):
            out.add(alert, confidence)

    # ─── soft constraints ────────────────────────────────────────

    def _check_dislikes(self, food: FoodItem, profile: ClientProfile, out: _Collector) -> None:
        if food.name_lower in profile.dislikes or food.id.lower() in profile.dislikes:
            out.add(
                ValidationAlert(
                    type=AlertType.DISLIKE,
                    severity=Severity.YELLOW,
                    message=f"DISLIKE: Client has indicated they dislike {food.name}",
                    recommendation="Consider alternative options",
                )
            )

    def _check_avoid_categories(
        self, food: FoodItem, profile: ClientProfile, out: _Collector
    ) -> None:
        hits = sorted(profile.avoid_categories & food.classifications)
        if hits:
            out.add(
                ValidationAlert(
                    type=AlertType.AVOID_CATEGORY,
                    severity=Severity.YELLOW,
                    message=f"AVOIDED CATEGORY: Client prefers to avoid {', '.join(hits)}",
                    recommendation="Consider alternative options",
                )
            )

    def _check_medical(self, food: FoodItem, profile: ClientProfile, out: _Collector) -> None:
        flags = food.health_flags | food.dietary_tags
        for condition in sorted(profile.medical_conditions):
            hits = sorted(set(MEDICAL_FLAG_MAPPING.get(condition, ())) & flags)
            if not hits:
                continue
            out.add(
                ValidationAlert(
                    type=AlertType.MEDICAL,
                    severity=Severity.YELLOW,
                    message=(
                        f"{condition.replace('_', ' ').upper()} CAUTION: "
                        f"food is flagged {', '.join(hits)}"
                    ),
                    recommendation=MEDICAL_RECOMMENDATIONS.get(hits[0]),
                )
            )

    def _check_lab_tags(self, food: FoodItem, profile: ClientProfile, out: _Collector) -> None:
        for tag in sorted(profile.lab_derived_tags):
            caution = LAB_CAUTIONS.get(tag)
            if caution is None:
                continue
            flag, message, recommendation = caution
            if flag in food.health_flags:
                out.add(
                    ValidationAlert(
                        type=AlertType.LAB_DERIVED,
                        severity=Severity.YELLOW,
                        message=message,
                        recommendation=recommendation,
                    )
                )

    # ─── positive matches ────────────────────────────────────────

    def _check_positive(self, food: FoodItem, profile: ClientProfile, out: _Collector) -> None:
        liked = {name.lower() for name in profile.liked_foods}
        if food.id in profile.liked_foods or food.name_lower in liked:
            out.add(
                ValidationAlert(
                    type=AlertType.PREFERENCE_MATCH,
                    severity=Severity.GREEN,
                    message=f"CLIENT FAVORITE: Client likes {food.name}",
                )
            )

        for cuisine in sorted(profile.preferred_cuisines):
            if cuisine in food.cuisine_tags:
                out.add(
                    ValidationAlert(
                        type=AlertType.CUISINE_MATCH,
                        severity=Severity.GREEN,
                        message=f"PREFERRED CUISINE: Client likes {cuisine} food",
                    )
                )
                break

        for tag in sorted(profile.lab_derived_tags):
            match = LAB_NUTRIENT_MATCHES.get(tag)
            if match is not None and match[0] in food.health_flags:
                out.add(
                    ValidationAlert(
                        type=AlertType.NUTRIENT_MATCH,
                        severity=Severity.GREEN,
                        message=f"NUTRIENT MATCH: Good source of {match[1]} for client",
                    )
                )


def _restriction_message(
    restriction: FoodRestriction,
    severity: Severity,
    reason: Optional[str],
) -> str:
    if isinstance(restriction, QuantityRestriction):
        prefix = "QUANTITY"
    elif isinstance(restriction, FrequencyRestriction):
        prefix = "FREQUENCY"
    elif severity == Severity.RED:
        prefix = "RESTRICTED"
    else:
        prefix = "CAUTION"

    message = f"{prefix}: {reason or 'Food has restrictions'}"
    if restriction.reason:
        message = f"{message} ({restriction.reason.replace('_', ' ')})"
    return message
