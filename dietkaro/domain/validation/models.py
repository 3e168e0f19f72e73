"""
Diet validation domain models.

Client profile and food item payloads consumed from the stores, the
validation context, and the traffic-light result returned to the API.
"""

from __future__ import annotations

from datetime import time
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from dietkaro.domain.shared.errors import InvalidArgumentError
from dietkaro.domain.shared.types import MealType, TrafficLight, Weekday
from dietkaro.domain.validation.restrictions import FoodRestriction

Severity = TrafficLight

_SEVERITY_RANK = {Severity.GREEN: 0, Severity.YELLOW: 1, Severity.RED: 2}


def max_severity(current: Severity, candidate: Severity) -> Severity:
    """Monotonic merge: RED > YELLOW > GREEN."""
    if _SEVERITY_RANK[Severity(candidate)] > _SEVERITY_RANK[Severity(current)]:
        return Severity(candidate)
    return Severity(current)


def _lowered(values: Any) -> frozenset[str]:
    if not values:
        return frozenset()
    texts = (v.value if isinstance(v, Enum) else str(v) for v in values)
    return frozenset(t.strip().lower() for t in texts if t.strip())


class AlertType(str, Enum):
    """Rule category that produced an alert."""

    ALLERGY = "allergy"
    INTOLERANCE = "intolerance"
    DIET_PATTERN = "diet_pattern"
    FOOD_RESTRICTION = "food_restriction"
    DAY_BASED_RESTRICTION = "day_based_restriction"
    TIME_BASED_RESTRICTION = "time_based_restriction"
    FREQUENCY_EXCEEDED = "frequency_exceeded"
    QUANTITY_EXCEEDED = "quantity_exceeded"
    DISLIKE = "dislike"
    AVOID_CATEGORY = "avoid_category"
    MEDICAL = "medical"
    LAB_DERIVED = "lab_derived"
    PREFERENCE_MATCH = "preference_match"
    CUISINE_MATCH = "cuisine_match"
    NUTRIENT_MATCH = "nutrient_match"


class ClientProfile(BaseModel):
    """
    Restriction profile of one client, as served by the profile store.

    Tag collections are normalised to lowercase on construction.
    ``food_restrictions`` only holds well-formed rules: the store adapter
    drops malformed ones through ``parse_restrictions_lenient``.
    """

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(..., min_length=1)
    org_id: str = Field(..., min_length=1)

    allergies: frozenset[str] = Field(default_factory=frozenset)
    intolerances: frozenset[str] = Field(default_factory=frozenset)
    diet_pattern: Optional[str] = None
    egg_allowed: bool = True
    egg_avoid_days: frozenset[Weekday] = Field(default_factory=frozenset)
    food_restrictions: tuple[FoodRestriction, ...] = ()

    dislikes: frozenset[str] = Field(default_factory=frozenset)
    avoid_categories: frozenset[str] = Field(default_factory=frozenset)
    medical_conditions: frozenset[str] = Field(default_factory=frozenset)
    lab_derived_tags: frozenset[str] = Field(default_factory=frozenset)

    liked_foods: frozenset[str] = Field(default_factory=frozenset)
    preferred_cuisines: frozenset[str] = Field(default_factory=frozenset)

    @field_validator(
        "allergies",
        "intolerances",
        "egg_avoid_days",
        "dislikes",
        "avoid_categories",
        "medical_conditions",
        "lab_derived_tags",
        "preferred_cuisines",
        mode="before",
    )
    @classmethod
    def normalise_tags(cls, v: Any) -> frozenset[str]:
        return _lowered(v)

    @field_validator("liked_foods", mode="before")
    @classmethod
    def strip_liked(cls, v: Any) -> frozenset[str]:
        # liked foods hold IDs or names; IDs keep their case
        if not v:
            return frozenset()
        return frozenset(str(x).strip() for x in v if str(x).strip())

    @field_validator("diet_pattern", mode="before")
    @classmethod
    def normalise_pattern(cls, v: Any) -> Optional[str]:
        if v is None or not str(v).strip():
            return None
        return str(v).strip().lower()


class FoodItem(BaseModel):
    """
    Food item tags, as served by the food item store.

    Example:
        >>> food = FoodItem(id="f1", name="Chicken Curry", category="non_veg")
        >>> food.name_lower
        'chicken curry'
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    category: Optional[str] = None
    dietary_tags: frozenset[str] = Field(default_factory=frozenset)
    allergen_flags: frozenset[str] = Field(default_factory=frozenset)
    cuisine_tags: frozenset[str] = Field(default_factory=frozenset)
    health_flags: frozenset[str] = Field(default_factory=frozenset)
    calories_per_100g: Optional[float] = Field(None, ge=0)

    @field_validator(
        "dietary_tags",
        "allergen_flags",
        "cuisine_tags",
        "health_flags",
        mode="before",
    )
    @classmethod
    def normalise_tags(cls, v: Any) -> frozenset[str]:
        return _lowered(v)

    @field_validator("category", mode="before")
    @classmethod
    def normalise_category(cls, v: Any) -> Optional[str]:
        if v is None or not str(v).strip():
            return None
        return str(v).strip().lower()

    @property
    def name_lower(self) -> str:
        return self.name.lower()

    @property
    def classifications(self) -> frozenset[str]:
        """Category plus dietary tags: everything a category rule can hit."""
        if self.category:
            return self.dietary_tags | {self.category}
        return self.dietary_tags


class ValidationContext(BaseModel):
    """
    Situation a food is evaluated in. Immutable per call.

    ``time_of_day`` is optional; time-window rules fall back to the
    nominal time of ``meal_type`` when it is absent.
    """

    model_config = ConfigDict(frozen=True)

    current_day: Weekday
    meal_type: MealType
    time_of_day: Optional[time] = None

    @field_validator("current_day", "meal_type", mode="before")
    @classmethod
    def lowercase(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @classmethod
    def from_payload(cls, raw: Any) -> ValidationContext:
        """
        Build a context from an API payload.

        Accepts camelCase (``currentDay``, ``mealType``, ``timeOfDay``) or
        snake_case keys, or an existing context.

        Raises:
            InvalidArgumentError: If a required key is missing or invalid
        """
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, Mapping):
            raise InvalidArgumentError("context", "must be an object")

        data: dict[str, Any] = {}
        for field, camel in _CONTEXT_KEYS.items():
            value = raw.get(camel, raw.get(field))
            if value is None or (isinstance(value, str) and not value.strip()):
                if field != "time_of_day":
                    raise InvalidArgumentError(camel, "is required")
                continue
            data[field] = value

        try:
            return cls(**data)
        except ValidationError as exc:
            first = exc.errors()[0]
            field = str(first["loc"][0]) if first["loc"] else "context"
            raise InvalidArgumentError(_CONTEXT_KEYS.get(field, field), first["msg"]) from exc


_CONTEXT_KEYS = {
    "current_day": "currentDay",
    "meal_type": "mealType",
    "time_of_day": "timeOfDay",
}


class ValidationAlert(BaseModel):
    """One reason attached to a validation result."""

    model_config = ConfigDict(frozen=True)

    type: AlertType
    severity: Severity
    message: str
    recommendation: Optional[str] = None
    limit_grams: Optional[float] = None
    limit_count: Optional[int] = None


class ValidationResult(BaseModel):
    """
    Outcome of evaluating one food against one client and context.

    Invariants:
    - severity RED implies can_add is False
    - alerts is empty only for a plain GREEN without positive matches
    """

    model_config = ConfigDict(frozen=True)

    food_id: str
    food_name: str
    severity: Severity
    can_add: bool
    confidence_score: float = Field(1.0, ge=0.0, le=1.0)
    alerts: tuple[ValidationAlert, ...] = ()

    @field_validator("confidence_score")
    @classmethod
    def round_confidence(cls, v: float) -> float:
        """Round confidence to 2 decimal places."""
        return round(v, 2)

    @property
    def border_color(self) -> str:
        """Lowercase colour name used by the plan editor."""
        return Severity(self.severity).value.lower()


class BatchValidationResult(BaseModel):
    """Results of a batch call, in request order."""

    model_config = ConfigDict(frozen=True)

    results: tuple[ValidationResult, ...]
    processing_time_ms: int = Field(..., ge=0)
