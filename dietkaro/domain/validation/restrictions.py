"""
Food restriction model.

A client's dietary restriction rules, modelled as a closed sum type
discriminated by ``kind``. Restrictions live inside the client profile
and are never persisted on their own.
"""

from __future__ import annotations

from datetime import time
from enum import Enum
from typing import Annotated, Any, Iterable, Literal, Mapping, Optional, Union

import structlog
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from dietkaro.domain.shared.errors import InvalidArgumentError
from dietkaro.domain.shared.types import MealType, Weekday

logger = structlog.get_logger(__name__)


class RestrictionSeverity(str, Enum):
    """How hard a restriction is enforced."""

    STRICT = "strict"  # escalates to RED
    FLEXIBLE = "flexible"  # capped at YELLOW


class RestrictionKind(str, Enum):
    """Discriminator values of the restriction sum type."""

    ALWAYS = "always"
    DAY_BASED = "day_based"
    TIME_BASED = "time_based"
    FREQUENCY = "frequency"
    QUANTITY = "quantity"


class _RestrictionBase(BaseModel):
    """
    Fields shared by every restriction kind.

    Exactly one of ``food_id``, ``food_name``, ``food_category`` must be set.
    Payloads use camelCase keys (``foodCategory``, ``avoidDays``), the
    Python attributes are snake_case.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    food_id: Optional[str] = Field(None, description="Exact food item ID")
    food_name: Optional[str] = Field(None, description="Case-insensitive name fragment")
    food_category: Optional[str] = Field(None, description="Exact food category")

    excludes: frozenset[str] = Field(default_factory=frozenset, description="Carve-outs")
    includes: frozenset[str] = Field(default_factory=frozenset, description="Whitelist")

    severity: RestrictionSeverity = Field(..., description="strict or flexible")
    reason: Optional[str] = Field(None, description="Provenance tag, e.g. religious_fasting")
    note: Optional[str] = Field(None, description="Free-text explanation")

    @field_validator("food_id", "food_name", "food_category")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat blank strings as unset."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("excludes", "includes", mode="before")
    @classmethod
    def drop_blank_entries(cls, v: Any) -> Any:
        """Stored profiles may carry null lists or blank entries.

        A blank entry would match every food name, so it is dropped.
        """
        if not v:
            return frozenset()
        if isinstance(v, str):
            v = [v]
        if isinstance(v, (list, tuple, set, frozenset)):
            return frozenset(
                e.strip() if isinstance(e, str) else e
                for e in v
                if not isinstance(e, str) or e.strip()
            )
        return v

    @model_validator(mode="after")
    def exactly_one_target(self) -> _RestrictionBase:
        """Enforce the single-target invariant."""
        populated = [t for t in (self.food_id, self.food_name, self.food_category) if t]
        if len(populated) != 1:
            raise ValueError(
                "exactly one of foodId, foodName, foodCategory must be set, "
                f"got {len(populated)}"
            )
        return self

    @property
    def target_label(self) -> str:
        """Human-readable name of what the rule applies to."""
        return self.food_category or self.food_name or self.food_id or "this food"

    @property
    def is_strict(self) -> bool:
        return self.severity == RestrictionSeverity.STRICT


class AlwaysRestriction(_RestrictionBase):
    """Never allowed, unless whitelisted via ``includes``."""

    kind: Literal["always"] = "always"


class DayBasedRestriction(_RestrictionBase):
    """Not allowed on the listed weekdays (e.g. fasting days)."""

    kind: Literal["day_based"] = "day_based"
    avoid_days: frozenset[Weekday] = Field(..., min_length=1)

    @field_validator("avoid_days", mode="before")
    @classmethod
    def lowercase_days(cls, v: Any) -> Any:
        if isinstance(v, (list, tuple, set, frozenset)):
            return frozenset(d.lower() if isinstance(d, str) else d for d in v)
        return v


class TimeBasedRestriction(_RestrictionBase):
    """
    Not allowed during some meals or outside a time window.

    ``avoid_after`` / ``avoid_before`` describe the window
    ``[avoid_after, avoid_before)``, wrapping midnight when
    ``avoid_after > avoid_before``.
    """

    kind: Literal["time_based"] = "time_based"
    avoid_meals: frozenset[MealType] = Field(default_factory=frozenset)
    avoid_after: Optional[time] = None
    avoid_before: Optional[time] = None

    @field_validator("avoid_meals", mode="before")
    @classmethod
    def lowercase_meals(cls, v: Any) -> Any:
        if v is None:
            return frozenset()
        if isinstance(v, (list, tuple, set, frozenset)):
            return frozenset(m.lower() if isinstance(m, str) else m for m in v)
        return v

    @model_validator(mode="after")
    def needs_meals_or_window(self) -> TimeBasedRestriction:
        if not self.avoid_meals and self.avoid_after is None and self.avoid_before is None:
            raise ValueError("time_based restriction needs avoidMeals, avoidAfter or avoidBefore")
        return self

    def covers(self, moment: time) -> bool:
        """Whether ``moment`` falls inside the avoid window."""
        after, before = self.avoid_after, self.avoid_before
        if after is not None and before is not None:
            if after <= before:
                return after <= moment < before
            return moment >= after or moment < before
        if after is not None:
            return moment >= after
        if before is not None:
            return moment < before
        return False


class FrequencyRestriction(_RestrictionBase):
    """At most N per day and/or per week, counted from the meal-log history."""

    kind: Literal["frequency"] = "frequency"
    max_per_day: Optional[int] = Field(None, ge=1)
    max_per_week: Optional[int] = Field(None, ge=1)

    @model_validator(mode="after")
    def needs_a_limit(self) -> FrequencyRestriction:
        if self.max_per_day is None and self.max_per_week is None:
            raise ValueError("frequency restriction needs maxPerDay or maxPerWeek")
        return self


class QuantityRestriction(_RestrictionBase):
    """Portion cap; reported to the caller, never blocking."""

    kind: Literal["quantity"] = "quantity"
    max_grams_per_meal: float = Field(..., gt=0)


FoodRestriction = Annotated[
    Union[
        AlwaysRestriction,
        DayBasedRestriction,
        TimeBasedRestriction,
        FrequencyRestriction,
        QuantityRestriction,
    ],
    Field(discriminator="kind"),
]

_RESTRICTION_ADAPTER: TypeAdapter[Any] = TypeAdapter(FoodRestriction)


def parse_restriction(raw: Mapping[str, Any]) -> FoodRestriction:
    """
    Validate one raw restriction payload.

    Accepts the legacy ``restrictionType`` key as an alias of ``kind``.

    Args:
        raw: JSON-shaped mapping as stored in the client profile

    Returns:
        Concrete restriction instance

    Raises:
        InvalidArgumentError: Naming the first offending field

    Example:
        >>> r = parse_restriction({
        ...     "foodCategory": "non_veg",
        ...     "kind": "day_based",
        ...     "avoidDays": ["tuesday"],
        ...     "severity": "strict",
        ... })
        >>> r.kind
        'day_based'
    """
    data = dict(raw)
    if "kind" not in data and "restrictionType" in data:
        data["kind"] = data.pop("restrictionType")

    try:
        restriction: FoodRestriction = _RESTRICTION_ADAPTER.validate_python(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        loc = [str(part) for part in first["loc"]]
        if loc and loc[0] == str(data.get("kind")):
            loc = loc[1:]
        if first["type"] in ("union_tag_not_found", "union_tag_invalid"):
            loc = ["kind"]
        field = ".".join(loc) or "restriction"
        raise InvalidArgumentError(field, first["msg"]) from exc
    return restriction


def parse_restrictions_lenient(
    raws: Iterable[Any],
    client_id: str,
) -> list[FoodRestriction]:
    """
    Parse stored restrictions, dropping malformed ones.

    A malformed stored rule is an inconsistent state: it is logged at
    error level and treated as non-matching instead of failing the request.
    """
    parsed: list[FoodRestriction] = []
    for index, raw in enumerate(raws or []):
        if isinstance(raw, _RestrictionBase):
            parsed.append(raw)  # type: ignore[arg-type]
            continue
        if not isinstance(raw, Mapping):
            logger.error(
                "Inconsistent restriction dropped",
                client_id=client_id,
                index=index,
                error=f"expected mapping, got {type(raw).__name__}",
            )
            continue
        try:
            parsed.append(parse_restriction(raw))
        except InvalidArgumentError as exc:
            logger.error(
                "Inconsistent restriction dropped",
                client_id=client_id,
                index=index,
                field=exc.field,
                error=exc.message,
            )
    return parsed
