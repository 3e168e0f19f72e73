"""
Compliance domain models.

Meal-log rows and diet-plan composition consumed from the stores, the
per-meal ComplianceResult, and the derived adherence read models.
Adherence views are never persisted; they are recomputed on query.
"""

from __future__ import annotations

from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dietkaro.domain.shared.types import MealType, TrafficLight

ComplianceColor = TrafficLight


class MealLogStatus(str, Enum):
    """Lifecycle state of a meal log."""

    PENDING = "pending"
    EATEN = "eaten"
    SKIPPED = "skipped"
    SUBSTITUTED = "substituted"


class IssueCode(str, Enum):
    """Machine-readable reasons attached to a compliance score."""

    LATE_LOG = "late_log"
    NO_PHOTO = "no_photo"
    OPTION_DEVIATION = "option_deviation"
    PORTION_DEVIATION = "portion_deviation"
    SUBSTITUTION = "substitution"
    LARGE_SUBSTITUTION = "large_substitution"
    UNKNOWN_SUBSTITUTE_CALORIES = "unknown_substitute_calories"
    SKIPPED = "skipped"


class Trend(str, Enum):
    """Direction of adherence across a window."""

    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


# ═══════════════════════════════════════════════════════════
# SCORING OUTPUT
# ═══════════════════════════════════════════════════════════


class ComplianceResult(BaseModel):
    """
    Score of one meal log.

    ``score`` and ``color`` are None while the log is pending.

    Example:
        >>> ComplianceResult(score=85, color="GREEN", issues=("no_photo",))
    """

    model_config = ConfigDict(frozen=True)

    score: Optional[int] = Field(None, ge=0, le=100)
    color: Optional[ComplianceColor] = None
    issues: tuple[IssueCode, ...] = ()

    @property
    def is_evaluable(self) -> bool:
        return self.score is not None


# ═══════════════════════════════════════════════════════════
# COLLABORATOR RECORDS
# ═══════════════════════════════════════════════════════════


class MealLog(BaseModel):
    """
    One scheduled or actual eating event, owned by the meal-log store.

    ``version`` increases on every write and backs the conditional
    compliance update.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    client_id: str
    org_id: str
    meal_id: str
    meal_name: str = ""
    meal_type: Optional[MealType] = None

    scheduled_date: date
    scheduled_time: Optional[time] = None
    status: MealLogStatus = MealLogStatus.PENDING
    logged_at: Optional[datetime] = None

    meal_photo_url: Optional[str] = None
    client_notes: Optional[str] = None
    chosen_option_group: Optional[int] = Field(None, ge=0)
    substitute_calories_est: Optional[float] = Field(None, ge=0)
    dietitian_feedback: Optional[str] = None

    compliance_score: Optional[int] = Field(None, ge=0, le=100)
    compliance_color: Optional[ComplianceColor] = None
    compliance_issues: tuple[str, ...] = ()

    version: int = Field(0, ge=0)

    @field_validator("compliance_issues", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or ()

    @property
    def has_photo(self) -> bool:
        return bool(self.meal_photo_url and self.meal_photo_url.strip())


class PlannedFoodItem(BaseModel):
    """One food line of a planned meal."""

    model_config = ConfigDict(frozen=True)

    food_id: str
    quantity_g: float = Field(..., ge=0)
    calories_per_100g: float = Field(0.0, ge=0)
    option_group: int = Field(0, ge=0)

    @property
    def calories(self) -> float:
        return self.calories_per_100g * self.quantity_g / 100


class PlannedMeal(BaseModel):
    """Planned composition of a meal, with its option groups."""

    model_config = ConfigDict(frozen=True)

    meal_id: str
    name: str = ""
    meal_type: Optional[MealType] = None
    items: tuple[PlannedFoodItem, ...] = ()

    def planned_calories(self, option_group: Optional[int] = None) -> float:
        """Calories of the chosen option group only (default group 0)."""
        group = option_group or 0
        return sum(item.calories for item in self.items if item.option_group == group)


class PlanTargets(BaseModel):
    """Plan-level policy used by scoring and adherence."""

    model_config = ConfigDict(frozen=True)

    plan_id: str
    meals_per_day: int = Field(0, ge=0)
    photo_required: bool = False
    target_calories: Optional[float] = Field(None, ge=0)


# ═══════════════════════════════════════════════════════════
# ADHERENCE READ MODELS
# ═══════════════════════════════════════════════════════════


class MealBreakdown(BaseModel):
    """Per-meal line of a daily adherence view."""

    model_config = ConfigDict(frozen=True)

    meal_log_id: str
    meal_name: str
    meal_type: Optional[MealType] = None
    score: Optional[int] = None
    color: Optional[ComplianceColor] = None
    status: MealLogStatus
    issues: tuple[str, ...] = ()


class DailyAdherence(BaseModel):
    """
    Adherence of one calendar day.

    ``has_data`` is False when no meal of the day is evaluable yet;
    such days report ``score=0`` and ``color=None`` and are left out
    of weekly averages, trends and history.
    """

    model_config = ConfigDict(frozen=True)

    date: date
    score: int = Field(0, ge=0, le=100)
    color: Optional[ComplianceColor] = None
    meals_logged: int = Field(0, ge=0)
    meals_planned: int = Field(0, ge=0)
    has_data: bool = False
    meal_breakdown: tuple[MealBreakdown, ...] = ()


class WeeklyAdherence(BaseModel):
    """Seven daily views plus average and trend."""

    model_config = ConfigDict(frozen=True)

    week_start: date
    week_end: date
    average_score: int = Field(0, ge=0, le=100)
    color: Optional[ComplianceColor] = None
    daily_breakdown: tuple[DailyAdherence, ...] = ()
    trend: Trend = Trend.STABLE


class ComplianceHistoryEntry(BaseModel):
    """One charted day."""

    model_config = ConfigDict(frozen=True)

    date: date
    score: int = Field(..., ge=0, le=100)
    color: ComplianceColor


class ComplianceHistory(BaseModel):
    """Trailing window of evaluable days with min/max reduction."""

    model_config = ConfigDict(frozen=True)

    data: tuple[ComplianceHistoryEntry, ...] = ()
    average_score: int = Field(0, ge=0, le=100)
    best_day: Optional[ComplianceHistoryEntry] = None
    worst_day: Optional[ComplianceHistoryEntry] = None
