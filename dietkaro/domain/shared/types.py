"""Shared domain types used across validation and compliance."""

from __future__ import annotations

from datetime import date
from enum import Enum


class Weekday(str, Enum):
    """Day of week, lowercase as stored in client profiles."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_date(cls, day: date) -> Weekday:
        """Weekday of a calendar date (Monday first)."""
        return list(cls)[day.weekday()]


class MealType(str, Enum):
    """Meal slot within a day."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    SNACK = "snack"
    DINNER = "dinner"


class TrafficLight(str, Enum):
    """Traffic-light colour shared by validation severity and compliance colour."""

    RED = "RED"
    YELLOW = "YELLOW"
    GREEN = "GREEN"
