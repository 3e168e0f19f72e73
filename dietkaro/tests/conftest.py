"""
Shared fixtures for dietkaro tests.

Domain payloads for the validation and compliance engines, plus
AsyncMock-backed store ports for the application services.
"""

from datetime import date, datetime, time
from typing import Any
from unittest.mock import AsyncMock

import pytest

from dietkaro.domain.compliance.models import (
    MealLog,
    MealLogStatus,
    PlannedFoodItem,
    PlannedMeal,
    PlanTargets,
)
from dietkaro.domain.shared.types import MealType, Weekday
from dietkaro.domain.validation.models import ClientProfile, FoodItem, ValidationContext
from dietkaro.domain.validation.restrictions import parse_restriction
from dietkaro.infrastructure.cache.validation_cache import ValidationCache


# ═══════════════════════════════════════════════════════════
# VALIDATION FIXTURES
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def chicken_curry() -> FoodItem:
    """Non-veg food."""
    return FoodItem(
        id="food_chicken_curry",
        name="Chicken Curry",
        category="non_veg",
        cuisine_tags=["north_indian"],
        calories_per_100g=180,
    )


@pytest.fixture
def omelette() -> FoodItem:
    """Egg dish."""
    return FoodItem(
        id="food_omelette",
        name="Omelette",
        category="eggs",
        allergen_flags=["eggs"],
        calories_per_100g=154,
    )


@pytest.fixture
def peanut_chikki() -> FoodItem:
    """Sweet with peanuts."""
    return FoodItem(
        id="food_chikki",
        name="Peanut Chikki",
        category="vegetarian",
        allergen_flags=["peanuts"],
        health_flags=["high_sugar"],
    )


@pytest.fixture
def dal() -> FoodItem:
    """Plain vegan lentils."""
    return FoodItem(
        id="food_dal",
        name="Moong Dal",
        category="vegan",
        dietary_tags=["high_protein"],
        cuisine_tags=["north_indian"],
    )


@pytest.fixture
def tuesday_breakfast() -> ValidationContext:
    return ValidationContext(current_day=Weekday.TUESDAY, meal_type=MealType.BREAKFAST)


@pytest.fixture
def fasting_restriction() -> Any:
    """No non-veg on Tuesday/Thursday, eggs allowed."""
    return parse_restriction(
        {
            "foodCategory": "non_veg",
            "restrictionType": "day_based",
            "avoidDays": ["tuesday", "thursday"],
            "excludes": ["eggs"],
            "severity": "strict",
            "reason": "religious_fasting",
        }
    )


@pytest.fixture
def vegan_profile() -> ClientProfile:
    return ClientProfile(client_id="client_1", org_id="org_1", diet_pattern="vegan")


@pytest.fixture
def fasting_profile(fasting_restriction: Any) -> ClientProfile:
    return ClientProfile(
        client_id="client_2",
        org_id="org_1",
        diet_pattern="non_veg",
        food_restrictions=(fasting_restriction,),
    )


@pytest.fixture
def validation_cache() -> ValidationCache:
    """Fresh cache per test."""
    return ValidationCache(max_entries=100)


@pytest.fixture
def mock_profile_store() -> AsyncMock:
    """Mock IClientProfileStore."""
    store = AsyncMock()
    store.get_client_profile = AsyncMock(return_value=None)
    return store


@pytest.fixture
def mock_food_store() -> AsyncMock:
    """Mock IFoodItemStore."""
    store = AsyncMock()
    store.get_food_item = AsyncMock(return_value=None)
    store.get_food_items = AsyncMock(return_value={})
    return store


# ═══════════════════════════════════════════════════════════
# COMPLIANCE FIXTURES
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def planned_lunch() -> PlannedMeal:
    """600 kcal default option, 400 kcal alternative."""
    return PlannedMeal(
        meal_id="meal_lunch",
        name="Lunch",
        meal_type=MealType.LUNCH,
        items=(
            PlannedFoodItem(food_id="rice", quantity_g=200, calories_per_100g=130, option_group=0),
            PlannedFoodItem(food_id="dal", quantity_g=200, calories_per_100g=170, option_group=0),
            PlannedFoodItem(food_id="roti", quantity_g=150, calories_per_100g=266.67, option_group=1),
        ),
    )


@pytest.fixture
def photo_targets() -> PlanTargets:
    return PlanTargets(plan_id="plan_1", meals_per_day=4, photo_required=True)


@pytest.fixture
def eaten_log() -> MealLog:
    """Eaten on time with a photo."""
    return MealLog(
        id="ml_1",
        client_id="client_1",
        org_id="org_1",
        meal_id="meal_lunch",
        meal_name="Lunch",
        meal_type=MealType.LUNCH,
        scheduled_date=date(2024, 3, 12),
        scheduled_time=time(13, 0),
        status=MealLogStatus.EATEN,
        logged_at=datetime(2024, 3, 12, 13, 10),
        meal_photo_url="https://cdn.example.com/ml_1.jpg",
        version=1,
    )


@pytest.fixture
def mock_meal_log_store() -> AsyncMock:
    """Mock IMealLogStore."""
    store = AsyncMock()
    store.get_meal_log = AsyncMock(return_value=None)
    store.list_meal_logs = AsyncMock(return_value=[])
    store.update_compliance = AsyncMock(return_value=True)
    return store


@pytest.fixture
def mock_plan_store() -> AsyncMock:
    """Mock IDietPlanStore."""
    store = AsyncMock()
    store.get_planned_meal = AsyncMock(return_value=None)
    store.get_plan_targets = AsyncMock(return_value=None)
    return store
