"""
Validation rule tables.

Static mappings used by the severity resolver: allergen synonyms,
intolerance triggers, diet-pattern conflicts, medical and lab cautions.
All keys and values are lowercase.
"""

from __future__ import annotations

from datetime import time

from dietkaro.domain.shared.types import MealType

# Client allergy name -> food allergen flag
ALLERGEN_MAPPING: dict[str, str] = {
    "peanuts": "peanuts",
    "peanut": "peanuts",
    "tree_nuts": "tree_nuts",
    "almonds": "tree_nuts",
    "cashews": "tree_nuts",
    "walnuts": "tree_nuts",
    "dairy": "dairy",
    "milk": "dairy",
    "eggs": "eggs",
    "egg": "eggs",
    "wheat": "wheat",
    "gluten": "gluten",
    "soy": "soy",
    "fish": "fish",
    "shellfish": "shellfish",
    "shrimp": "shellfish",
    "crab": "shellfish",
    "sesame": "sesame",
    "mustard": "mustard",
    "celery": "celery",
    "sulphites": "sulphites",
    "lupin": "lupin",
    "mollusks": "mollusks",
}

# Client intolerance -> food allergen flags / tags that trigger it
INTOLERANCE_MAPPING: dict[str, tuple[str, ...]] = {
    "lactose": ("dairy", "milk"),
    "gluten": ("wheat", "gluten"),
    "fructose": ("high_sugar",),
    "histamine": ("fermented", "aged_cheese"),
    "caffeine": ("coffee", "tea", "chocolate"),
}

# Client diet pattern -> food classifications it cannot eat
DIET_CONFLICTS: dict[str, frozenset[str]] = {
    "vegan": frozenset({"non_veg", "vegetarian", "veg_with_egg", "eggs", "dairy"}),
    "vegetarian": frozenset({"non_veg"}),
    "vegetarian_with_egg": frozenset({"non_veg"}),
    "eggetarian": frozenset({"non_veg"}),
    "jain": frozenset({"non_veg", "veg_with_egg", "eggs", "root_vegetable", "root_vegetables"}),
}

# Classifications that contain egg (vegetarian + egg_allowed=False)
EGG_CLASSIFICATIONS: frozenset[str] = frozenset({"veg_with_egg", "eggs"})

# Tags that make a non_veg food acceptable for pescatarians
SEAFOOD_TAGS: frozenset[str] = frozenset({"fish", "seafood", "shellfish", "pescatarian"})

DIET_PATTERN_MESSAGES: dict[str, str] = {
    "vegan": "VEGAN: Client only eats vegan food",
    "vegetarian": "VEGETARIAN: Client doesn't eat meat/fish",
    "vegetarian_with_egg": "VEGETARIAN: Client doesn't eat meat/fish",
    "eggetarian": "EGGETARIAN: Client doesn't eat meat/fish",
    "jain": "JAIN: Client avoids non-veg, eggs and root vegetables",
}

# Client medical condition -> food health flags that warrant caution
MEDICAL_FLAG_MAPPING: dict[str, tuple[str, ...]] = {
    "diabetes": ("diabetic_caution", "high_sugar"),
    "pre_diabetes": ("diabetic_caution", "high_sugar"),
    "heart_disease": ("heart_caution", "high_saturated_fat", "high_sodium"),
    "heart_pain": ("heart_caution", "high_saturated_fat"),
    "high_cholesterol": ("cholesterol_caution", "heart_caution"),
    "hypertension": ("high_sodium",),
    "kidney_disease": ("kidney_caution", "high_protein", "high_sodium"),
    "kidney_issues": ("kidney_caution", "high_protein"),
    "pcos": ("diabetic_caution", "high_sugar"),
    "thyroid": ("iodine_caution",),
    "obesity": ("diabetic_caution", "high_fat"),
    "high_uric_acid": ("kidney_caution", "high_protein"),
}

MEDICAL_RECOMMENDATIONS: dict[str, str] = {
    "high_sugar": "Consider lower-sugar alternative",
    "diabetic_caution": "Consider lower-sugar alternative",
    "high_sodium": "Choose low-sodium alternatives",
    "high_saturated_fat": "Limit intake or choose heart-healthy alternatives",
    "heart_caution": "Limit intake or choose heart-healthy alternatives",
    "cholesterol_caution": "Maximum 2-3 times per week",
}

# Lab-derived client tag -> (food health flag, message, recommendation)
LAB_CAUTIONS: dict[str, tuple[str, str, str]] = {
    "high_cholesterol": (
        "cholesterol_caution",
        "LAB ALERT: Client's cholesterol is elevated, limit high-cholesterol foods",
        "Maximum 2-3 times per week",
    ),
}

# Lab-derived client tag -> (food health flag, nutrient the food supplies)
LAB_NUTRIENT_MATCHES: dict[str, tuple[str, str]] = {
    "vitamin_d_deficiency": ("vitamin_d_rich", "Vitamin D"),
}

# Used by time-window rules when the caller gives no clock time
MEAL_NOMINAL_TIMES: dict[MealType, time] = {
    MealType.BREAKFAST: time(8, 0),
    MealType.LUNCH: time(13, 0),
    MealType.SNACK: time(16, 30),
    MealType.DINNER: time(20, 0),
}


def allergen_flag(allergy: str) -> str:
    """Canonical allergen flag for a client allergy name."""
    return ALLERGEN_MAPPING.get(allergy, allergy)
