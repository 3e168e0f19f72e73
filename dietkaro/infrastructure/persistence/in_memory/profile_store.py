"""In-memory client profile and food item stores.

Dictionary-backed implementations of IClientProfileStore and
IFoodItemStore for tests and local development.
"""

from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from dietkaro.domain.validation.models import ClientProfile, FoodItem
from dietkaro.domain.validation.restrictions import parse_restrictions_lenient


class InMemoryClientProfileStore:
    """
    In-memory implementation of IClientProfileStore port.

    Profiles are scoped by organization: a lookup with another org_id
    behaves as if the client did not exist.

    Example:
        >>> store = InMemoryClientProfileStore()
        >>> store.save_payload("c1", "org1", {"dietPattern": "vegan"})
        >>> profile = await store.get_client_profile("c1", "org1")
    """

    def __init__(self) -> None:
        """Initialize store with empty storage."""
        self._storage: Dict[str, ClientProfile] = {}

    def save(self, profile: ClientProfile) -> None:
        """Insert or replace a profile."""
        self._storage[profile.client_id] = profile

    def save_payload(self, client_id: str, org_id: str, payload: Mapping[str, Any]) -> ClientProfile:
        """
        Build a profile from a camelCase JSON payload and store it.

        Malformed restrictions are logged and dropped.

        Returns:
            The stored ClientProfile
        """
        profile = ClientProfile(
            client_id=client_id,
            org_id=org_id,
            allergies=payload.get("allergies") or (),
            intolerances=payload.get("intolerances") or (),
            diet_pattern=payload.get("dietPattern"),
            egg_allowed=payload.get("eggAllowed", True),
            egg_avoid_days=payload.get("eggAvoidDays") or (),
            food_restrictions=tuple(
                parse_restrictions_lenient(payload.get("foodRestrictions") or (), client_id)
            ),
            dislikes=payload.get("dislikes") or (),
            avoid_categories=payload.get("avoidCategories") or (),
            medical_conditions=payload.get("medicalConditions") or (),
            lab_derived_tags=payload.get("labDerivedTags") or (),
            liked_foods=payload.get("likedFoods") or (),
            preferred_cuisines=payload.get("preferredCuisines") or (),
        )
        self.save(profile)
        return profile

    async def get_client_profile(self, client_id: str, org_id: str) -> Optional[ClientProfile]:
        """
        Retrieve a client's profile within an organization.

        Returns:
            ClientProfile if found in ``org_id``, None otherwise
        """
        profile = self._storage.get(client_id)
        if profile is None or profile.org_id != org_id:
            return None
        return profile


class InMemoryFoodItemStore:
    """
    In-memory implementation of IFoodItemStore port.

    Items saved without an organization are global (system foods) and
    visible to every organization.
    """

    def __init__(self) -> None:
        """Initialize store with empty storage."""
        self._storage: Dict[str, Tuple[Optional[str], FoodItem]] = {}

    def save(self, food: FoodItem, org_id: Optional[str] = None) -> None:
        """Insert or replace a food item, optionally private to ``org_id``."""
        self._storage[food.id] = (org_id, food)

    async def get_food_item(self, food_id: str, org_id: str) -> Optional[FoodItem]:
        """Retrieve a food item visible to ``org_id``."""
        entry = self._storage.get(food_id)
        if entry is None:
            return None
        owner, food = entry
        if owner is not None and owner != org_id:
            return None
        return food

    async def get_food_items(self, food_ids: Sequence[str], org_id: str) -> Dict[str, FoodItem]:
        """Retrieve several food items; invisible or missing IDs are omitted."""
        found: Dict[str, FoodItem] = {}
        for food_id in food_ids:
            food = await self.get_food_item(food_id, org_id)
            if food is not None:
                found[food_id] = food
        return found
