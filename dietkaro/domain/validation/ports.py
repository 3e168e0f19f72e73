"""
Ports (Interfaces) for Diet Validation Dependencies.

Defines the collaborator contracts consumed by the ValidationEngine.
Stores enforce organization scoping themselves: the engine passes
``org_id`` through and never re-derives it.

Design Pattern: Ports & Adapters (Hexagonal Architecture)
"""

from __future__ import annotations

from datetime import date
from typing import Hashable, Optional, Protocol, Sequence, runtime_checkable

from dietkaro.domain.validation.models import ClientProfile, FoodItem, ValidationResult
from dietkaro.domain.validation.restrictions import FoodRestriction


@runtime_checkable
class IClientProfileStore(Protocol):
    """
    Port for the client profile store.

    Implementations drop malformed stored restrictions through
    ``parse_restrictions_lenient`` before building the profile.
    """

    async def get_client_profile(self, client_id: str, org_id: str) -> Optional[ClientProfile]:
        """
        Load one client's restriction profile.

        Args:
            client_id: Client identifier
            org_id: Caller's organization

        Returns:
            ClientProfile, or None if missing or in another organization

        Raises:
            DependencyError: If the store is unreachable
        """
        ...


@runtime_checkable
class IFoodItemStore(Protocol):
    """Port for the food item store."""

    async def get_food_item(self, food_id: str, org_id: str) -> Optional[FoodItem]:
        """
        Load one food item.

        Returns:
            FoodItem, or None if missing or not visible to the organization

        Raises:
            DependencyError: If the store is unreachable
        """
        ...

    async def get_food_items(self, food_ids: Sequence[str], org_id: str) -> dict[str, FoodItem]:
        """
        Load several food items in one round trip.

        Returns:
            Mapping of food ID to item; missing IDs are absent from the mapping

        Raises:
            DependencyError: If the store is unreachable
        """
        ...


@runtime_checkable
class IMealLogHistory(Protocol):
    """
    Port for the meal-log lookback used by frequency rules.

    Counts foods the client logged as eaten in ``[start, end]`` whose
    tags match the restriction target (same matching as the validator).
    """

    async def count_matching_logs(
        self,
        client_id: str,
        org_id: str,
        restriction: FoodRestriction,
        start: date,
        end: date,
    ) -> int:
        """
        Count matching eaten foods in the inclusive date range.

        Raises:
            DependencyError: If the store is unreachable
        """
        ...


@runtime_checkable
class IValidationCache(Protocol):
    """
    Port for the validation result cache.

    Keys are ``(org_id, client_id, food_id, weekday, meal_type, time_of_day)``
    tuples.
    Writes carry the client generation observed before the store reads,
    so a write racing behind an invalidation is discarded.
    """

    def get(self, key: tuple[Hashable, ...]) -> Optional[ValidationResult]:
        ...

    def snapshot(self, client_id: str) -> int:
        ...

    def put(self, key: tuple[Hashable, ...], result: ValidationResult, generation: int) -> bool:
        ...

    def invalidate_client(self, client_id: str) -> int:
        ...

    def clear(self) -> int:
        ...
