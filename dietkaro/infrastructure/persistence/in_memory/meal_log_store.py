"""In-memory meal log and diet plan stores.

Dictionary-backed implementations of IMealLogStore, IMealLogHistory and
IDietPlanStore for tests and local development.
"""

from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from dietkaro.domain.compliance.models import (
    ComplianceResult,
    MealLog,
    MealLogStatus,
    PlannedMeal,
    PlanTargets,
)
from dietkaro.domain.validation.matcher import match_target
from dietkaro.domain.validation.models import FoodItem
from dietkaro.domain.validation.restrictions import FoodRestriction

# Statuses whose consumed foods count toward frequency limits
CONSUMED_STATUSES = frozenset({MealLogStatus.EATEN, MealLogStatus.SUBSTITUTED})


class InMemoryMealLogStore:
    """
    In-memory implementation of IMealLogStore and IMealLogHistory ports.

    Every write bumps the row version, so ``update_compliance`` behaves
    like the conditional update of a real store.

    Thread safety: relies on the event loop; no awaits happen between
    the version check and the write.

    Example:
        >>> store = InMemoryMealLogStore()
        >>> store.save(meal_log, foods=[omelette])
        >>> await store.update_compliance("ml_1", 1, result)
        True
    """

    def __init__(self) -> None:
        """Initialize store with empty storage."""
        self._storage: Dict[str, MealLog] = {}
        self._foods: Dict[str, Tuple[FoodItem, ...]] = {}

    def save(self, meal_log: MealLog, foods: Sequence[FoodItem] = ()) -> MealLog:
        """
        Insert or replace a meal log, bumping its version.

        Args:
            meal_log: Row to store
            foods: Foods actually consumed, used by frequency lookbacks

        Returns:
            The stored row with its new version
        """
        previous = self._storage.get(meal_log.id)
        version = (previous.version if previous else meal_log.version) + 1
        stored = meal_log.model_copy(update={"version": version})
        self._storage[meal_log.id] = stored
        if foods or meal_log.id not in self._foods:
            self._foods[meal_log.id] = tuple(foods)
        return stored

    async def get_meal_log(self, meal_log_id: str, org_id: str) -> Optional[MealLog]:
        """Retrieve a meal log within an organization."""
        meal_log = self._storage.get(meal_log_id)
        if meal_log is None or meal_log.org_id != org_id:
            return None
        return meal_log

    async def list_meal_logs(
        self,
        client_id: str,
        org_id: str,
        start: date,
        end: date,
    ) -> List[MealLog]:
        """List a client's logs in ``[start, end]``, by date then time."""
        logs = [
            log
            for log in self._storage.values()
            if log.client_id == client_id
            and log.org_id == org_id
            and start <= log.scheduled_date <= end
        ]
        return sorted(
            logs,
            key=lambda log: (log.scheduled_date, log.scheduled_time is None, log.scheduled_time),
        )

    async def update_compliance(
        self,
        meal_log_id: str,
        expected_version: int,
        result: ComplianceResult,
    ) -> bool:
        """Write compliance fields if the row is still at ``expected_version``."""
        current = self._storage.get(meal_log_id)
        if current is None or current.version != expected_version:
            return False
        self._storage[meal_log_id] = current.model_copy(
            update={
                "compliance_score": result.score,
                "compliance_color": result.color,
                "compliance_issues": tuple(issue.value for issue in result.issues),
                "version": current.version + 1,
            }
        )
        return True

    async def count_matching_logs(
        self,
        client_id: str,
        org_id: str,
        restriction: FoodRestriction,
        start: date,
        end: date,
    ) -> int:
        """Count consumed foods in ``[start, end]`` matching the rule target."""
        count = 0
        for log in await self.list_meal_logs(client_id, org_id, start, end):
            if log.status not in CONSUMED_STATUSES:
                continue
            for food in self._foods.get(log.id, ()):
                if match_target(restriction, food) is not None:
                    count += 1
        return count


class InMemoryDietPlanStore:
    """In-memory implementation of IDietPlanStore port."""

    def __init__(self) -> None:
        """Initialize store with empty storage."""
        self._meals: Dict[str, Tuple[str, PlannedMeal]] = {}
        self._targets: Dict[Tuple[str, str], PlanTargets] = {}

    def save_meal(self, meal: PlannedMeal, org_id: str) -> None:
        self._meals[meal.meal_id] = (org_id, meal)

    def save_targets(self, client_id: str, org_id: str, targets: PlanTargets) -> None:
        self._targets[(client_id, org_id)] = targets

    async def get_planned_meal(self, meal_id: str, org_id: str) -> Optional[PlannedMeal]:
        entry = self._meals.get(meal_id)
        if entry is None or entry[0] != org_id:
            return None
        return entry[1]

    async def get_plan_targets(self, client_id: str, org_id: str) -> Optional[PlanTargets]:
        return self._targets.get((client_id, org_id))
