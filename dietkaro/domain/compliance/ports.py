"""
Ports (Interfaces) for Compliance Dependencies.

Meal-log and diet-plan store contracts used by the ComplianceService and
the AdherenceAggregator.

Design Pattern: Ports & Adapters (Hexagonal Architecture)
"""

from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, runtime_checkable

from dietkaro.domain.compliance.models import (
    ComplianceResult,
    MealLog,
    PlannedMeal,
    PlanTargets,
)


@runtime_checkable
class IMealLogStore(Protocol):
    """
    Port for meal-log persistence.

    ``update_compliance`` is a conditional write: it only applies when the
    stored row still carries ``expected_version``.
    """

    async def get_meal_log(self, meal_log_id: str, org_id: str) -> Optional[MealLog]:
        """
        Load the current row.

        Returns:
            MealLog, or None if missing or in another organization

        Raises:
            DependencyError: If the store is unreachable
        """
        ...

    async def list_meal_logs(
        self,
        client_id: str,
        org_id: str,
        start: date,
        end: date,
    ) -> list[MealLog]:
        """
        List a client's logs scheduled in the inclusive date range,
        ordered by scheduled date then scheduled time.

        Raises:
            DependencyError: If the store is unreachable
        """
        ...

    async def update_compliance(
        self,
        meal_log_id: str,
        expected_version: int,
        result: ComplianceResult,
    ) -> bool:
        """
        Write score, colour and issues if the row version still matches.

        Returns:
            True if written, False if the row changed meanwhile

        Raises:
            DependencyError: If the store is unreachable
        """
        ...


@runtime_checkable
class IDietPlanStore(Protocol):
    """Port for diet-plan composition and targets."""

    async def get_planned_meal(self, meal_id: str, org_id: str) -> Optional[PlannedMeal]:
        """
        Load a planned meal with its food lines.

        Raises:
            DependencyError: If the store is unreachable
        """
        ...

    async def get_plan_targets(self, client_id: str, org_id: str) -> Optional[PlanTargets]:
        """
        Load the client's active plan policy.

        Returns:
            PlanTargets, or None when the client has no active plan

        Raises:
            DependencyError: If the store is unreachable
        """
        ...
