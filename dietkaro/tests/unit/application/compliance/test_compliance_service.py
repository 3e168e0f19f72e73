"""
Unit tests for ComplianceService.

Covers the conditional write, reread on version conflict and adherence
cache invalidation.
"""

from unittest.mock import AsyncMock

import pytest

from dietkaro.application.compliance.compliance_service import ComplianceService
from dietkaro.domain.compliance.models import (
    IssueCode,
    MealLog,
    MealLogStatus,
    PlannedMeal,
    PlanTargets,
)
from dietkaro.domain.shared.errors import ConflictError, DependencyError, NotFoundError
from dietkaro.domain.shared.types import TrafficLight
from dietkaro.infrastructure.cache.adherence_cache import AdherenceCache


@pytest.fixture
def service(mock_meal_log_store: AsyncMock, mock_plan_store: AsyncMock) -> ComplianceService:
    return ComplianceService(meal_log_store=mock_meal_log_store, plan_store=mock_plan_store)


class TestScoreMeal:
    """Test score_meal."""

    @pytest.mark.asyncio
    async def test_scores_and_writes_with_version(
        self,
        service: ComplianceService,
        mock_meal_log_store: AsyncMock,
        mock_plan_store: AsyncMock,
        eaten_log: MealLog,
        planned_lunch: PlannedMeal,
        photo_targets: PlanTargets,
    ) -> None:
        mock_meal_log_store.get_meal_log.return_value = eaten_log
        mock_plan_store.get_planned_meal.return_value = planned_lunch
        mock_plan_store.get_plan_targets.return_value = photo_targets

        result = await service.score_meal("ml_1", "org_1")

        assert result.score == 100
        assert result.color == TrafficLight.GREEN
        mock_meal_log_store.update_compliance.assert_called_once_with("ml_1", 1, result)
        mock_plan_store.get_planned_meal.assert_called_once_with("meal_lunch", "org_1")
        mock_plan_store.get_plan_targets.assert_called_once_with("client_1", "org_1")

    @pytest.mark.asyncio
    async def test_missing_photo_scored_from_current_row(
        self,
        service: ComplianceService,
        mock_meal_log_store: AsyncMock,
        mock_plan_store: AsyncMock,
        eaten_log: MealLog,
        photo_targets: PlanTargets,
    ) -> None:
        mock_meal_log_store.get_meal_log.return_value = eaten_log.model_copy(
            update={"meal_photo_url": None}
        )
        mock_plan_store.get_plan_targets.return_value = photo_targets

        result = await service.score_meal("ml_1", "org_1")

        assert result.score == 85
        assert result.issues == (IssueCode.NO_PHOTO,)

    @pytest.mark.asyncio
    async def test_pending_writes_empty_result(
        self,
        service: ComplianceService,
        mock_meal_log_store: AsyncMock,
        eaten_log: MealLog,
    ) -> None:
        mock_meal_log_store.get_meal_log.return_value = eaten_log.model_copy(
            update={"status": MealLogStatus.PENDING}
        )

        result = await service.score_meal("ml_1", "org_1")

        assert result.score is None
        mock_meal_log_store.update_compliance.assert_called_once()

    @pytest.mark.asyncio
    async def test_missing_meal_log(self, service: ComplianceService) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await service.score_meal("ghost", "org_1")

        assert exc_info.value.resource == "meal_log"

    @pytest.mark.asyncio
    async def test_version_conflict_rereads_and_rescores(
        self,
        service: ComplianceService,
        mock_meal_log_store: AsyncMock,
        eaten_log: MealLog,
    ) -> None:
        """Test a concurrent status change is picked up by the retry."""
        changed = eaten_log.model_copy(update={"status": MealLogStatus.SKIPPED, "version": 2})
        mock_meal_log_store.get_meal_log.side_effect = [eaten_log, changed]
        mock_meal_log_store.update_compliance.side_effect = [False, True]

        result = await service.score_meal("ml_1", "org_1")

        assert result.score == 0
        assert result.issues == (IssueCode.SKIPPED,)
        assert mock_meal_log_store.update_compliance.call_args_list[1].args[1] == 2

    @pytest.mark.asyncio
    async def test_persistent_conflict_raises(
        self,
        mock_meal_log_store: AsyncMock,
        mock_plan_store: AsyncMock,
        eaten_log: MealLog,
    ) -> None:
        service = ComplianceService(mock_meal_log_store, mock_plan_store, max_attempts=3)
        mock_meal_log_store.get_meal_log.return_value = eaten_log
        mock_meal_log_store.update_compliance.return_value = False

        with pytest.raises(ConflictError):
            await service.score_meal("ml_1", "org_1")

        assert mock_meal_log_store.update_compliance.call_count == 3

    @pytest.mark.asyncio
    async def test_store_failure_propagates(
        self, service: ComplianceService, mock_meal_log_store: AsyncMock
    ) -> None:
        mock_meal_log_store.get_meal_log.side_effect = DependencyError("meal_log_store")

        with pytest.raises(DependencyError):
            await service.score_meal("ml_1", "org_1")

    @pytest.mark.asyncio
    async def test_invalidates_adherence_views(
        self,
        mock_meal_log_store: AsyncMock,
        mock_plan_store: AsyncMock,
        eaten_log: MealLog,
    ) -> None:
        cache = AdherenceCache(ttl_seconds=60)
        cache.set("client_1", ("org_1", "daily", eaten_log.scheduled_date), "stale view")
        service = ComplianceService(mock_meal_log_store, mock_plan_store, adherence_cache=cache)
        mock_meal_log_store.get_meal_log.return_value = eaten_log

        await service.score_meal("ml_1", "org_1")

        assert cache.size() == 0

    @pytest.mark.asyncio
    async def test_failed_write_keeps_cache(
        self,
        mock_meal_log_store: AsyncMock,
        mock_plan_store: AsyncMock,
        eaten_log: MealLog,
    ) -> None:
        cache = AdherenceCache(ttl_seconds=60)
        cache.set("client_1", "weekly", "view")
        service = ComplianceService(
            mock_meal_log_store, mock_plan_store, adherence_cache=cache, max_attempts=1
        )
        mock_meal_log_store.get_meal_log.return_value = eaten_log
        mock_meal_log_store.update_compliance.return_value = False

        with pytest.raises(ConflictError):
            await service.score_meal("ml_1", "org_1")

        assert cache.size() == 1
