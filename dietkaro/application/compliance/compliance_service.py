"""
Compliance Service.

Scores a meal log from its current row and writes the result back with
a conditional (version-checked) update. Invoked synchronously by the
meal-log mutation flows: status change, photo upload, dietitian review.

Design Pattern: Service Layer + Dependency Injection
"""

from __future__ import annotations

from typing import Optional

import structlog

from dietkaro.domain.compliance.models import ComplianceResult
from dietkaro.domain.compliance.ports import IDietPlanStore, IMealLogStore
from dietkaro.domain.compliance.scorer import ComplianceScorer
from dietkaro.domain.shared.errors import ConflictError, NotFoundError
from dietkaro.infrastructure.cache.adherence_cache import AdherenceCache

logger = structlog.get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


class ComplianceService:
    """
    Owns the write path of meal-log compliance fields.

    ``score_meal`` returns the value it just wrote. Callers must use that
    return value rather than re-reading the row, which could be served
    by a lagging replica.

    Example:
        >>> service = ComplianceService(meal_logs, plans)
        >>> result = await service.score_meal("ml_1", "org_1")
        >>> result.score, result.color
        (85, 'GREEN')
    """

    def __init__(
        self,
        meal_log_store: IMealLogStore,
        plan_store: IDietPlanStore,
        scorer: Optional[ComplianceScorer] = None,
        adherence_cache: Optional[AdherenceCache] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self.meal_log_store = meal_log_store
        self.plan_store = plan_store
        self.scorer = scorer or ComplianceScorer()
        self.adherence_cache = adherence_cache
        self.max_attempts = max(1, max_attempts)

    async def score_meal(self, meal_log_id: str, org_id: str) -> ComplianceResult:
        """
        Score the current state of a meal log and persist it.

        If the row changes between read and write, it is re-read and
        re-scored, up to ``max_attempts`` times.

        Args:
            meal_log_id: Meal log identifier
            org_id: Caller's organization

        Returns:
            The ComplianceResult that was written

        Raises:
            NotFoundError: Meal log missing or outside the organization
            ConflictError: Row kept changing on every attempt
            DependencyError: A store failed
        """
        for attempt in range(1, self.max_attempts + 1):
            meal_log = await self.meal_log_store.get_meal_log(meal_log_id, org_id)
            if meal_log is None:
                raise NotFoundError("meal_log", meal_log_id)

            planned_meal = await self.plan_store.get_planned_meal(meal_log.meal_id, org_id)
            targets = await self.plan_store.get_plan_targets(meal_log.client_id, org_id)
            result = self.scorer.score(meal_log, planned_meal, targets)

            written = await self.meal_log_store.update_compliance(
                meal_log_id, meal_log.version, result
            )
            if written:
                if self.adherence_cache is not None:
                    self.adherence_cache.invalidate_client(meal_log.client_id)
                logger.info(
                    "Compliance calculated",
                    meal_log_id=meal_log_id,
                    status=meal_log.status.value,
                    score=result.score,
                    color=result.color.value if result.color else None,
                    issues=[issue.value for issue in result.issues],
                )
                return result

            logger.warning(
                "Meal log changed during scoring, rereading",
                meal_log_id=meal_log_id,
                attempt=attempt,
                expected_version=meal_log.version,
            )

        raise ConflictError(
            f"Meal log {meal_log_id} changed during scoring {self.max_attempts} times"
        )
