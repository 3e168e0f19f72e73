"""
Core container.

Builds the caches, engines and services once per process from injected
stores and configuration, and tears them down on shutdown.

Example:
    >>> async with CoreContainer(
    ...     profile_store=profiles,
    ...     food_store=foods,
    ...     meal_log_store=meal_logs,
    ...     plan_store=plans,
    ... ) as core:
    ...     result = await core.validation_engine.validate(...)
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, Optional

import structlog

from dietkaro.application.compliance.adherence_service import AdherenceAggregator
from dietkaro.application.compliance.compliance_service import ComplianceService
from dietkaro.application.validation.engine import ValidationEngine
from dietkaro.domain.compliance.ports import IDietPlanStore, IMealLogStore
from dietkaro.domain.compliance.scorer import ComplianceScorer
from dietkaro.domain.shared.config import ComplianceConfig, ValidationConfig
from dietkaro.domain.validation.ports import (
    IClientProfileStore,
    IFoodItemStore,
    IMealLogHistory,
)
from dietkaro.infrastructure.cache.adherence_cache import AdherenceCache
from dietkaro.infrastructure.cache.validation_cache import ValidationCache
from dietkaro.infrastructure.config import (
    get_log_level,
    load_compliance_config,
    load_validation_config,
)
from dietkaro.infrastructure.logging_config import configure_logging

logger = structlog.get_logger(__name__)


class CoreContainer:
    """
    Explicit process-wide state of the core.

    Components are created by ``startup()`` and dropped by
    ``shutdown()``; accessing them outside that window raises
    RuntimeError. Configuration defaults to the environment.
    """

    def __init__(
        self,
        profile_store: IClientProfileStore,
        food_store: IFoodItemStore,
        meal_log_store: IMealLogStore,
        plan_store: IDietPlanStore,
        history: Optional[IMealLogHistory] = None,
        validation_config: Optional[ValidationConfig] = None,
        compliance_config: Optional[ComplianceConfig] = None,
        log_level: Optional[str] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.profile_store = profile_store
        self.food_store = food_store
        self.meal_log_store = meal_log_store
        self.plan_store = plan_store
        # Meal-log stores usually implement the lookback as well
        if history is None and isinstance(meal_log_store, IMealLogHistory):
            history = meal_log_store
        self.history = history
        self._validation_config = validation_config
        self._compliance_config = compliance_config
        self._log_level = log_level
        self._today = today

        self._validation_cache: Optional[ValidationCache] = None
        self._adherence_cache: Optional[AdherenceCache] = None
        self._validation_engine: Optional[ValidationEngine] = None
        self._compliance_service: Optional[ComplianceService] = None
        self._adherence: Optional[AdherenceAggregator] = None

    # ─── lifecycle ───────────────────────────────────────────────

    @property
    def started(self) -> bool:
        return self._validation_engine is not None

    async def startup(self) -> None:
        """Create caches, engines and services. No-op when already started."""
        if self.started:
            return

        configure_logging(self._log_level or get_log_level())
        validation_config = self._validation_config or load_validation_config()
        compliance_config = self._compliance_config or load_compliance_config()

        self._validation_cache = ValidationCache(max_entries=validation_config.cache_max_entries)
        self._adherence_cache = AdherenceCache(
            ttl_seconds=compliance_config.adherence_cache_ttl_seconds
        )

        self._validation_engine = ValidationEngine(
            profile_store=self.profile_store,
            food_store=self.food_store,
            cache=self._validation_cache,
            history=self.history,
            config=validation_config,
            today=self._today,
        )
        self._compliance_service = ComplianceService(
            meal_log_store=self.meal_log_store,
            plan_store=self.plan_store,
            scorer=ComplianceScorer(compliance_config),
            adherence_cache=self._adherence_cache,
        )
        self._adherence = AdherenceAggregator(
            meal_log_store=self.meal_log_store,
            plan_store=self.plan_store,
            config=compliance_config,
            cache=self._adherence_cache,
            today=self._today,
        )
        logger.info(
            "core.startup",
            cache_max_entries=validation_config.cache_max_entries,
            max_batch_size=validation_config.max_batch_size,
            adherence_ttl=compliance_config.adherence_cache_ttl_seconds,
        )

    async def shutdown(self) -> None:
        """Clear caches and drop components."""
        if not self.started:
            return
        if self._validation_cache is not None:
            self._validation_cache.clear()
        if self._adherence_cache is not None:
            self._adherence_cache.clear()

        self._validation_cache = None
        self._adherence_cache = None
        self._validation_engine = None
        self._compliance_service = None
        self._adherence = None
        logger.info("core.shutdown")

    async def __aenter__(self) -> CoreContainer:
        await self.startup()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.shutdown()

    # ─── components ──────────────────────────────────────────────

    @staticmethod
    def _require(component: Any, name: str) -> Any:
        if component is None:
            raise RuntimeError(f"CoreContainer not started: {name} unavailable")
        return component

    @property
    def validation_engine(self) -> ValidationEngine:
        return self._require(self._validation_engine, "validation_engine")

    @property
    def compliance_service(self) -> ComplianceService:
        return self._require(self._compliance_service, "compliance_service")

    @property
    def adherence(self) -> AdherenceAggregator:
        return self._require(self._adherence, "adherence")

    @property
    def validation_cache(self) -> ValidationCache:
        return self._require(self._validation_cache, "validation_cache")
