"""
Diet Validation Engine.

Facade over the severity resolver: loads the client profile and food
items from the stores, consults and populates the validation cache, and
exposes single and batch validation to the HTTP layer.

Design Pattern: Service Layer + Dependency Injection
"""

from __future__ import annotations

import asyncio
import time
from datetime import date, timedelta
from typing import Any, Callable, Optional, Sequence

import structlog

from dietkaro.domain.shared.config import ValidationConfig
from dietkaro.domain.shared.errors import (
    AuthorizationError,
    InvalidArgumentError,
    NotFoundError,
)
from dietkaro.domain.validation.matcher import FrequencyUsage, match_target
from dietkaro.domain.validation.models import (
    BatchValidationResult,
    ClientProfile,
    FoodItem,
    ValidationContext,
    ValidationResult,
)
from dietkaro.domain.validation.ports import (
    IClientProfileStore,
    IFoodItemStore,
    IMealLogHistory,
    IValidationCache,
)
from dietkaro.domain.validation.resolver import SeverityResolver
from dietkaro.domain.validation.restrictions import FrequencyRestriction
from dietkaro.infrastructure.cache.validation_cache import make_cache_key

logger = structlog.get_logger(__name__)

CACHE_ADMIN_ROLES = frozenset({"admin", "owner"})


class ValidationEngine:
    """
    Validates candidate foods against a client's restriction profile.

    Responsibilities:
    - Cache lookup / population per (client, food, day, meal)
    - Profile and food loading, with organization scoping delegated to
      the stores
    - Frequency-rule lookback against the meal-log history
    - Batch validation with bounded concurrency

    Dependencies (injected via Ports/Interfaces):
    - profile_store: IClientProfileStore
    - food_store: IFoodItemStore
    - cache: IValidationCache
    - history: IMealLogHistory (optional; without it frequency rules
      are treated as non-matching)

    Store failures propagate unchanged; nothing is retried here.

    Example:
        >>> engine = ValidationEngine(profile_store, food_store, cache)
        >>> result = await engine.validate(
        ...     "client_1", "org_1", "food_9",
        ...     {"currentDay": "tuesday", "mealType": "breakfast"},
        ... )
        >>> result.severity
        'GREEN'
    """

    def __init__(
        self,
        profile_store: IClientProfileStore,
        food_store: IFoodItemStore,
        cache: IValidationCache,
        history: Optional[IMealLogHistory] = None,
        resolver: Optional[SeverityResolver] = None,
        config: Optional[ValidationConfig] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.profile_store = profile_store
        self.food_store = food_store
        self.cache = cache
        self.history = history
        self.resolver = resolver or SeverityResolver()
        self.config = config or ValidationConfig()
        self._today = today

    # ═══════════════════════════════════════════════════════════
    # SINGLE VALIDATION
    # ═══════════════════════════════════════════════════════════

    async def validate(
        self,
        client_id: str,
        org_id: str,
        food_id: str,
        context: Any,
    ) -> ValidationResult:
        """
        Validate one food for one client.

        Args:
            client_id: Client identifier
            org_id: Caller's organization
            food_id: Food item identifier
            context: ValidationContext or payload with currentDay / mealType

        Returns:
            ValidationResult (possibly served from cache)

        Raises:
            InvalidArgumentError: Missing or invalid context
            NotFoundError: Client or food missing or outside the organization
            DependencyError: A store failed
        """
        ctx = ValidationContext.from_payload(context)
        key = make_cache_key(
            org_id, client_id, food_id, ctx.current_day, ctx.meal_type, ctx.time_of_day
        )

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        # Taken before any store read
        generation = self.cache.snapshot(client_id)

        profile = await self._load_profile(client_id, org_id)
        food = await self.food_store.get_food_item(food_id, org_id)
        if food is None:
            raise NotFoundError("food_item", food_id)

        result, history_dependent = await self._evaluate(profile, food, ctx)
        if not history_dependent:
            self.cache.put(key, result, generation)

        logger.debug(
            "Food validated",
            client_id=client_id,
            food_id=food_id,
            severity=result.severity.value,
            alerts=len(result.alerts),
        )
        return result

    # ═══════════════════════════════════════════════════════════
    # BATCH VALIDATION
    # ═══════════════════════════════════════════════════════════

    async def validate_batch(
        self,
        client_id: str,
        org_id: str,
        food_ids: Sequence[str],
        context: Any,
    ) -> BatchValidationResult:
        """
        Validate several foods for one client in one call.

        The profile is loaded once, cache hits are served directly and
        misses are evaluated concurrently. Either every food gets a
        result or the whole call fails.

        Args:
            client_id: Client identifier
            org_id: Caller's organization
            food_ids: 1 to ``max_batch_size`` food IDs
            context: ValidationContext or payload

        Returns:
            BatchValidationResult with results in request order

        Raises:
            InvalidArgumentError: Empty or oversized ``food_ids``, bad context
            NotFoundError: Client or any food missing
            DependencyError: A store failed
        """
        started = time.perf_counter()

        food_ids = list(food_ids or [])
        if not food_ids:
            raise InvalidArgumentError("food_ids", "At least one food ID is required")
        if len(food_ids) > self.config.max_batch_size:
            raise InvalidArgumentError(
                "food_ids", f"Maximum {self.config.max_batch_size} foods per batch"
            )
        ctx = ValidationContext.from_payload(context)

        generation = self.cache.snapshot(client_id)
        profile = await self._load_profile(client_id, org_id)

        results: dict[str, ValidationResult] = {}
        misses: list[str] = []
        for food_id in dict.fromkeys(food_ids):
            key = make_cache_key(
                org_id, client_id, food_id, ctx.current_day, ctx.meal_type, ctx.time_of_day
            )
            cached = self.cache.get(key)
            if cached is not None:
                results[food_id] = cached
            else:
                misses.append(food_id)

        if misses:
            foods = await self.food_store.get_food_items(misses, org_id)
            missing = [food_id for food_id in misses if food_id not in foods]
            if missing:
                raise NotFoundError("food_item", ", ".join(missing))

            semaphore = asyncio.Semaphore(self.config.batch_concurrency)

            async def evaluate(food: FoodItem) -> tuple[ValidationResult, bool]:
                async with semaphore:
                    return await self._evaluate(profile, food, ctx)

            evaluated = await asyncio.gather(*(evaluate(foods[food_id]) for food_id in misses))

            for food_id, (result, history_dependent) in zip(misses, evaluated):
                results[food_id] = result
                if not history_dependent:
                    key = make_cache_key(
                        org_id, client_id, food_id, ctx.current_day, ctx.meal_type, ctx.time_of_day
                    )
                    self.cache.put(key, result, generation)

        processing_time_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "Batch validated",
            client_id=client_id,
            foods=len(food_ids),
            cache_hits=len(food_ids) - len(misses),
            processing_time_ms=processing_time_ms,
        )
        return BatchValidationResult(
            results=tuple(results[food_id] for food_id in food_ids),
            processing_time_ms=processing_time_ms,
        )

    # ═══════════════════════════════════════════════════════════
    # CACHE ADMINISTRATION
    # ═══════════════════════════════════════════════════════════

    def invalidate_client_cache(self, client_id: str) -> int:
        """
        Drop a client's cached results. Called on every profile change.

        Returns:
            Number of entries removed
        """
        removed = self.cache.invalidate_client(client_id)
        logger.info("Validation cache invalidated", client_id=client_id, removed=removed)
        return removed

    def clear_cache(self, actor_role: str) -> int:
        """
        Drop the whole cache.

        Raises:
            AuthorizationError: Unless the actor is an admin or owner
        """
        if (actor_role or "").lower() not in CACHE_ADMIN_ROLES:
            raise AuthorizationError(f"Role '{actor_role}' cannot clear the validation cache")
        removed = self.cache.clear()
        logger.info("Validation cache cleared", actor_role=actor_role, removed=removed)
        return removed

    # ═══════════════════════════════════════════════════════════
    # INTERNALS
    # ═══════════════════════════════════════════════════════════

    async def _load_profile(self, client_id: str, org_id: str) -> ClientProfile:
        profile = await self.profile_store.get_client_profile(client_id, org_id)
        if profile is None:
            raise NotFoundError("client", client_id)
        return profile

    async def _evaluate(
        self,
        profile: ClientProfile,
        food: FoodItem,
        ctx: ValidationContext,
    ) -> tuple[ValidationResult, bool]:
        """Resolve one food; the flag tells whether history was consulted."""
        usage = await self._frequency_usage(profile, food)
        return self.resolver.resolve(food, profile, ctx, usage), bool(usage)

    async def _frequency_usage(
        self,
        profile: ClientProfile,
        food: FoodItem,
    ) -> dict[int, FrequencyUsage]:
        if self.history is None:
            return {}

        today = self._today()
        week_start = today - timedelta(days=self.config.frequency_lookback_days - 1)
        usage: dict[int, FrequencyUsage] = {}

        for index, restriction in enumerate(profile.food_restrictions):
            if not isinstance(restriction, FrequencyRestriction):
                continue
            if match_target(restriction, food) is None:
                continue

            day_count = 0
            week_count = 0
            if restriction.max_per_day is not None:
                day_count = await self.history.count_matching_logs(
                    profile.client_id, profile.org_id, restriction, today, today
                )
            if restriction.max_per_week is not None:
                week_count = await self.history.count_matching_logs(
                    profile.client_id, profile.org_id, restriction, week_start, today
                )
            usage[index] = FrequencyUsage(day_count=day_count, week_count=week_count)

        return usage
