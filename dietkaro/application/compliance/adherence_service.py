"""
Adherence Aggregator.

Read-only roll-ups of stored meal-log scores into daily, weekly and
trailing-window views for dashboards. One range query per call; days
are partitioned in memory.
"""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import date, timedelta
from typing import Callable, Optional, Sequence

import structlog

from dietkaro.domain.compliance.models import (
    ComplianceHistory,
    ComplianceHistoryEntry,
    DailyAdherence,
    MealBreakdown,
    MealLog,
    MealLogStatus,
    PlanTargets,
    Trend,
    WeeklyAdherence,
)
from dietkaro.domain.compliance.ports import IDietPlanStore, IMealLogStore
from dietkaro.domain.compliance.scorer import color_for_score
from dietkaro.domain.shared.config import ComplianceConfig
from dietkaro.domain.shared.errors import InvalidArgumentError
from dietkaro.infrastructure.cache.adherence_cache import AdherenceCache

logger = structlog.get_logger(__name__)


def mean_score(scores: Sequence[float]) -> int:
    """Mean rounded half up, 0 for an empty sequence."""
    if not scores:
        return 0
    return int(math.floor(sum(scores) / len(scores) + 0.5))


def classify_trend(scores: Sequence[float], hysteresis: float) -> Trend:
    """
    Compare the mean of the first half of a window against the second.

    The middle value of an odd-length window belongs to neither half.

    Example:
        >>> classify_trend([40, 45, 50, 70, 75, 80, 85], 5)
        <Trend.IMPROVING: 'improving'>
    """
    if len(scores) < 2:
        return Trend.STABLE
    half = len(scores) // 2
    first = sum(scores[:half]) / half
    second = sum(scores[-half:]) / half
    delta = second - first
    if delta > hysteresis:
        return Trend.IMPROVING
    if delta < -hysteresis:
        return Trend.DECLINING
    return Trend.STABLE


def week_start_of(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


class AdherenceAggregator:
    """
    Computes adherence views from stored meal-log rows.

    Pending logs count as 0 once their scheduled date is in the past;
    pending logs for today or later are excluded. Rows that left pending
    but were never scored get a status-derived fallback score.

    Example:
        >>> aggregator = AdherenceAggregator(meal_logs, plans)
        >>> weekly = await aggregator.weekly_adherence("client_1", "org_1")
        >>> weekly.trend
        <Trend.IMPROVING: 'improving'>
    """

    def __init__(
        self,
        meal_log_store: IMealLogStore,
        plan_store: IDietPlanStore,
        config: Optional[ComplianceConfig] = None,
        cache: Optional[AdherenceCache] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.meal_log_store = meal_log_store
        self.plan_store = plan_store
        self.config = config or ComplianceConfig()
        self.cache = cache
        self._today = today

    # ═══════════════════════════════════════════════════════════
    # PUBLIC VIEWS
    # ═══════════════════════════════════════════════════════════

    async def daily_adherence(self, client_id: str, org_id: str, day: date) -> DailyAdherence:
        """
        Adherence of one calendar day.

        Returns:
            DailyAdherence; ``has_data`` is False when nothing is evaluable
        """
        cache_key = (org_id, "daily", day)
        cached = self._cached(client_id, cache_key)
        if cached is not None:
            return cached

        days = await self._build_days(client_id, org_id, day, day)
        daily = days[0]
        self._store(client_id, cache_key, daily)
        return daily

    async def weekly_adherence(
        self,
        client_id: str,
        org_id: str,
        week_start: Optional[date] = None,
    ) -> WeeklyAdherence:
        """
        Seven daily views starting at ``week_start`` (default: this week's Monday).

        Days without evaluable meals are shown in the breakdown but left
        out of the average and the trend.
        """
        start = week_start or week_start_of(self._today())
        end = start + timedelta(days=6)

        cache_key = (org_id, "weekly", start)
        cached = self._cached(client_id, cache_key)
        if cached is not None:
            return cached

        days = await self._build_days(client_id, org_id, start, end)
        scores = [d.score for d in days if d.has_data]
        average = mean_score(scores)

        weekly = WeeklyAdherence(
            week_start=start,
            week_end=end,
            average_score=average,
            color=color_for_score(average, self.config) if scores else None,
            daily_breakdown=tuple(days),
            trend=classify_trend(scores, self.config.trend_hysteresis),
        )
        self._store(client_id, cache_key, weekly)
        return weekly

    async def compliance_history(
        self,
        client_id: str,
        org_id: str,
        days: int = 30,
    ) -> ComplianceHistory:
        """
        Trailing window of ``days`` calendar days ending today.

        Raises:
            InvalidArgumentError: If ``days`` is outside [1, max_history_days]
        """
        if days < 1 or days > self.config.max_history_days:
            raise InvalidArgumentError(
                "days", f"must be between 1 and {self.config.max_history_days}"
            )

        today = self._today()
        cache_key = (org_id, "history", days, today)
        cached = self._cached(client_id, cache_key)
        if cached is not None:
            return cached

        start = today - timedelta(days=days - 1)
        daily = await self._build_days(client_id, org_id, start, today)

        data = [
            ComplianceHistoryEntry(date=d.date, score=d.score, color=d.color)
            for d in daily
            if d.has_data and d.color is not None
        ]
        history = ComplianceHistory(
            data=tuple(data),
            average_score=mean_score([entry.score for entry in data]),
            best_day=max(data, key=lambda entry: entry.score) if data else None,
            worst_day=min(data, key=lambda entry: entry.score) if data else None,
        )
        self._store(client_id, cache_key, history)
        return history

    # ═══════════════════════════════════════════════════════════
    # INTERNALS
    # ═══════════════════════════════════════════════════════════

    async def _build_days(
        self,
        client_id: str,
        org_id: str,
        start: date,
        end: date,
    ) -> list[DailyAdherence]:
        logs = await self.meal_log_store.list_meal_logs(client_id, org_id, start, end)
        targets = await self.plan_store.get_plan_targets(client_id, org_id)

        by_day: dict[date, list[MealLog]] = defaultdict(list)
        for log in logs:
            by_day[log.scheduled_date].append(log)

        today = self._today()
        result = []
        day = start
        while day <= end:
            result.append(self._build_day(day, by_day.get(day, []), targets, today))
            day += timedelta(days=1)

        logger.debug(
            "Adherence computed",
            client_id=client_id,
            start=start.isoformat(),
            end=end.isoformat(),
            logs=len(logs),
        )
        return result

    def _build_day(
        self,
        day: date,
        logs: list[MealLog],
        targets: Optional[PlanTargets],
        today: date,
    ) -> DailyAdherence:
        breakdown = tuple(self._breakdown(log, today) for log in logs)
        scores = [m.score for m in breakdown if m.score is not None]

        if targets is not None and targets.meals_per_day > 0:
            meals_planned = targets.meals_per_day
        else:
            meals_planned = len(logs)

        score = mean_score(scores)
        return DailyAdherence(
            date=day,
            score=score,
            color=color_for_score(score, self.config) if scores else None,
            meals_logged=sum(1 for log in logs if log.status != MealLogStatus.PENDING),
            meals_planned=meals_planned,
            has_data=bool(scores),
            meal_breakdown=breakdown,
        )

    def _breakdown(self, log: MealLog, today: date) -> MealBreakdown:
        score = self._effective_score(log, today)
        if score is None:
            color = None
        elif log.compliance_score is not None and log.compliance_color is not None:
            color = log.compliance_color
        else:
            color = color_for_score(score, self.config)

        return MealBreakdown(
            meal_log_id=log.id,
            meal_name=log.meal_name,
            meal_type=log.meal_type,
            score=score,
            color=color,
            status=log.status,
            issues=log.compliance_issues,
        )

    def _effective_score(self, log: MealLog, today: date) -> Optional[int]:
        cfg = self.config
        if log.status == MealLogStatus.PENDING:
            # Never logged: counts as 0 once the day is over
            return 0 if log.scheduled_date < today else None
        if log.compliance_score is not None:
            return log.compliance_score
        if log.status == MealLogStatus.EATEN:
            return cfg.fallback_eaten_score
        if log.status == MealLogStatus.SUBSTITUTED:
            return cfg.fallback_substituted_score
        return cfg.skipped_score

    def _cached(self, client_id: str, key: tuple):
        if self.cache is None:
            return None
        return self.cache.get(client_id, key)

    def _store(self, client_id: str, key: tuple, value) -> None:
        if self.cache is not None:
            self.cache.set(client_id, key, value)
