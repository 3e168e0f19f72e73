"""
Validation result cache.

In-memory LRU map of ValidationResults keyed by
``(org_id, client_id, food_id, weekday, meal_type, time_of_day)``.

No TTL: entries live until the client's profile changes
(``invalidate_client``) or an administrator clears the cache. Keys
carry the weekday and clock time, so lookups from another day or
another time window never collide.

Concurrency: one ``threading.Lock`` guards the map. A per-client
generation counter makes invalidation linearizable with respect to
concurrent writes: callers take ``snapshot(client_id)`` before reading
the stores and pass it to ``put``; a write whose generation is older
than the current one is discarded instead of resurrecting stale data.
Generation stamps are bounded like the entries; an evicted stamp is
folded into the global epoch, so generations never decrease.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from datetime import time
from typing import Hashable, Optional

import structlog

from dietkaro.domain.shared.types import MealType, Weekday
from dietkaro.domain.validation.models import ValidationResult

logger = structlog.get_logger(__name__)

CacheKey = tuple[Hashable, ...]


def make_cache_key(
    org_id: str,
    client_id: str,
    food_id: str,
    day: Weekday,
    meal_type: MealType,
    time_of_day: Optional[time] = None,
) -> CacheKey:
    """Cache key covering the full validation context.

    ``time_of_day`` None means the meal's nominal time and is its own slot.
    """
    clock = time_of_day.isoformat() if time_of_day is not None else None
    return (
        org_id,
        client_id,
        food_id,
        Weekday(day).value,
        MealType(meal_type).value,
        clock,
    )


class ValidationCache:
    """
    Bounded, thread-safe validation cache.

    Constructed once per process by the container and injected into the
    ValidationEngine; tests build a fresh instance each.

    Example:
        >>> cache = ValidationCache(max_entries=100)
        >>> generation = cache.snapshot("client_1")
        >>> cache.put(key, result, generation)
        True
        >>> cache.get(key) is result
        True
    """

    def __init__(self, max_entries: int = 10_000) -> None:
        """Initialize cache.

        Args:
            max_entries: LRU bound; the least recently used entry is
                evicted when exceeded
        """
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self._entries: OrderedDict[CacheKey, ValidationResult] = OrderedDict()
        self._generations: OrderedDict[str, int] = OrderedDict()
        self._epoch = 0  # bumped by clear() and stamp eviction
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _client_of(key: CacheKey) -> str:
        return str(key[1])

    def _generation(self, client_id: str) -> int:
        # Both counters only grow, so any invalidation changes the sum
        return self._epoch + self._generations.get(client_id, 0)

    def get(self, key: CacheKey) -> Optional[ValidationResult]:
        """Get cached result, refreshing its LRU position."""
        with self._lock:
            result = self._entries.get(key)
            if result is None:
                self.misses += 1
            else:
                self._entries.move_to_end(key)
                self.hits += 1

        if result is None:
            logger.debug("Validation cache miss", key=key)
        else:
            logger.debug("Validation cache hit", key=key)
        return result

    def snapshot(self, client_id: str) -> int:
        """Current generation of a client, to be passed to ``put``."""
        with self._lock:
            return self._generation(client_id)

    def put(self, key: CacheKey, result: ValidationResult, generation: int) -> bool:
        """Store a result unless the client was invalidated since ``generation``.

        Returns:
            True if stored, False if discarded as stale
        """
        client_id = self._client_of(key)
        with self._lock:
            if self._generation(client_id) != generation:
                stored = False
            else:
                self._entries[key] = result
                self._entries.move_to_end(key)
                while len(self._entries) > self.max_entries:
                    self._entries.popitem(last=False)
                stored = True

        if not stored:
            logger.debug("Stale validation result discarded", key=key, generation=generation)
        return stored

    def invalidate_client(self, client_id: str) -> int:
        """Drop every entry of a client and bump its generation.

        Returns:
            Number of entries removed
        """
        with self._lock:
            self._generations[client_id] = self._generations.get(client_id, 0) + 1
            self._generations.move_to_end(client_id)
            if len(self._generations) > self.max_entries:
                # Fold the evicted stamp into the epoch so no generation goes down
                _, evicted = self._generations.popitem(last=False)
                self._epoch += evicted
            stale = [key for key in self._entries if self._client_of(key) == client_id]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def clear(self) -> int:
        """Drop every entry and invalidate every in-flight write.

        Returns:
            Number of entries removed
        """
        with self._lock:
            removed = len(self._entries)
            self._epoch += 1
            self._entries.clear()
        return removed

    def size(self) -> int:
        """Get number of cached entries."""
        with self._lock:
            return len(self._entries)
