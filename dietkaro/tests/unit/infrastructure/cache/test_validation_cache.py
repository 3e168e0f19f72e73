"""Unit tests for ValidationCache."""

from datetime import time

import pytest

from dietkaro.domain.shared.types import MealType, TrafficLight, Weekday
from dietkaro.domain.validation.models import ValidationResult
from dietkaro.infrastructure.cache.validation_cache import ValidationCache, make_cache_key


def result(food_id: str = "f_1") -> ValidationResult:
    return ValidationResult(food_id=food_id, food_name="Food", severity=TrafficLight.GREEN, can_add=True)


def key(client_id: str = "client_1", food_id: str = "f_1", day: Weekday = Weekday.TUESDAY):
    return make_cache_key("org_1", client_id, food_id, day, MealType.LUNCH)


class TestValidationCache:
    """Test ValidationCache."""

    def test_set_and_get(self) -> None:
        """Test basic put and get."""
        cache = ValidationCache(max_entries=10)
        stored = cache.put(key(), result(), cache.snapshot("client_1"))

        assert stored is True
        assert cache.get(key()) == result()
        assert cache.hits == 1

    def test_get_nonexistent(self) -> None:
        cache = ValidationCache()

        assert cache.get(key()) is None
        assert cache.misses == 1

    def test_day_is_part_of_key(self) -> None:
        cache = ValidationCache()
        cache.put(key(day=Weekday.TUESDAY), result(), cache.snapshot("client_1"))

        assert cache.get(key(day=Weekday.WEDNESDAY)) is None

    def test_time_of_day_is_part_of_key(self) -> None:
        cache = ValidationCache()
        morning = make_cache_key("org_1", "client_1", "f_1", Weekday.TUESDAY, MealType.SNACK, time(10, 0))
        night = make_cache_key("org_1", "client_1", "f_1", Weekday.TUESDAY, MealType.SNACK, time(22, 0))
        cache.put(morning, result(), cache.snapshot("client_1"))

        assert cache.get(night) is None
        assert cache.get(key()) is None
        assert cache.get(morning) is not None

    def test_lru_eviction(self) -> None:
        """Test least recently used entry is evicted first."""
        cache = ValidationCache(max_entries=2)
        generation = cache.snapshot("client_1")
        cache.put(key(food_id="a"), result("a"), generation)
        cache.put(key(food_id="b"), result("b"), generation)
        cache.get(key(food_id="a"))

        cache.put(key(food_id="c"), result("c"), generation)

        assert cache.size() == 2
        assert cache.get(key(food_id="b")) is None
        assert cache.get(key(food_id="a")) is not None

    def test_invalidate_client_only_touches_that_client(self) -> None:
        cache = ValidationCache()
        cache.put(key("client_1", "a"), result("a"), cache.snapshot("client_1"))
        cache.put(key("client_1", "b"), result("b"), cache.snapshot("client_1"))
        cache.put(key("client_2", "a"), result("a"), cache.snapshot("client_2"))

        removed = cache.invalidate_client("client_1")

        assert removed == 2
        assert cache.get(key("client_1", "a")) is None
        assert cache.get(key("client_2", "a")) is not None

    def test_write_after_invalidation_is_discarded(self) -> None:
        """Test a result computed before invalidation cannot be stored after it."""
        cache = ValidationCache()
        generation = cache.snapshot("client_1")

        cache.invalidate_client("client_1")
        stored = cache.put(key(), result(), generation)

        assert stored is False
        assert cache.get(key()) is None

    def test_write_after_clear_is_discarded(self) -> None:
        """Test clear() also invalidates clients never seen before."""
        cache = ValidationCache()
        generation = cache.snapshot("client_new")

        cache.clear()

        assert cache.put(key("client_new"), result(), generation) is False

    def test_fresh_snapshot_after_invalidation_stores(self) -> None:
        cache = ValidationCache()
        cache.invalidate_client("client_1")

        assert cache.put(key(), result(), cache.snapshot("client_1")) is True

    def test_clear_returns_removed_count(self) -> None:
        cache = ValidationCache()
        cache.put(key(food_id="a"), result("a"), cache.snapshot("client_1"))
        cache.put(key(food_id="b"), result("b"), cache.snapshot("client_1"))

        assert cache.clear() == 2
        assert cache.size() == 0

    def test_rejects_zero_capacity(self) -> None:
        with pytest.raises(ValueError):
            ValidationCache(max_entries=0)


class TestGenerationStamps:
    """Test the per-client generation bookkeeping."""

    def test_stamps_are_bounded(self) -> None:
        cache = ValidationCache(max_entries=3)

        for n in range(10):
            cache.invalidate_client(f"client_{n}")

        assert len(cache._generations) == 3

    def test_evicted_client_still_rejects_stale_write(self) -> None:
        """Test forgetting a client's stamp never reopens an old generation."""
        cache = ValidationCache(max_entries=2)
        cache.invalidate_client("client_1")
        cache.invalidate_client("client_1")
        generation = cache.snapshot("client_1")
        cache.invalidate_client("client_1")

        cache.invalidate_client("client_2")
        cache.invalidate_client("client_3")
        cache.invalidate_client("client_1")

        assert "client_1" in cache._generations
        assert cache.put(key("client_1"), result(), generation) is False

    def test_eviction_keeps_untouched_client_generation(self) -> None:
        cache = ValidationCache(max_entries=1)
        cache.invalidate_client("client_1")
        generation = cache.snapshot("client_1")

        cache.invalidate_client("client_2")

        assert "client_1" not in cache._generations
        assert cache.put(key("client_1"), result(), generation) is True
