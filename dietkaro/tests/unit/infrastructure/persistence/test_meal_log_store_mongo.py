"""
Unit tests for MongoDB meal log store.

Uses AsyncMock for Motor (MongoDB async driver) to avoid real DB dependencies.
"""

from datetime import date, datetime, time
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from dietkaro.domain.compliance.models import (
    ComplianceResult,
    IssueCode,
    MealLog,
    MealLogStatus,
)
from dietkaro.domain.shared.errors import DependencyError
from dietkaro.domain.shared.types import MealType, TrafficLight
from dietkaro.domain.validation.models import FoodItem
from dietkaro.domain.validation.restrictions import parse_restriction
from dietkaro.infrastructure.persistence.mongodb.meal_log_store_mongo import MealLogStoreMongo


@pytest.fixture
def mock_db() -> MagicMock:
    """Mock Motor AsyncIOMotorDatabase."""
    db = MagicMock()
    collection = AsyncMock()
    db.__getitem__ = MagicMock(return_value=collection)
    return db


@pytest.fixture
def mock_collection(mock_db: MagicMock) -> AsyncMock:
    """Get mock collection from mock database."""
    collection: AsyncMock = mock_db["meal_logs"]
    return collection


@pytest.fixture
def store(mock_db: MagicMock) -> MealLogStoreMongo:
    return MealLogStoreMongo(mock_db)


def stored_doc(**overrides: Any) -> dict[str, Any]:
    """Raw document as written by the store."""
    doc: dict[str, Any] = {
        "_id": "object_id",
        "meal_log_id": "ml_1",
        "client_id": "client_1",
        "org_id": "org_1",
        "meal_id": "meal_lunch",
        "meal_name": "Lunch",
        "meal_type": "lunch",
        "scheduled_date": "2024-03-12",
        "scheduled_time": "13:00",
        "status": "eaten",
        "logged_at": datetime(2024, 3, 12, 13, 10),
        "meal_photo_url": None,
        "compliance_score": 85,
        "compliance_color": "GREEN",
        "compliance_issues": ["no_photo"],
        "version": 3,
        "consumed_foods": [],
    }
    doc.update(overrides)
    return doc


def cursor_returning(docs: list[dict[str, Any]]) -> MagicMock:
    cursor = MagicMock()
    cursor.sort = MagicMock(return_value=cursor)
    cursor.to_list = AsyncMock(return_value=docs)
    return cursor


class TestMealLogStoreMongo:
    """Test suite for MongoDB meal log store."""

    @pytest.mark.asyncio
    async def test_ensure_indexes_runs_once(
        self, store: MealLogStoreMongo, mock_collection: AsyncMock
    ) -> None:
        await store._ensure_indexes()
        await store._ensure_indexes()

        assert mock_collection.create_index.call_count == 2
        names = [c.kwargs["name"] for c in mock_collection.create_index.call_args_list]
        assert names == ["unique_meal_log_id", "idx_client_schedule"]

    @pytest.mark.asyncio
    async def test_get_meal_log_maps_document(
        self, store: MealLogStoreMongo, mock_collection: AsyncMock
    ) -> None:
        mock_collection.find_one.return_value = stored_doc()

        meal_log = await store.get_meal_log("ml_1", "org_1")

        assert meal_log is not None
        assert meal_log.scheduled_date == date(2024, 3, 12)
        assert meal_log.scheduled_time == time(13, 0)
        assert meal_log.meal_type == MealType.LUNCH
        assert meal_log.status == MealLogStatus.EATEN
        assert meal_log.compliance_color == TrafficLight.GREEN
        assert meal_log.compliance_issues == ("no_photo",)
        assert meal_log.version == 3
        mock_collection.find_one.assert_called_once_with({"meal_log_id": "ml_1", "org_id": "org_1"})

    @pytest.mark.asyncio
    async def test_get_meal_log_not_found(
        self, store: MealLogStoreMongo, mock_collection: AsyncMock
    ) -> None:
        mock_collection.find_one.return_value = None

        assert await store.get_meal_log("ghost", "org_1") is None

    @pytest.mark.asyncio
    async def test_list_uses_date_range_query(
        self, store: MealLogStoreMongo, mock_collection: AsyncMock
    ) -> None:
        mock_collection.find = MagicMock(return_value=cursor_returning([stored_doc()]))

        logs = await store.list_meal_logs("client_1", "org_1", date(2024, 3, 11), date(2024, 3, 17))

        assert [log.id for log in logs] == ["ml_1"]
        query = mock_collection.find.call_args.args[0]
        assert query["scheduled_date"] == {"$gte": "2024-03-11", "$lte": "2024-03-17"}
        assert query["org_id"] == "org_1"

    @pytest.mark.asyncio
    async def test_update_compliance_is_conditional(
        self, store: MealLogStoreMongo, mock_collection: AsyncMock
    ) -> None:
        mock_collection.update_one.return_value = MagicMock(matched_count=1)
        result = ComplianceResult(score=85, color=TrafficLight.GREEN, issues=(IssueCode.NO_PHOTO,))

        written = await store.update_compliance("ml_1", 3, result)

        assert written is True
        filter_, update = mock_collection.update_one.call_args.args
        assert filter_ == {"meal_log_id": "ml_1", "version": 3}
        assert update["$set"]["compliance_score"] == 85
        assert update["$set"]["compliance_color"] == "GREEN"
        assert update["$set"]["compliance_issues"] == ["no_photo"]
        assert update["$inc"] == {"version": 1}

    @pytest.mark.asyncio
    async def test_update_compliance_version_moved(
        self, store: MealLogStoreMongo, mock_collection: AsyncMock
    ) -> None:
        mock_collection.update_one.return_value = MagicMock(matched_count=0)

        written = await store.update_compliance("ml_1", 2, ComplianceResult())

        assert written is False

    @pytest.mark.asyncio
    async def test_save_upserts_and_bumps_version(
        self, store: MealLogStoreMongo, mock_collection: AsyncMock, eaten_log: MealLog
    ) -> None:
        await store.save(eaten_log)

        filter_, update = mock_collection.update_one.call_args.args
        assert filter_ == {"meal_log_id": "ml_1"}
        assert "version" not in update["$set"]
        assert update["$set"]["scheduled_date"] == "2024-03-12"
        assert update["$set"]["scheduled_time"] == "13:00"
        assert update["$inc"] == {"version": 1}
        assert mock_collection.update_one.call_args.kwargs["upsert"] is True

    @pytest.mark.asyncio
    async def test_count_matching_logs(
        self, store: MealLogStoreMongo, mock_collection: AsyncMock
    ) -> None:
        ladoo = FoodItem(id="f_ladoo", name="Besan Ladoo", category="sweets")
        dal = FoodItem(id="f_dal", name="Dal", category="vegan")
        docs = [
            stored_doc(consumed_foods=[ladoo.model_dump(mode="json"), dal.model_dump(mode="json")]),
            stored_doc(meal_log_id="ml_2", consumed_foods=[ladoo.model_dump(mode="json")]),
        ]
        mock_collection.find = MagicMock(return_value=cursor_returning(docs))
        rule = parse_restriction(
            {"foodCategory": "sweets", "kind": "frequency", "maxPerDay": 1, "severity": "strict"}
        )

        count = await store.count_matching_logs(
            "client_1", "org_1", rule, date(2024, 3, 12), date(2024, 3, 12)
        )

        assert count == 2
        query = mock_collection.find.call_args.args[0]
        assert query["status"] == {"$in": ["eaten", "substituted"]}

    @pytest.mark.asyncio
    async def test_driver_error_becomes_dependency_error(
        self, store: MealLogStoreMongo, mock_collection: AsyncMock
    ) -> None:
        mock_collection.find_one.side_effect = ServerSelectionTimeoutError("no primary")

        with pytest.raises(DependencyError) as exc_info:
            await store.get_meal_log("ml_1", "org_1")

        assert exc_info.value.dependency == "meal_log_store"

    @pytest.mark.asyncio
    async def test_range_query_error_becomes_dependency_error(
        self, store: MealLogStoreMongo, mock_collection: AsyncMock
    ) -> None:
        cursor = cursor_returning([])
        cursor.to_list.side_effect = ServerSelectionTimeoutError("no primary")
        mock_collection.find = MagicMock(return_value=cursor)

        with pytest.raises(DependencyError):
            await store.list_meal_logs("client_1", "org_1", date(2024, 3, 11), date(2024, 3, 17))
