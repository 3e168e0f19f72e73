"""
MongoDB implementation of the meal log store.

Implements IMealLogStore and IMealLogHistory on one collection. The
compliance write is a conditional ``update_one`` filtered on the row
version, so concurrent writers serialize through the database.
"""

from datetime import date, datetime, time, timezone
from typing import Any, Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from dietkaro.domain.compliance.models import (
    ComplianceResult,
    MealLog,
    MealLogStatus,
)
from dietkaro.domain.shared.errors import DependencyError
from dietkaro.domain.validation.matcher import match_target
from dietkaro.domain.validation.models import FoodItem
from dietkaro.domain.validation.restrictions import FoodRestriction

logger = structlog.get_logger(__name__)

DEPENDENCY_NAME = "meal_log_store"


def _day(value: date) -> str:
    return value.isoformat()


def _clock(value: Optional[time]) -> Optional[str]:
    return value.strftime("%H:%M") if value is not None else None


class MealLogStoreMongo:
    """
    MongoDB meal log store.

    Storage design:
    - Collection: meal_logs
    - Unique index on meal_log_id
    - Index on (org_id, client_id, scheduled_date) for range queries
    - ``scheduled_date`` stored as ISO ``YYYY-MM-DD`` so string range
      filters follow calendar order
    - ``consumed_foods`` embeds the tags of eaten foods for frequency
      lookbacks

    Driver failures are translated into DependencyError and never retried.

    Example:
        >>> from motor.motor_asyncio import AsyncIOMotorClient
        >>> client = AsyncIOMotorClient("mongodb://localhost:27017")
        >>> store = MealLogStoreMongo(client.dietkaro)
        >>> meal_log = await store.get_meal_log("ml_1", "org_1")
    """

    COLLECTION_NAME = "meal_logs"

    def __init__(self, db: AsyncIOMotorDatabase[Any]):
        """
        Initialize store with MongoDB database.

        Args:
            db: Motor AsyncIOMotorDatabase instance
        """
        self.db = db
        self.collection = db[self.COLLECTION_NAME]
        self._indexes_created = False

    async def _ensure_indexes(self) -> None:
        if self._indexes_created:
            return

        await self.collection.create_index(
            "meal_log_id",
            unique=True,
            name="unique_meal_log_id",
        )
        await self.collection.create_index(
            [("org_id", 1), ("client_id", 1), ("scheduled_date", 1)],
            name="idx_client_schedule",
        )

        self._indexes_created = True

    # ─── mapping ─────────────────────────────────────────────────

    def _to_document(self, meal_log: MealLog, foods: tuple[FoodItem, ...] = ()) -> dict[str, Any]:
        return {
            "meal_log_id": meal_log.id,
            "client_id": meal_log.client_id,
            "org_id": meal_log.org_id,
            "meal_id": meal_log.meal_id,
            "meal_name": meal_log.meal_name,
            "meal_type": meal_log.meal_type.value if meal_log.meal_type else None,
            "scheduled_date": _day(meal_log.scheduled_date),
            "scheduled_time": _clock(meal_log.scheduled_time),
            "status": meal_log.status.value,
            "logged_at": meal_log.logged_at,
            "meal_photo_url": meal_log.meal_photo_url,
            "client_notes": meal_log.client_notes,
            "chosen_option_group": meal_log.chosen_option_group,
            "substitute_calories_est": meal_log.substitute_calories_est,
            "dietitian_feedback": meal_log.dietitian_feedback,
            "compliance_score": meal_log.compliance_score,
            "compliance_color": meal_log.compliance_color.value if meal_log.compliance_color else None,
            "compliance_issues": list(meal_log.compliance_issues),
            "version": meal_log.version,
            "consumed_foods": [food.model_dump(mode="json") for food in foods],
        }

    def _from_document(self, doc: dict[str, Any]) -> MealLog:
        scheduled_time = doc.get("scheduled_time")
        return MealLog(
            id=doc["meal_log_id"],
            client_id=doc["client_id"],
            org_id=doc["org_id"],
            meal_id=doc["meal_id"],
            meal_name=doc.get("meal_name") or "",
            meal_type=doc.get("meal_type"),
            scheduled_date=date.fromisoformat(doc["scheduled_date"]),
            scheduled_time=time.fromisoformat(scheduled_time) if scheduled_time else None,
            status=MealLogStatus(doc.get("status", MealLogStatus.PENDING.value)),
            logged_at=doc.get("logged_at"),
            meal_photo_url=doc.get("meal_photo_url"),
            client_notes=doc.get("client_notes"),
            chosen_option_group=doc.get("chosen_option_group"),
            substitute_calories_est=doc.get("substitute_calories_est"),
            dietitian_feedback=doc.get("dietitian_feedback"),
            compliance_score=doc.get("compliance_score"),
            compliance_color=doc.get("compliance_color"),
            compliance_issues=tuple(doc.get("compliance_issues") or ()),
            version=doc.get("version", 0),
        )

    # ─── IMealLogStore ───────────────────────────────────────────

    async def save(self, meal_log: MealLog, foods: tuple[FoodItem, ...] = ()) -> None:
        """Upsert a meal log, bumping its version."""
        doc = self._to_document(meal_log, foods)
        doc.pop("version")
        try:
            await self._ensure_indexes()
            await self.collection.update_one(
                {"meal_log_id": meal_log.id},
                {"$set": doc, "$inc": {"version": 1}},
                upsert=True,
            )
        except PyMongoError as exc:
            raise DependencyError(DEPENDENCY_NAME, str(exc)) from exc

    async def get_meal_log(self, meal_log_id: str, org_id: str) -> Optional[MealLog]:
        """Retrieve a meal log within an organization."""
        try:
            await self._ensure_indexes()
            doc = await self.collection.find_one({"meal_log_id": meal_log_id, "org_id": org_id})
        except PyMongoError as exc:
            raise DependencyError(DEPENDENCY_NAME, str(exc)) from exc

        if doc is None:
            return None
        return self._from_document(doc)

    async def list_meal_logs(
        self,
        client_id: str,
        org_id: str,
        start: date,
        end: date,
    ) -> list[MealLog]:
        """List a client's logs in ``[start, end]``, by date then time."""
        docs = await self._find_range(client_id, org_id, start, end)
        return [self._from_document(doc) for doc in docs]

    async def update_compliance(
        self,
        meal_log_id: str,
        expected_version: int,
        result: ComplianceResult,
    ) -> bool:
        """Conditional write of the compliance fields."""
        try:
            await self._ensure_indexes()
            outcome = await self.collection.update_one(
                {"meal_log_id": meal_log_id, "version": expected_version},
                {
                    "$set": {
                        "compliance_score": result.score,
                        "compliance_color": result.color.value if result.color else None,
                        "compliance_issues": [issue.value for issue in result.issues],
                        "compliance_updated_at": datetime.now(timezone.utc),
                    },
                    "$inc": {"version": 1},
                },
            )
        except PyMongoError as exc:
            raise DependencyError(DEPENDENCY_NAME, str(exc)) from exc

        if outcome.matched_count == 0:
            logger.debug(
                "Compliance write skipped, version moved",
                meal_log_id=meal_log_id,
                expected_version=expected_version,
            )
            return False
        return True

    # ─── IMealLogHistory ─────────────────────────────────────────

    async def count_matching_logs(
        self,
        client_id: str,
        org_id: str,
        restriction: FoodRestriction,
        start: date,
        end: date,
    ) -> int:
        """Count consumed foods in ``[start, end]`` matching the rule target."""
        docs = await self._find_range(
            client_id,
            org_id,
            start,
            end,
            statuses=[MealLogStatus.EATEN.value, MealLogStatus.SUBSTITUTED.value],
        )
        count = 0
        for doc in docs:
            for raw in doc.get("consumed_foods") or ():
                food = FoodItem.model_validate(raw)
                if match_target(restriction, food) is not None:
                    count += 1
        return count

    # ─── helpers ─────────────────────────────────────────────────

    async def _find_range(
        self,
        client_id: str,
        org_id: str,
        start: date,
        end: date,
        statuses: Optional[list[str]] = None,
    ) -> list[dict[str, Any]]:
        query: dict[str, Any] = {
            "org_id": org_id,
            "client_id": client_id,
            "scheduled_date": {"$gte": _day(start), "$lte": _day(end)},
        }
        if statuses is not None:
            query["status"] = {"$in": statuses}

        try:
            await self._ensure_indexes()
            cursor = self.collection.find(query).sort(
                [("scheduled_date", 1), ("scheduled_time", 1)]
            )
            docs: list[dict[str, Any]] = await cursor.to_list(length=None)
        except PyMongoError as exc:
            raise DependencyError(DEPENDENCY_NAME, str(exc)) from exc
        return docs
