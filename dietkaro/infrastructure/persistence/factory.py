"""Meal log store factory.

Environment-based backend selection:
- MEAL_LOG_BACKEND=mongodb: MealLogStoreMongo on MONGODB_URI / MONGODB_DATABASE
- MEAL_LOG_BACKEND=inmemory (default): InMemoryMealLogStore

Usage:
    from dietkaro.infrastructure.persistence.factory import create_meal_log_store

    store = create_meal_log_store()
    container = CoreContainer(profiles, foods, store, plans)
"""

from typing import Any, Dict, Union

import structlog
from motor.motor_asyncio import AsyncIOMotorClient

from dietkaro.infrastructure.config import (
    get_meal_log_backend,
    get_mongodb_database,
    get_mongodb_uri,
)
from dietkaro.infrastructure.persistence.in_memory.meal_log_store import InMemoryMealLogStore
from dietkaro.infrastructure.persistence.mongodb.meal_log_store_mongo import MealLogStoreMongo

logger = structlog.get_logger(__name__)


def build_mongo_meal_log_store() -> MealLogStoreMongo:
    """Connect to MongoDB and wrap the configured database.

    Motor connects lazily, so no I/O happens here; the store creates
    its indexes on first use.

    Raises:
        ValueError: If MONGODB_URI is not set
    """
    uri = get_mongodb_uri()
    if uri is None:
        raise ValueError(
            "MEAL_LOG_BACKEND=mongodb but MONGODB_URI not set. "
            "Set MONGODB_URI in .env or use MEAL_LOG_BACKEND=inmemory"
        )

    database = get_mongodb_database()
    client: AsyncIOMotorClient[Dict[str, Any]] = AsyncIOMotorClient(uri)
    logger.info("MongoDB meal log store configured", database=database)
    return MealLogStoreMongo(client[database])


def create_meal_log_store() -> Union[InMemoryMealLogStore, MealLogStoreMongo]:
    """Create the meal log store selected by MEAL_LOG_BACKEND.

    Raises:
        ValueError: Unknown backend, or mongodb without MONGODB_URI
    """
    backend = get_meal_log_backend()

    if backend == "mongodb":
        return build_mongo_meal_log_store()

    if backend == "inmemory":
        return InMemoryMealLogStore()

    raise ValueError(
        f"Invalid MEAL_LOG_BACKEND value: {backend}. Expected 'inmemory' or 'mongodb'"
    )
