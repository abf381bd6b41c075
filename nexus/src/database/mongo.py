"""
Nexus - MongoDB Client
=======================
Module-level async ``motor`` client shared by the conversation and
feedback stores.  Created lazily on first use and reused afterwards.
"""

from __future__ import annotations

import motor.motor_asyncio

from nexus.config.settings import settings
from nexus.src.utils.logger import get_logger

logger = get_logger(__name__)

_mongo_client: motor.motor_asyncio.AsyncIOMotorClient | None = None


def get_mongo_client() -> motor.motor_asyncio.AsyncIOMotorClient:
    """Return (or create) the module-level async MongoDB client."""
    global _mongo_client
    if _mongo_client is None:
        _mongo_client = motor.motor_asyncio.AsyncIOMotorClient(settings.MONGO_URI.get_secret_value())
        logger.info("MongoDB async client created (singleton).")
    return _mongo_client


def get_database() -> motor.motor_asyncio.AsyncIOMotorDatabase:
    return get_mongo_client()[settings.MONGO_DB_NAME]


def close_mongo_client() -> None:
    global _mongo_client
    if _mongo_client is not None:
        _mongo_client.close()
        _mongo_client = None
        logger.info("MongoDB async client closed.")
