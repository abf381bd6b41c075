"""
Nexus - FeedbackStore
======================
Stores user corrections of assistant replies (prompt, original reply,
corrected reply) so they can be exported as a training dataset.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from nexus.src.database.mongo import get_database
from nexus.src.utils.logger import get_logger

logger = get_logger(__name__)


class FeedbackStore:
    __slots__ = ("_collection",)

    def __init__(self, collection: Any = None, collection_name: str = "ai_training_feedback") -> None:
        self._collection = collection if collection is not None else get_database()[collection_name]


    async def save(self, prompt: str, original_response: str, corrected_response: str, user_id: str | None = None) -> dict[str, Any]:
        if not corrected_response.strip():
            raise ValueError("corrected_response must not be empty")
        record = {
            "prompt": prompt,
            "original_response": original_response,
            "corrected_response": corrected_response,
            "user_id": user_id,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        await self._collection.insert_one(dict(record))
        logger.info("[FEEDBACK] Correction saved (user=%s).", user_id or "guest")
        return record


    async def export(self) -> list[dict[str, Any]]:
        """All corrections, oldest first, without Mongo internals."""
        cursor = self._collection.find({}, {"_id": 0}).sort("created_at", 1)
        return await cursor.to_list(length=None)
