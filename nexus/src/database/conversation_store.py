"""
Nexus - ConversationStore
==========================
Async conversation store backed by MongoDB via ``motor``.

Collection schema (``conversations``)::

    {
        "conversation_id": str,
        "user_id": str,
        "title": str,
        "messages": [{"id": str, "role": str, "content": str, "created_at": datetime}, ...],
        "created_at": datetime,
        "updated_at": datetime
    }

Every query filters by ``conversation_id`` (or ``user_id`` for listings),
so one user's history never leaks into another's.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

from nexus.src.core.errors import ConversationNotFoundError
from nexus.src.database.mongo import get_database
from nexus.src.utils.logger import get_logger

logger = get_logger(__name__)

StoredMessage = dict[str, Any]
ConversationSummary = dict[str, Any]

VALID_ROLES = frozenset({"user", "assistant"})

_SUMMARY_PROJECTION = {"_id": 0, "conversation_id": 1, "user_id": 1, "title": 1, "created_at": 1, "updated_at": 1}


def _new_message(role: str, content: str) -> StoredMessage:
    if role not in VALID_ROLES:
        raise ValueError(f"Invalid role '{role}'. Expected one of: {', '.join(sorted(VALID_ROLES))}")
    return {"id": uuid.uuid4().hex, "role": role, "content": content, "created_at": datetime.now(timezone.utc)}


class ConversationStore:
    """Conversation CRUD on top of a ``motor`` collection."""

    __slots__ = ("_collection",)

    def __init__(self, collection: Any = None, collection_name: str = "conversations") -> None:
        self._collection = collection if collection is not None else get_database()[collection_name]


    async def create(self, user_id: str, title: str, messages: Iterable[dict[str, str]] = ()) -> ConversationSummary:
        """Create a conversation, optionally seeded with messages."""
        now = datetime.now(timezone.utc)
        doc = {
            "conversation_id": uuid.uuid4().hex,
            "user_id": user_id,
            "title": title,
            "messages": [_new_message(m["role"], m["content"]) for m in messages],
            "created_at": now,
            "updated_at": now,
        }
        await self._collection.insert_one(doc)
        logger.info("[CONVERSATION] Created '%s' for user '%s' (%d messages).", doc["conversation_id"], user_id, len(doc["messages"]))
        return {k: doc[k] for k in _SUMMARY_PROJECTION if k != "_id"}


    async def get(self, conversation_id: str) -> ConversationSummary:
        doc = await self._collection.find_one({"conversation_id": conversation_id}, _SUMMARY_PROJECTION)
        if doc is None:
            raise ConversationNotFoundError(f"Conversation '{conversation_id}' not found")
        return doc


    async def load_messages(self, conversation_id: str) -> list[StoredMessage]:
        """All messages of a conversation, oldest first."""
        doc = await self._collection.find_one({"conversation_id": conversation_id}, {"_id": 0, "messages": 1})
        if doc is None:
            raise ConversationNotFoundError(f"Conversation '{conversation_id}' not found")
        return doc.get("messages", [])


    async def recent_messages(self, conversation_id: str, limit: int = 10) -> list[StoredMessage]:
        """The last *limit* messages, oldest first."""
        doc = await self._collection.find_one({"conversation_id": conversation_id}, {"_id": 0, "messages": {"$slice": -limit}})
        if doc is None:
            raise ConversationNotFoundError(f"Conversation '{conversation_id}' not found")
        return doc.get("messages", [])


    async def list_for_user(self, user_id: str, limit: int = 100) -> list[ConversationSummary]:
        """Conversations of *user_id*, most recently updated first."""
        cursor = self._collection.find({"user_id": user_id}, _SUMMARY_PROJECTION).sort("updated_at", -1)
        return await cursor.to_list(length=limit)


    async def update_title(self, conversation_id: str, title: str) -> ConversationSummary:
        now = datetime.now(timezone.utc)
        result = await self._collection.update_one({"conversation_id": conversation_id}, {"$set": {"title": title, "updated_at": now}})
        if result.matched_count == 0:
            raise ConversationNotFoundError(f"Conversation '{conversation_id}' not found")
        return await self.get(conversation_id)


    async def add_message(self, conversation_id: str, role: str, content: str) -> StoredMessage:
        """Append one message and bump ``updated_at``."""
        message = _new_message(role, content)
        result = await self._collection.update_one({"conversation_id": conversation_id}, {"$push": {"messages": message}, "$set": {"updated_at": message["created_at"]}})
        if result.matched_count == 0:
            raise ConversationNotFoundError(f"Conversation '{conversation_id}' not found")
        return message


    async def delete(self, conversation_id: str) -> bool:
        """Delete a conversation entirely.  Returns True if removed."""
        result = await self._collection.delete_one({"conversation_id": conversation_id})
        if result.deleted_count:
            logger.info("[CONVERSATION] Deleted '%s'.", conversation_id)
        return result.deleted_count > 0
