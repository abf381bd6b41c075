"""
Nexus - Knowledge & Conversation Tools
=======================================
Tools that let the assistant read and extend its own memory: semantic
knowledge search, storing new knowledge, and looking up a user's
conversations or a conversation's recent messages.
"""

from __future__ import annotations

import asyncio

from nexus.src.core.errors import ConversationNotFoundError
from nexus.src.core.knowledge import KnowledgeService
from nexus.src.database.conversation_store import ConversationStore
from nexus.src.tools.registry import Tool, ToolParams, int_param


class KnowledgeToolkit:
    def __init__(self, knowledge: KnowledgeService, conversations: ConversationStore | None = None) -> None:
        self._knowledge = knowledge
        self._conversations = conversations


    async def search_knowledge_base(self, params: ToolParams) -> str:
        query = str(params.get("query", "")).strip()
        limit = int_param(params, "limit", 5)
        if not query:
            return "Please provide a query."
        try:
            items = await asyncio.to_thread(self._knowledge.search_knowledge, query, None, limit)
        except Exception as exc:
            return f"Error searching knowledge base: {exc}"
        if not items:
            return "No relevant knowledge found."
        lines = [f"- {item.content} (Relevance: {round((item.similarity or 0.0) * 100)}%)" for item in items]
        return f"Found {len(items)} relevant entries:\n" + "\n\n".join(lines)


    async def store_knowledge(self, params: ToolParams) -> str:
        content = str(params.get("content", ""))
        metadata = params.get("metadata") or {}
        conversation_id = params.get("conversation_id")
        try:
            await asyncio.to_thread(self._knowledge.add_knowledge, content, conversation_id, metadata)
        except Exception as exc:
            return f"Error storing knowledge: {exc}"
        return f'Successfully learned and stored in neural memory: "{content[:50]}..."'


    async def get_user_conversations(self, params: ToolParams) -> str:
        if self._conversations is None:
            return "Conversation history is not available."
        user_id = str(params.get("user_id", "")).strip()
        limit = int_param(params, "limit", 5)
        if not user_id:
            return "Please provide a user_id."
        try:
            conversations = await self._conversations.list_for_user(user_id, limit=limit)
        except Exception as exc:
            return f"Error fetching conversations: {exc}"
        if not conversations:
            return "No conversations found for this user."
        lines = [f"- {c.get('title')} ({c.get('created_at')})" for c in conversations]
        return "User's recent conversations:\n" + "\n".join(lines)


    async def get_recent_messages(self, params: ToolParams) -> str:
        if self._conversations is None:
            return "Conversation history is not available."
        conversation_id = str(params.get("conversation_id", "")).strip()
        limit = int_param(params, "limit", 10)
        try:
            messages = await self._conversations.recent_messages(conversation_id, limit=limit)
        except ConversationNotFoundError:
            return "No messages found in this conversation."
        except Exception as exc:
            return f"Error fetching messages: {exc}"
        if not messages:
            return "No messages found in this conversation."
        lines = [f"{m['role'].upper()}: {m['content'][:100]}..." for m in messages]
        return "Recent messages from conversation:\n" + "\n".join(lines)


    def tools(self) -> list[Tool]:
        return [
            Tool("search_knowledge_base", "Search the knowledge base using semantic vector search. Returns matching entries.", self.search_knowledge_base, {"query": "string", "limit": "integer (default 5)"}),
            Tool("store_knowledge", "Save new information to the knowledge base for future reference.", self.store_knowledge, {"content": "string", "metadata": "object (optional)"}),
            Tool("get_user_conversations", "Retrieve a user's recent conversations.", self.get_user_conversations, {"user_id": "string", "limit": "integer (default 5)"}),
            Tool("get_recent_messages", "Get recent messages from a conversation for context.", self.get_recent_messages, {"conversation_id": "string", "limit": "integer (default 10)"}),
        ]
