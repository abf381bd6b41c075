"""Tests for ``ToolRegistry``, the default registry and the knowledge/conversation tools."""

from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from nexus.src.core.errors import ConversationNotFoundError, ToolNotFoundError
from nexus.src.tools.defaults import build_default_registry
from nexus.src.tools.knowledge_tools import KnowledgeToolkit
from nexus.src.tools.registry import Tool, ToolRegistry, int_param


async def _echo(params):
    return f"echo:{params.get('text', '')}"


class TestToolRegistry:
    def test_register_and_list(self):
        registry = ToolRegistry([Tool("echo", "Echo text back.", _echo, {"text": "string"})])
        assert "echo" in registry
        assert len(registry) == 1
        assert registry.list_tools() == [{"name": "echo", "description": "Echo text back.", "parameters": {"text": "string"}}]

    def test_duplicate_names_are_rejected(self):
        registry = ToolRegistry([Tool("echo", "", _echo)])
        with pytest.raises(ValueError):
            registry.register(Tool("echo", "", _echo))

    def test_get_unknown_tool(self):
        registry = ToolRegistry([Tool("a", "", _echo), Tool("b", "", _echo)])
        with pytest.raises(ToolNotFoundError, match='Tool "zzz" not found. Available tools: a, b'):
            registry.get("zzz")

    async def test_execute(self):
        registry = ToolRegistry([Tool("echo", "", _echo)])
        assert await registry.execute("echo", {"text": "hi"}) == "echo:hi"

    async def test_execute_unknown_returns_message(self):
        registry = ToolRegistry([Tool("echo", "", _echo)])
        assert await registry.execute("nope") == 'Tool "nope" not found. Available tools: echo'

    async def test_execute_reports_tool_failure(self):
        async def broken(params):
            raise RuntimeError("boom")

        registry = ToolRegistry([Tool("broken", "", broken)])
        assert await registry.execute("broken") == "broken Error: boom"


class TestIntParam:
    def test_reads_numbers_and_numeric_strings(self):
        assert int_param({"limit": 3}, "limit", 5) == 3
        assert int_param({"limit": "7"}, "limit", 5) == 7

    @pytest.mark.parametrize("value", ["five", None, [1]])
    def test_bad_values_fall_back(self, value):
        assert int_param({"limit": value}, "limit", 5) == 5

    def test_missing_key(self):
        assert int_param({}, "limit", 10) == 10


def test_default_registry_contains_every_tool(knowledge):
    registry = build_default_registry(httpx.AsyncClient(), knowledge, conversations=Mock())
    assert set(registry.names()) == {
        "math_calculate", "unit_converter", "data_statistics", "json_formatter", "text_statistics",
        "web_search", "fetch_web_content", "get_trending_topics", "get_weather", "get_news", "get_current_datetime", "get_financial_data",
        "search_knowledge_base", "store_knowledge", "get_user_conversations", "get_recent_messages",
    }


def test_default_registry_without_knowledge():
    registry = build_default_registry(httpx.AsyncClient())
    assert "search_knowledge_base" not in registry
    assert "math_calculate" in registry


class TestKnowledgeToolkit:
    async def test_store_then_search(self, knowledge):
        toolkit = KnowledgeToolkit(knowledge)

        stored = await toolkit.store_knowledge({"content": "The vault opens at midnight."})
        found = await toolkit.search_knowledge_base({"query": "vault"})

        assert stored == 'Successfully learned and stored in neural memory: "The vault opens at midnight...."'
        assert found.startswith("Found 1 relevant entries:\n- The vault opens at midnight.")
        assert "(Relevance: 100%)" in found

    async def test_search_without_matches(self, knowledge):
        assert await KnowledgeToolkit(knowledge).search_knowledge_base({"query": "music"}) == "No relevant knowledge found."

    async def test_store_empty_content_reports_error(self, knowledge):
        assert (await KnowledgeToolkit(knowledge).store_knowledge({"content": ""})).startswith("Error storing knowledge")

    async def test_user_conversations(self, knowledge):
        conversations = Mock()
        conversations.list_for_user = AsyncMock(return_value=[{"title": "Trip", "created_at": "2026-10-01"}])

        result = await KnowledgeToolkit(knowledge, conversations).get_user_conversations({"user_id": "u1"})

        assert result == "User's recent conversations:\n- Trip (2026-10-01)"
        conversations.list_for_user.assert_awaited_once_with("u1", limit=5)

    async def test_recent_messages(self, knowledge):
        conversations = Mock()
        conversations.recent_messages = AsyncMock(return_value=[{"role": "user", "content": "hello there"}])

        result = await KnowledgeToolkit(knowledge, conversations).get_recent_messages({"conversation_id": "c1"})

        assert result == "Recent messages from conversation:\nUSER: hello there..."

    async def test_recent_messages_unknown_conversation(self, knowledge):
        conversations = Mock()
        conversations.recent_messages = AsyncMock(side_effect=ConversationNotFoundError("missing"))
        assert await KnowledgeToolkit(knowledge, conversations).get_recent_messages({"conversation_id": "x"}) == "No messages found in this conversation."

    async def test_conversation_tools_without_store(self, knowledge):
        assert await KnowledgeToolkit(knowledge).get_user_conversations({"user_id": "u1"}) == "Conversation history is not available."

    async def test_conversation_store_failure_is_reported(self, knowledge):
        conversations = Mock()
        conversations.list_for_user = AsyncMock(side_effect=RuntimeError("mongo down"))

        result = await KnowledgeToolkit(knowledge, conversations).get_user_conversations({"user_id": "u1", "limit": "many"})

        assert result == "Error fetching conversations: mongo down"
        conversations.list_for_user.assert_awaited_once_with("u1", limit=5)

    async def test_message_store_failure_is_reported(self, knowledge):
        conversations = Mock()
        conversations.recent_messages = AsyncMock(side_effect=RuntimeError("mongo down"))
        result = await KnowledgeToolkit(knowledge, conversations).get_recent_messages({"conversation_id": "c1"})
        assert result == "Error fetching messages: mongo down"

    async def test_search_with_bad_limit_uses_default(self, knowledge):
        await KnowledgeToolkit(knowledge).store_knowledge({"content": "The vault opens at midnight."})
        found = await KnowledgeToolkit(knowledge).search_knowledge_base({"query": "vault", "limit": "lots"})
        assert found.startswith("Found 1 relevant entries:")
