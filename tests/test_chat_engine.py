"""Tests for prompt assembly, streaming, persistence and autocomplete in ``ChatEngine``."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

import pytest
from langchain_core.messages import AIMessage, AIMessageChunk, HumanMessage, SystemMessage

from nexus.src.core.chat_engine import ChatEngine, ChatMessage, ChatRequest, build_system_prompt
from nexus.src.core.tool_router import ToolEvent

NOW = datetime(2026, 10, 17, 9, 15, 2, tzinfo=timezone.utc)


class FakeStreamingLLM:
    def __init__(self, chunks):
        self.chunks = chunks
        self.seen = None

    async def astream(self, messages):
        self.seen = messages
        for chunk in self.chunks:
            yield AIMessageChunk(content=chunk)


def _engine(llm=None, suggest_llm=None, **kwargs):
    return ChatEngine(llm=llm or FakeStreamingLLM(["Hello", "", " there"]), suggest_llm=suggest_llm or Mock(), **kwargs)


class TestSystemPrompt:
    def test_includes_user_and_time(self):
        prompt = build_system_prompt("Ada", NOW)
        assert "You are Nexus AI" in prompt
        assert "Current User: Ada" in prompt
        assert "Saturday, October 17, 2026, 09:15:02 AM" in prompt
        assert "As of Saturday, October 17, 2026" in prompt

    def test_blank_name_defaults_to_user(self):
        assert "Current User: User" in build_system_prompt("", NOW)


class TestPrepare:
    async def test_empty_message_is_rejected(self):
        with pytest.raises(ValueError, match="No message provided"):
            await _engine().prepare(ChatRequest(history=[], current_message="  "))

    async def test_history_maps_roles(self):
        request = ChatRequest(history=[ChatMessage("user", "hi"), ChatMessage("assistant", "hello")], current_message="how are you?")

        messages, _ = await _engine().prepare(request, NOW)

        assert [type(m) for m in messages] == [SystemMessage, HumanMessage, AIMessage, HumanMessage]
        assert messages[-1].content == "how are you?"

    async def test_knowledge_is_injected(self, knowledge):
        knowledge.add_knowledge("The vault code is ALPHA-DELTA-99.")

        messages, turn = await _engine(knowledge=knowledge).prepare(ChatRequest(history=[], current_message="vault code?"), NOW)

        assert len(turn.knowledge) == 1
        assert "### Knowledge Base Context:" in messages[0].content
        assert "[1] (Relevance: 100%)\nThe vault code is ALPHA-DELTA-99." in messages[0].content

    async def test_knowledge_failure_is_not_fatal(self):
        knowledge = Mock()
        knowledge.search_knowledge.side_effect = ValueError("bad")

        messages, turn = await _engine(knowledge=knowledge).prepare(ChatRequest(history=[], current_message="hi"), NOW)

        assert turn.knowledge == []
        assert "Knowledge Base Context" not in messages[0].content

    async def test_unexpected_store_error_is_not_fatal(self):
        knowledge = Mock()
        knowledge.search_knowledge.side_effect = RuntimeError("lance error: io")

        messages, turn = await _engine(knowledge=knowledge).prepare(ChatRequest(history=[], current_message="hi"), NOW)

        assert turn.knowledge == []
        assert messages[-1].content == "hi"

    async def test_knowledge_can_be_disabled(self, knowledge):
        knowledge.add_knowledge("vault facts")
        _, turn = await _engine(knowledge=knowledge).prepare(ChatRequest(history=[], current_message="vault", use_knowledge=False), NOW)
        assert turn.knowledge == []

    async def test_tool_results_are_injected_when_requested(self):
        router = Mock()
        router.run = AsyncMock(return_value=[ToolEvent("get_weather", {"location": "Paris"}, result="Sunny, 21°C")])
        engine = _engine(tool_router=router)

        messages, turn = await engine.prepare(ChatRequest(history=[], current_message="weather in Paris?", use_tools=True), NOW)

        assert len(turn.tool_events) == 1
        assert "### Tool Results:" in messages[0].content
        assert "Sunny, 21°C" in messages[0].content

    async def test_tools_are_not_run_by_default(self):
        router = Mock()
        router.run = AsyncMock()
        await _engine(tool_router=router).prepare(ChatRequest(history=[], current_message="hi"), NOW)
        router.run.assert_not_awaited()


class TestStreamReply:
    async def test_yields_non_empty_chunks(self):
        chunks = [c async for c in _engine().stream_reply(ChatRequest(history=[], current_message="hi"))]
        assert chunks == ["Hello", " there"]

    async def test_reply_joins_chunks(self):
        assert await _engine().reply(ChatRequest(history=[], current_message="hi")) == "Hello there"

    async def test_bound_turn_is_persisted(self):
        conversations = Mock()
        conversations.add_message = AsyncMock()

        await _engine(conversations=conversations).reply(ChatRequest(history=[], current_message="hi", conversation_id="c1"))

        calls = [c.args for c in conversations.add_message.await_args_list]
        assert calls == [("c1", "user", "hi"), ("c1", "assistant", "Hello there")]

    async def test_unbound_turn_is_not_persisted(self):
        conversations = Mock()
        conversations.add_message = AsyncMock()
        await _engine(conversations=conversations).reply(ChatRequest(history=[], current_message="hi"))
        conversations.add_message.assert_not_awaited()


class TestSuggest:
    async def test_short_text_returns_empty(self):
        suggest_llm = Mock()
        suggest_llm.ainvoke = AsyncMock()
        assert await _engine(suggest_llm=suggest_llm).suggest("too short") == ""
        suggest_llm.ainvoke.assert_not_awaited()

    async def test_strips_repeated_input(self):
        suggest_llm = Mock()
        suggest_llm.ainvoke = AsyncMock(return_value=AIMessage(content="The weather today is sunny and warm."))

        result = await _engine(suggest_llm=suggest_llm).suggest("The weather today is")

        assert result == "sunny and warm."
        prompt = suggest_llm.ainvoke.await_args.args[0][0].content
        assert prompt == 'Complete this sentence exactly, no quotes/explanations: "The weather today is"'

    async def test_failure_returns_empty(self):
        suggest_llm = Mock()
        suggest_llm.ainvoke = AsyncMock(side_effect=RuntimeError("down"))
        assert await _engine(suggest_llm=suggest_llm).suggest("The weather today is") == ""
