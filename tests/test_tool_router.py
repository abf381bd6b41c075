"""Tests for planner parsing and the plan → execute loop of ``ToolRouter``."""

import asyncio
from unittest.mock import AsyncMock, Mock

from nexus.src.core.tool_router import ToolEvent, ToolRouter, format_tool_events, parse_plan
from nexus.src.tools.registry import Tool, ToolRegistry
from nexus.src.tools.utilities import utility_tools


def _llm(*replies):
    llm = Mock()
    llm.ainvoke = AsyncMock(side_effect=[Mock(content=r) for r in replies])
    return llm


class TestParsePlan:
    def test_plain_json(self):
        plan = parse_plan('{"tool_call": {"name": "math_calculate", "arguments": {"expression": "1+1"}}, "reason": "math"}')
        assert plan.tool_call.name == "math_calculate"
        assert plan.tool_call.arguments == {"expression": "1+1"}

    def test_fenced_json(self):
        plan = parse_plan('```json\n{"tool_call": null, "reason": "chit-chat"}\n```')
        assert plan.tool_call is None
        assert plan.reason == "chit-chat"

    def test_garbage_means_no_tool(self):
        plan = parse_plan("Sure! I'll use the calculator.")
        assert plan.tool_call is None
        assert plan.reason == "planner_parse_failed"


class TestToolRouter:
    async def test_runs_planned_tool_then_stops(self):
        llm = _llm(
            '{"tool_call": {"name": "math_calculate", "arguments": {"expression": "6*7"}}, "reason": "math"}',
            '{"tool_call": null, "reason": "done"}',
        )
        router = ToolRouter(llm, ToolRegistry(utility_tools()), max_calls=3)

        events = await router.run("what is 6 times 7?")

        assert len(events) == 1
        assert events[0].name == "math_calculate"
        assert "**Result:** 42" in events[0].result
        assert events[0].error is None
        assert llm.ainvoke.await_count == 2

    async def test_previous_results_are_fed_back_to_planner(self):
        llm = _llm(
            '{"tool_call": {"name": "math_calculate", "arguments": {"expression": "2+2"}}, "reason": ""}',
            '{"tool_call": null, "reason": "done"}',
        )
        await ToolRouter(llm, ToolRegistry(utility_tools()), max_calls=2).run("2+2?")

        second_prompt = llm.ainvoke.await_args_list[1].args[0][0].content
        assert "Tool results so far:" in second_prompt
        assert "[math_calculate]" in second_prompt

    async def test_stops_at_max_calls(self):
        plan = '{"tool_call": {"name": "text_statistics", "arguments": {"text": "hi"}}, "reason": ""}'
        llm = _llm(plan, plan, plan)
        events = await ToolRouter(llm, ToolRegistry(utility_tools()), max_calls=2).run("stats")
        assert len(events) == 2

    async def test_timeout_is_recorded_as_error(self):
        async def slow(params):
            await asyncio.sleep(5)
            return "late"

        llm = _llm('{"tool_call": {"name": "slow", "arguments": {}}, "reason": ""}')
        router = ToolRouter(llm, ToolRegistry([Tool("slow", "", slow)]), max_calls=1, timeout_seconds=0.05)

        events = await router.run("go")

        assert events[0].result is None
        assert events[0].error == "Tool `slow` timed out after 0.05s"

    async def test_planner_failure_means_no_tools(self):
        llm = Mock()
        llm.ainvoke = AsyncMock(side_effect=RuntimeError("503"))
        assert await ToolRouter(llm, ToolRegistry(utility_tools())).run("hello") == []


def test_format_tool_events():
    events = [ToolEvent("a", {"x": 1}, result="ok"), ToolEvent("b", {}, error="boom")]
    assert format_tool_events(events) == '[a] {"x": 1}\nok\n\n[b] {}\nTool error: boom'
