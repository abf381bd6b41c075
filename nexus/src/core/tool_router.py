"""
Nexus - Tool Router
====================
Structured tool calling on top of a plain chat model.

The model is asked, with a strict JSON planner prompt, which tool (if
any) to call for the user's message.  The plan is validated with
pydantic; each planned tool runs under a timeout and its result is fed
into the next planning round, up to ``MAX_TOOL_CALLS`` rounds.
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from nexus.config.prompt_templates import TOOL_PLANNER_PROMPT
from nexus.config.settings import settings
from nexus.src.tools.registry import ToolRegistry
from nexus.src.utils.logger import get_logger

logger = get_logger(__name__)


class ToolCall(BaseModel):
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolPlan(BaseModel):
    tool_call: ToolCall | None = None
    reason: str = ""


@dataclass
class ToolEvent:
    name: str
    arguments: dict[str, Any]
    result: str | None = None
    error: str | None = None
    latency_ms: float = 0.0


def _strip_json_block(text: str) -> str:
    raw = (text or "").strip()
    if raw.startswith("```json"):
        raw = raw[7:]
    if raw.startswith("```"):
        raw = raw[3:]
    if raw.endswith("```"):
        raw = raw[:-3]
    return raw.strip()


def parse_plan(raw: str) -> ToolPlan:
    """Parse planner output; anything malformed means "no tool"."""
    try:
        return ToolPlan.model_validate(json.loads(_strip_json_block(raw)))
    except (json.JSONDecodeError, ValidationError, TypeError):
        logger.warning("[TOOLS] Planner output could not be parsed: %.80s", raw)
        return ToolPlan(reason="planner_parse_failed")


def format_tool_events(events: list[ToolEvent]) -> str:
    blocks = []
    for event in events:
        body = event.result if event.error is None else f"Tool error: {event.error}"
        blocks.append(f"[{event.name}] {json.dumps(event.arguments, ensure_ascii=False)}\n{body}")
    return "\n\n".join(blocks)


class ToolRouter:
    """
    Parameters
    ----------
    llm
        LangChain chat model exposing ``ainvoke``.
    registry
        Tools the planner may choose from.
    """

    __slots__ = ("_llm", "_registry", "_max_calls", "_timeout")

    def __init__(self, llm: Any, registry: ToolRegistry, max_calls: int | None = None, timeout_seconds: float | None = None) -> None:
        self._llm = llm
        self._registry = registry
        self._max_calls = max_calls or settings.MAX_TOOL_CALLS
        self._timeout = timeout_seconds or settings.TOOL_TIMEOUT_SECONDS


    async def plan(self, message: str, events: list[ToolEvent]) -> ToolPlan:
        from langchain_core.messages import HumanMessage

        previous = f"Tool results so far:\n{format_tool_events(events)}" if events else ""
        prompt = TOOL_PLANNER_PROMPT.format(tools=json.dumps(self._registry.list_tools(), ensure_ascii=False), message=message, previous_results=previous)
        try:
            response = await self._llm.ainvoke([HumanMessage(content=prompt)])
        except Exception:
            logger.exception("[TOOLS] Planner LLM call failed.")
            return ToolPlan(reason="planner_call_failed")
        return parse_plan(getattr(response, "content", str(response)))


    async def run(self, message: str) -> list[ToolEvent]:
        """Plan → execute loop.  Returns every tool event, failed ones included."""
        events: list[ToolEvent] = []

        for _ in range(self._max_calls):
            plan = await self.plan(message, events)
            call = plan.tool_call
            if call is None or not call.name.strip():
                logger.debug("[TOOLS] No tool call (%s).", plan.reason or "done")
                break

            event = ToolEvent(name=call.name, arguments=call.arguments)
            started = time.perf_counter()
            try:
                event.result = await asyncio.wait_for(self._registry.execute(call.name, call.arguments), timeout=self._timeout)
            except asyncio.TimeoutError:
                event.error = f"Tool `{call.name}` timed out after {self._timeout}s"
            except Exception as exc:
                logger.exception("[TOOLS] Tool '%s' raised.", call.name)
                event.error = str(exc)
            event.latency_ms = round((time.perf_counter() - started) * 1000, 2)
            events.append(event)
            logger.info("[TOOLS] '%s' finished in %.1fms (error=%s).", call.name, event.latency_ms, event.error is not None)

        return events
