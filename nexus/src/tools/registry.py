"""
Nexus - Tool Registry
======================
Named async callables the assistant can invoke.  Every tool returns a
user-facing string; failures are reported in that string rather than
raised, so a broken tool never breaks a chat turn.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from nexus.src.core.errors import ToolNotFoundError
from nexus.src.utils.logger import get_logger

logger = get_logger(__name__)

ToolParams = dict[str, Any]
ToolFn = Callable[[ToolParams], Awaitable[str]]


def int_param(params: ToolParams, key: str, default: int) -> int:
    """``params[key]`` as an int, or ``default`` when missing or not numeric."""
    try:
        return int(params.get(key, default))
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    execute: ToolFn
    parameters: dict[str, str] = field(default_factory=dict)


class ToolRegistry:
    """Ordered name → ``Tool`` mapping."""

    def __init__(self, tools: list[Tool] | None = None) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)


    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool


    def get(self, name: str) -> Tool:
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFoundError(f'Tool "{name}" not found. Available tools: {", ".join(self.names())}') from None


    def names(self) -> list[str]:
        return list(self._tools)


    def list_tools(self) -> list[dict[str, Any]]:
        return [{"name": t.name, "description": t.description, "parameters": dict(t.parameters)} for t in self._tools.values()]


    async def execute(self, name: str, params: ToolParams | None = None) -> str:
        """Run a tool by name.  Unknown names and tool failures come back as strings."""
        try:
            tool = self.get(name)
        except ToolNotFoundError as exc:
            logger.warning("[TOOLS] %s", exc)
            return str(exc)

        logger.info("[TOOLS] Executing '%s'.", name)
        try:
            return await tool.execute(dict(params or {}))
        except Exception as exc:
            logger.exception("[TOOLS] '%s' failed.", name)
            return f"{name} Error: {exc}"


    def __contains__(self, name: object) -> bool:
        return name in self._tools


    def __len__(self) -> int:
        return len(self._tools)
