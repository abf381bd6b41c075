"""Assembles the registry of every tool Nexus ships."""

from __future__ import annotations

import httpx

from nexus.src.core.knowledge import KnowledgeService
from nexus.src.database.conversation_store import ConversationStore
from nexus.src.tools.knowledge_tools import KnowledgeToolkit
from nexus.src.tools.registry import ToolRegistry
from nexus.src.tools.utilities import utility_tools
from nexus.src.tools.web import WebToolkit


def build_default_registry(http_client: httpx.AsyncClient, knowledge: KnowledgeService | None = None, conversations: ConversationStore | None = None) -> ToolRegistry:
    registry = ToolRegistry(utility_tools() + WebToolkit(http_client).tools())
    if knowledge is not None:
        for tool in KnowledgeToolkit(knowledge, conversations).tools():
            registry.register(tool)
    return registry
