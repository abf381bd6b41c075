"""
Nexus - Chat Engine
====================
Orchestrates a streaming chat turn with retrieval and optional tools.

Flow (``ChatEngine.stream_reply``):
    1. Validate → an empty message is rejected before any I/O.
    2. Build system prompt → assistant persona, user name, clock.
    3. Knowledge lookup → embed the message, match against the
       knowledge base (conversation scope + global), inject matches.
    4. Tool routing → when requested, let the planner run tools and
       inject their results.
    5. Assemble messages → system, history, current message.
    6. Stream Gemini → yield non-empty text chunks as they arrive.
    7. Persist → when bound to a conversation, save the user message
       and the full reply once the stream completes.

Knowledge and tool failures degrade the turn (logged, context omitted);
they never abort it.  A failing LLM call propagates to the caller.

Usage:
    engine = ChatEngine(knowledge_service)
    async for chunk in engine.stream_reply(ChatRequest(history=[], current_message="Hi")):
        print(chunk, end="")
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Literal

from nexus.config.prompt_templates import CURRENT_AFFAIRS_NOTE, DATE_FORMAT, DATETIME_FORMAT, KNOWLEDGE_CONTEXT_TEMPLATE, SUGGEST_PROMPT, SYSTEM_PROMPT, TOOL_CONTEXT_TEMPLATE
from nexus.config.settings import settings
from nexus.src.core.errors import NexusError
from nexus.src.core.knowledge import KnowledgeService, format_context
from nexus.src.core.tool_router import ToolRouter, format_tool_events
from nexus.src.database.conversation_store import ConversationStore
from nexus.src.utils.logger import get_logger

logger = get_logger(__name__)

_SUGGEST_MIN_CHARS = 10


@dataclass
class ChatMessage:
    role: Literal["user", "assistant"]
    content: str


@dataclass
class ChatRequest:
    history: list[ChatMessage]
    current_message: str
    user_name: str = "User"
    conversation_id: str | None = None
    use_knowledge: bool = True
    use_tools: bool = False


@dataclass
class TurnContext:
    """What was injected into the system prompt for one turn."""

    knowledge: list[Any] = field(default_factory=list)
    tool_events: list[Any] = field(default_factory=list)


def build_system_prompt(user_name: str, now: datetime | None = None) -> str:
    now = now or datetime.now().astimezone()
    affairs = CURRENT_AFFAIRS_NOTE.format(date=now.strftime(DATE_FORMAT))
    return SYSTEM_PROMPT.format(user_name=user_name or "User", date_time=now.strftime(DATETIME_FORMAT), affairs_context=affairs)


def init_llm(temperature: float) -> Any:
    """Initialise the Gemini chat model via LangChain."""
    from langchain_google_genai import ChatGoogleGenerativeAI

    llm = ChatGoogleGenerativeAI(model=settings.LLM_MODEL, temperature=temperature, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
    logger.info("LLM initialised: %s (temperature=%.1f)", settings.LLM_MODEL, temperature)
    return llm


def _chunk_text(chunk: Any) -> str:
    content = getattr(chunk, "content", chunk)
    if isinstance(content, str):
        return content
    # Gemini may return a list of content parts
    if isinstance(content, list):
        return "".join(p if isinstance(p, str) else str(p.get("text", "")) for p in content if isinstance(p, (str, dict)))
    return ""


class ChatEngine:
    """
    Parameters
    ----------
    knowledge
        Optional ``KnowledgeService`` for retrieval.
    conversations
        Optional ``ConversationStore`` used to persist bound turns.
    tool_router
        Optional ``ToolRouter`` for agentic tool use.
    llm, suggest_llm
        LangChain chat models.  Default to Gemini from ``settings``.
    """

    __slots__ = ("_knowledge", "_conversations", "_router", "_llm", "_suggest_llm")

    def __init__(self, knowledge: KnowledgeService | None = None, conversations: ConversationStore | None = None, tool_router: ToolRouter | None = None, llm: Any = None, suggest_llm: Any = None) -> None:
        self._knowledge = knowledge
        self._conversations = conversations
        self._router = tool_router
        self._llm = llm if llm is not None else init_llm(settings.LLM_TEMPERATURE)
        self._suggest_llm = suggest_llm if suggest_llm is not None else init_llm(settings.SUGGEST_TEMPERATURE)


    async def prepare(self, request: ChatRequest, now: datetime | None = None) -> tuple[list[Any], TurnContext]:
        """Validate the request and assemble the LangChain message list."""
        from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

        if not request.current_message or not request.current_message.strip():
            raise ValueError("No message provided")

        turn = TurnContext()
        system_prompt = build_system_prompt(request.user_name, now)

        if request.use_knowledge and self._knowledge is not None:
            turn.knowledge = await self._lookup_knowledge(request)
            if turn.knowledge:
                system_prompt += KNOWLEDGE_CONTEXT_TEMPLATE.format(context=format_context(turn.knowledge))

        if request.use_tools and settings.ENABLE_TOOLS and self._router is not None:
            turn.tool_events = await self._router.run(request.current_message)
            if turn.tool_events:
                system_prompt += TOOL_CONTEXT_TEMPLATE.format(tool_results=format_tool_events(turn.tool_events))

        messages: list[Any] = [SystemMessage(content=system_prompt)]
        for msg in request.history:
            if msg.role == "assistant":
                messages.append(AIMessage(content=msg.content))
            else:
                messages.append(HumanMessage(content=msg.content))
        messages.append(HumanMessage(content=request.current_message))
        return messages, turn


    async def stream_reply(self, request: ChatRequest) -> AsyncIterator[str]:
        """Yield the reply text chunk by chunk."""
        t_start = time.perf_counter()
        messages, turn = await self.prepare(request)
        logger.info("[CHAT] Streaming reply for '%s' (history=%d, knowledge=%d, tools=%d).", request.user_name, len(request.history), len(turn.knowledge), len(turn.tool_events))

        parts: list[str] = []
        async for chunk in self._llm.astream(messages):
            text = _chunk_text(chunk)
            if text:
                parts.append(text)
                yield text

        reply = "".join(parts)
        logger.info("[CHAT] Stream complete: %d chars in %.1fms.", len(reply), (time.perf_counter() - t_start) * 1000)

        if request.conversation_id and self._conversations is not None:
            await self._persist_turn(request.conversation_id, request.current_message, reply)


    async def reply(self, request: ChatRequest) -> str:
        """Non-streaming convenience wrapper around ``stream_reply``."""
        return "".join([chunk async for chunk in self.stream_reply(request)])


    async def suggest(self, text: str) -> str:
        """
        Autocomplete *text*.  Returns only the continuation, or ``""`` for
        short input or on failure.
        """
        from langchain_core.messages import HumanMessage

        if not text or len(text) < _SUGGEST_MIN_CHARS:
            return ""
        try:
            response = await self._suggest_llm.ainvoke([HumanMessage(content=SUGGEST_PROMPT.format(text=text))])
        except Exception:
            logger.exception("[SUGGEST] Completion failed.")
            return ""
        completion = _chunk_text(response)
        return completion.replace(text, "", 1).strip()


    async def _lookup_knowledge(self, request: ChatRequest) -> list[Any]:
        try:
            items = await asyncio.to_thread(self._knowledge.search_knowledge, request.current_message, request.conversation_id)  # type: ignore[union-attr]
        except Exception:
            logger.exception("[CHAT] Knowledge lookup failed, continuing without context.")
            return []
        logger.debug("[CHAT] %d knowledge item(s) injected.", len(items))
        return items


    async def _persist_turn(self, conversation_id: str, user_message: str, reply: str) -> None:
        try:
            await self._conversations.add_message(conversation_id, "user", user_message)  # type: ignore[union-attr]
            if reply:
                await self._conversations.add_message(conversation_id, "assistant", reply)  # type: ignore[union-attr]
        except NexusError as exc:
            logger.warning("[CHAT] Could not persist turn to '%s': %s", conversation_id, exc)
