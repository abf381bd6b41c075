"""
Nexus - API Routes
===================
Thin controllers over the core services.  Each handler validates the
incoming body, delegates to a service held on ``app.state`` and shapes
the JSON reply.  Errors are not caught here: ``ValueError`` → 400,
not-found errors → 404, everything else → 500, all as ``{"error": ...}``
(see ``nexus.src.main``).

Knowledge routes are plain ``def`` handlers because embedding and LanceDB
calls block; FastAPI runs them on its threadpool.
"""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator

from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse

from nexus.src.api.schemas import (
    AddMessageBody,
    ChatBody,
    CreateConversationBody,
    FeedbackBody,
    IngestBody,
    RenameConversationBody,
    SearchAndLearnBody,
    SearchBody,
    SuggestBody,
)
from nexus.src.core.chat_engine import ChatEngine, ChatMessage, ChatRequest
from nexus.src.core.knowledge import KnowledgeService
from nexus.src.database.conversation_store import ConversationStore
from nexus.src.database.feedback_store import FeedbackStore
from nexus.src.tools.registry import ToolRegistry
from nexus.src.utils.logger import get_logger

logger = get_logger(__name__)

ai_router = APIRouter(prefix="/api/ai", tags=["ai"])
conversation_router = APIRouter(prefix="/api/conversations", tags=["conversations"])


# ── Dependencies ───────────────────────────────────────────────────────

def get_engine(request: Request) -> ChatEngine:
    return request.app.state.engine


def get_knowledge(request: Request) -> KnowledgeService:
    return request.app.state.knowledge


def get_registry(request: Request) -> ToolRegistry:
    return request.app.state.registry


def get_conversations(request: Request) -> ConversationStore:
    return request.app.state.conversations


def get_feedback(request: Request) -> FeedbackStore:
    return request.app.state.feedback


# ── Chat ───────────────────────────────────────────────────────────────

@ai_router.post("/chat")
async def chat(body: ChatBody, engine: ChatEngine = Depends(get_engine)) -> StreamingResponse:
    """Stream the assistant's reply as ``text/plain`` chunks."""
    if not body.current_message.strip():
        raise ValueError("No message provided")

    request = ChatRequest(
        history=[ChatMessage(role=m.role, content=m.content) for m in body.messages],
        current_message=body.current_message,
        user_name=body.user_name or "User",
        conversation_id=body.conversation_id,
        use_knowledge=body.use_knowledge,
        use_tools=body.use_tools,
    )

    # The first chunk is awaited here so a failure before any output is sent
    # still reaches the error handlers.
    replies = engine.stream_reply(request)
    try:
        first = await replies.__anext__()
    except StopAsyncIteration:
        first = ""

    async def _stream() -> AsyncIterator[str]:
        if first:
            yield first
        try:
            async for chunk in replies:
                yield chunk
        except Exception:
            # Headers are already sent; the client sees a truncated body.
            logger.exception("[CHAT] Stream aborted.")

    return StreamingResponse(_stream(), media_type="text/plain; charset=utf-8")


@ai_router.post("/suggest")
async def suggest(body: SuggestBody, engine: ChatEngine = Depends(get_engine)) -> dict[str, str]:
    return {"suggestion": await engine.suggest(body.text)}


# ── Knowledge ──────────────────────────────────────────────────────────

@ai_router.get("/knowledge")
def list_knowledge(conversation_id: str | None = Query(None, alias="conversationId"), knowledge: KnowledgeService = Depends(get_knowledge)) -> list[dict[str, Any]]:
    return [{"id": item.id, "content": item.content, "metadata": item.metadata} for item in knowledge.list_knowledge(conversation_id)]


@ai_router.delete("/knowledge")
def delete_knowledge(item_id: str | None = Query(None, alias="id"), knowledge: KnowledgeService = Depends(get_knowledge)) -> dict[str, bool]:
    if not item_id:
        raise ValueError("ID is required")
    knowledge.delete_knowledge(item_id)
    return {"success": True}


@ai_router.post("/knowledge/ingest")
def ingest_knowledge(body: IngestBody, knowledge: KnowledgeService = Depends(get_knowledge)) -> dict[str, Any]:
    if not body.content:
        raise ValueError("Content is required")
    item = knowledge.add_knowledge(body.content, body.conversation_id, body.metadata)
    return {"success": True, "message": "Knowledge added successfully", "id": item.id}


@ai_router.post("/knowledge/search")
def search_knowledge(body: SearchBody, knowledge: KnowledgeService = Depends(get_knowledge)) -> list[dict[str, Any]]:
    return [item.to_dict() for item in knowledge.search_knowledge(body.query, body.conversation_id, body.limit)]


@ai_router.post("/knowledge/search-and-learn")
async def search_and_learn(body: SearchAndLearnBody, knowledge: KnowledgeService = Depends(get_knowledge)) -> dict[str, Any]:
    if body.url:
        result = await knowledge.ingest_from_url(body.url, body.conversation_id)
        return {"success": True, "message": f"Successfully learned from {body.url}", "detail": result}

    if body.content and body.topic:
        await asyncio.to_thread(knowledge.learn_topic, body.topic, body.content, body.conversation_id)
        return {"success": True, "message": f"Successfully learned about {body.topic}"}

    raise ValueError("Provide a URL or content + topic")


# ── Tools ──────────────────────────────────────────────────────────────

@ai_router.get("/tools")
def list_tools(registry: ToolRegistry = Depends(get_registry)) -> list[dict[str, Any]]:
    return registry.list_tools()


@ai_router.post("/tools/{name}")
async def execute_tool(name: str, params: dict[str, Any] | None = Body(None), registry: ToolRegistry = Depends(get_registry)) -> dict[str, str]:
    registry.get(name)
    return {"result": await registry.execute(name, params or {})}


# ── Training feedback ──────────────────────────────────────────────────

@ai_router.post("/feedback")
async def save_feedback(body: FeedbackBody, feedback: FeedbackStore = Depends(get_feedback)) -> dict[str, Any]:
    await feedback.save(body.prompt, body.original_response, body.corrected_response, body.user_id)
    return {"success": True}


@ai_router.get("/feedback/export")
async def export_feedback(feedback: FeedbackStore = Depends(get_feedback)) -> JSONResponse:
    records = await feedback.export()
    return JSONResponse(records, headers={"Content-Disposition": 'attachment; filename="ai_training_feedback.json"'})


# ── Conversations ──────────────────────────────────────────────────────

@conversation_router.get("")
async def list_conversations(user_id: str | None = Query(None, alias="userId"), conversations: ConversationStore = Depends(get_conversations)) -> list[dict[str, Any]]:
    if not user_id:
        raise ValueError("userId is required")
    return await conversations.list_for_user(user_id)


@conversation_router.post("", status_code=201)
async def create_conversation(body: CreateConversationBody, conversations: ConversationStore = Depends(get_conversations)) -> dict[str, Any]:
    return await conversations.create(body.user_id, body.title, [m.model_dump() for m in body.messages])


@conversation_router.get("/{conversation_id}")
async def get_conversation(conversation_id: str, conversations: ConversationStore = Depends(get_conversations)) -> dict[str, Any]:
    summary = await conversations.get(conversation_id)
    return {**summary, "messages": await conversations.load_messages(conversation_id)}


@conversation_router.patch("/{conversation_id}")
async def rename_conversation(conversation_id: str, body: RenameConversationBody, conversations: ConversationStore = Depends(get_conversations)) -> dict[str, Any]:
    return await conversations.update_title(conversation_id, body.title)


@conversation_router.delete("/{conversation_id}")
async def delete_conversation(conversation_id: str, conversations: ConversationStore = Depends(get_conversations)) -> dict[str, bool]:
    return {"success": await conversations.delete(conversation_id)}


@conversation_router.post("/{conversation_id}/messages", status_code=201)
async def add_message(conversation_id: str, body: AddMessageBody, conversations: ConversationStore = Depends(get_conversations)) -> dict[str, Any]:
    return await conversations.add_message(conversation_id, body.role, body.content)
