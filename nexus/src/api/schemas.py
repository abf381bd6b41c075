"""
Nexus - API Schemas
====================
Request bodies for the HTTP API.  Field names follow the web client's
camelCase JSON (``currentMessage``, ``conversationId`` …) through aliases;
Python code uses snake_case.

Required text fields default to ``""`` so that the route, not pydantic,
answers a missing value with the ``{"error": ...}`` 400 shape.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ── Chat ───────────────────────────────────────────────────────────────

class HistoryMessage(_CamelModel):
    role: Literal["user", "assistant"]
    content: str


class ChatBody(_CamelModel):
    messages: list[HistoryMessage] = Field(default_factory=list)
    current_message: str = Field("", alias="currentMessage")
    user_name: str = Field("User", alias="userName")
    conversation_id: str | None = Field(None, alias="conversationId")
    use_knowledge: bool = Field(True, alias="useKnowledge")
    use_tools: bool = Field(False, alias="useTools")


class SuggestBody(_CamelModel):
    text: str = ""


# ── Knowledge ──────────────────────────────────────────────────────────

class IngestBody(_CamelModel):
    content: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    conversation_id: str | None = Field(None, alias="conversationId")


class SearchBody(_CamelModel):
    query: str = ""
    conversation_id: str | None = Field(None, alias="conversationId")
    limit: int | None = Field(None, ge=1, le=50)


class SearchAndLearnBody(_CamelModel):
    url: str | None = None
    content: str | None = None
    topic: str | None = None
    conversation_id: str | None = Field(None, alias="conversationId")


# ── Feedback ───────────────────────────────────────────────────────────

class FeedbackBody(_CamelModel):
    prompt: str
    original_response: str = Field(alias="originalResponse")
    corrected_response: str = Field(alias="correctedResponse")
    user_id: str | None = Field(None, alias="userId")


# ── Conversations ──────────────────────────────────────────────────────

class CreateConversationBody(_CamelModel):
    user_id: str = Field(alias="userId")
    title: str = "New Chat"
    messages: list[HistoryMessage] = Field(default_factory=list)


class RenameConversationBody(_CamelModel):
    title: str = Field(min_length=1)


class AddMessageBody(_CamelModel):
    role: str
    content: str
