"""
Nexus - Application Entry Point
================================
FastAPI application factory.  The lifespan builds every shared resource
once and hangs it on ``app.state``:

    httpx client → embedder → KnowledgeStore → KnowledgeService
    Mongo stores → ToolRegistry → ToolRouter → ChatEngine

Routes reach them through the dependencies in ``nexus.src.api.routes``.
Tests call ``create_app(build_state=False)`` and set ``app.state``
themselves.

Usage:
    uvicorn nexus.src.main:create_app --factory
    python -m nexus.src.main
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from nexus.config.settings import settings
from nexus.src.api.routes import ai_router, conversation_router
from nexus.src.core.errors import ConversationNotFoundError, ToolNotFoundError
from nexus.src.utils.logger import get_logger

logger = get_logger(__name__)


def _build_state(app: FastAPI) -> httpx.AsyncClient:
    from nexus.src.core.chat_engine import ChatEngine, init_llm
    from nexus.src.core.embeddings import build_embedder
    from nexus.src.core.knowledge import KnowledgeService
    from nexus.src.core.tool_router import ToolRouter
    from nexus.src.database.conversation_store import ConversationStore
    from nexus.src.database.feedback_store import FeedbackStore
    from nexus.src.database.knowledge_store import KnowledgeStore
    from nexus.src.tools.defaults import build_default_registry

    http_client = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)

    app.state.knowledge = KnowledgeService(KnowledgeStore(), build_embedder(), http_client)
    app.state.conversations = ConversationStore()
    app.state.feedback = FeedbackStore()
    app.state.registry = build_default_registry(http_client, app.state.knowledge, app.state.conversations)
    router = ToolRouter(init_llm(0.0), app.state.registry)
    app.state.engine = ChatEngine(app.state.knowledge, app.state.conversations, router)

    logger.info("%s ready — %d tool(s), %r", settings.APP_NAME, len(app.state.registry), app.state.knowledge.store)
    return http_client


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        return _error(400, f"{location}: {first.get('msg', 'invalid request')}" if location else "Invalid request")

    @app.exception_handler(ValueError)
    async def _bad_request(request: Request, exc: ValueError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(ConversationNotFoundError)
    @app.exception_handler(ToolNotFoundError)
    async def _not_found(request: Request, exc: Exception) -> JSONResponse:
        return _error(404, str(exc))

    @app.exception_handler(Exception)
    async def _server_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, str(exc) or "Internal server error")


def create_app(build_state: bool = True) -> FastAPI:
    """Build the FastAPI app.  ``build_state=False`` skips resource creation."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if not build_state:
            yield
            return

        from nexus.src.database.mongo import close_mongo_client

        http_client = _build_state(app)
        try:
            yield
        finally:
            await http_client.aclose()
            close_mongo_client()
            logger.info("%s shut down.", settings.APP_NAME)

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=settings.CORS_ALLOW_ORIGINS, allow_credentials=True, allow_methods=["*"], allow_headers=["*"])
    _register_error_handlers(app)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(ai_router)
    app.include_router(conversation_router)
    return app


def run() -> None:
    import uvicorn

    uvicorn.run("nexus.src.main:create_app", factory=True, host=settings.API_HOST, port=settings.API_PORT, reload=settings.ENV == "dev")


if __name__ == "__main__":
    run()
