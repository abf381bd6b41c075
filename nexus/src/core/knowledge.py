"""
Nexus - KnowledgeService
=========================
Semantic knowledge operations on top of ``KnowledgeStore``:

  • ``add_knowledge``     — embed + store a piece of text
  • ``search_knowledge``  — embed a query + cosine match above threshold
  • ``list_knowledge`` / ``delete_knowledge``
  • ``learn_topic``       — store a manually supplied topic write-up
  • ``ingest_from_url``   — fetch a page, strip it to text, store it

Embedding and LanceDB calls are blocking; async callers hop onto a worker
thread with ``asyncio.to_thread``.  URL fetching is natively async via
``httpx``.

Usage:
    service = KnowledgeService(KnowledgeStore(), build_embedder())
    service.add_knowledge("The vault code is ALPHA-DELTA-99.")
    items = service.search_knowledge("vault code")
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from nexus.config.settings import settings
from nexus.src.core.embeddings import Embedder, get_embedding
from nexus.src.core.errors import IngestionError, KnowledgeError
from nexus.src.database.knowledge_store import KnowledgeItem, KnowledgeMetadata, KnowledgeStore
from nexus.src.utils.logger import get_logger
from nexus.src.utils.text_utils import html_to_text, prepare_for_embedding

logger = get_logger(__name__)

_EMBED_BATCH_SIZE = 64
_BROWSER_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


class KnowledgeService:
    """
    Parameters
    ----------
    store
        The ``KnowledgeStore`` holding vectors and content.
    embedder
        Any ``Embedder``; must produce vectors of the store's width.
    http_client
        Optional shared ``httpx.AsyncClient`` for URL ingestion.
    """

    __slots__ = ("_store", "_embedder", "_http")

    def __init__(self, store: KnowledgeStore, embedder: Embedder, http_client: httpx.AsyncClient | None = None) -> None:
        self._store = store
        self._embedder = embedder
        self._http = http_client


    @property
    def store(self) -> KnowledgeStore:
        return self._store


    def add_knowledge(self, content: str, conversation_id: str | None = None, metadata: KnowledgeMetadata | None = None) -> KnowledgeItem:
        """Embed *content* and persist it.  Empty content is rejected."""
        if not content or not content.strip():
            raise ValueError("Content is required")
        vector = get_embedding(self._embedder, content)
        return self._store.add(content, vector, conversation_id=conversation_id, metadata=metadata)


    def add_knowledge_batch(self, contents: list[str], metadatas: list[KnowledgeMetadata], conversation_id: str | None = None) -> int:
        """
        Embed and store many texts, in embedding batches of
        ``_EMBED_BATCH_SIZE`` to keep peak memory bounded.
        """
        if len(contents) != len(metadatas):
            raise ValueError(f"Length mismatch: {len(contents)} contents vs {len(metadatas)} metadatas.")

        vectors: list[list[float]] = []
        for i in range(0, len(contents), _EMBED_BATCH_SIZE):
            batch = [prepare_for_embedding(c) for c in contents[i : i + _EMBED_BATCH_SIZE]]
            try:
                vectors.extend(self._embedder.embed_documents(batch))
            except Exception as exc:
                logger.error("Embedding batch %d–%d failed: %s", i, i + len(batch) - 1, exc)
                raise KnowledgeError(f"Embedding error: {exc}") from exc

        return self._store.add_many(contents, vectors, metadatas, conversation_id=conversation_id)


    def search_knowledge(self, query: str, conversation_id: str | None = None, limit: int | None = None) -> list[KnowledgeItem]:
        """Items relevant to *query*, most similar first."""
        if not query or not query.strip():
            raise ValueError("Query is required")
        vector = get_embedding(self._embedder, query, query=True)
        return self._store.match(vector, threshold=settings.MATCH_THRESHOLD, count=limit or settings.MATCH_COUNT, conversation_id=conversation_id)


    def list_knowledge(self, conversation_id: str | None = None) -> list[KnowledgeItem]:
        return self._store.list_items(conversation_id)


    def delete_knowledge(self, item_id: str) -> bool:
        return self._store.delete(item_id)


    def learn_topic(self, topic: str, content: str, conversation_id: str | None = None) -> KnowledgeItem:
        return self.add_knowledge(f"Topic: {topic}\n\n{content}", conversation_id, {"type": "manual_search_result", "topic": topic})


    async def ingest_from_url(self, url: str, conversation_id: str | None = None) -> dict[str, Any]:
        """
        Fetch *url*, reduce it to text and learn it.

        Raises
        ------
        IngestionError
            If the page cannot be fetched or yields fewer than
            ``URL_INGEST_MIN_CHARS`` characters of text.
        """
        if not url.startswith(("http://", "https://")):
            raise ValueError("Invalid URL. Must start with http:// or https://")

        html = await self._fetch(url)
        text = html_to_text(html)[: settings.URL_INGEST_MAX_CHARS]
        if len(text) < settings.URL_INGEST_MIN_CHARS:
            raise IngestionError("Could not extract enough text from URL")

        await asyncio.to_thread(self.add_knowledge, f"Content from {url}: {text}", conversation_id, {"source": url, "type": "url_ingest"})
        logger.info("[KNOWLEDGE] Learned %d chars from %s.", len(text), url)
        return {"success": True, "length": len(text)}


    async def _fetch(self, url: str) -> str:
        headers = {"User-Agent": _BROWSER_USER_AGENT}
        try:
            if self._http is not None:
                response = await self._http.get(url, headers=headers, follow_redirects=True)
            else:
                async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
                    response = await client.get(url, headers=headers, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("[KNOWLEDGE] Fetch failed for %s: %s", url, exc)
            raise IngestionError(f"Failed to fetch {url}: {exc}") from exc
        return response.text


def format_context(items: list[KnowledgeItem]) -> str:
    """Numbered knowledge block for prompt injection, with relevance percent."""
    if not items:
        return ""
    blocks: list[str] = []
    for i, item in enumerate(items, 1):
        relevance = round((item.similarity or 0.0) * 100)
        blocks.append(f"[{i}] (Relevance: {relevance}%)\n{item.content}")
    return "\n\n".join(blocks)
