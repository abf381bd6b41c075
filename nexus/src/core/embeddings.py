"""
Nexus - Embeddings
===================
Embedder protocol plus the factory for the Gemini embedding model.

The embedder is always injected into the stores and services, so tests
can swap in a deterministic fake that satisfies ``Embedder``.

Usage:
    from nexus.src.core.embeddings import build_embedder, get_embedding
    embedder = build_embedder()
    vector = get_embedding(embedder, "What is the vault code?")
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from nexus.config.settings import settings
from nexus.src.core.errors import KnowledgeError
from nexus.src.utils.logger import get_logger
from nexus.src.utils.text_utils import prepare_for_embedding

logger = get_logger(__name__)


@runtime_checkable
class Embedder(Protocol):
    """Structural type for any LangChain-compatible embedding model."""

    def embed_documents(self, texts: list[str]) -> list[list[float]]: ...

    def embed_query(self, text: str) -> list[float]: ...


def build_embedder() -> Embedder:
    """Create the Gemini embedder configured from ``settings``."""
    from langchain_google_genai import GoogleGenerativeAIEmbeddings

    embedder = GoogleGenerativeAIEmbeddings(model=settings.EMBEDDING_MODEL, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
    logger.info("Embedder initialised: %s (%d dims)", settings.EMBEDDING_MODEL, settings.EMBEDDING_DIMENSIONS)
    return _DimensionedEmbedder(embedder, settings.EMBEDDING_DIMENSIONS)


class _DimensionedEmbedder:
    """
    Pins Gemini's ``output_dimensionality`` so every vector matches the
    fixed-width column of the knowledge table.
    """

    __slots__ = ("_inner", "_dims")

    def __init__(self, inner: object, dims: int) -> None:
        self._inner = inner
        self._dims = dims


    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return self._inner.embed_documents(texts, output_dimensionality=self._dims)  # type: ignore[attr-defined]


    def embed_query(self, text: str) -> list[float]:
        return self._inner.embed_query(text, output_dimensionality=self._dims)  # type: ignore[attr-defined]


def get_embedding(embedder: Embedder, text: str, *, query: bool = False) -> list[float]:
    """
    Embed a single text.

    Raises
    ------
    KnowledgeError
        If the embedding call fails or returns an empty vector.
    """
    prepared = prepare_for_embedding(text)
    try:
        if query:
            vector = embedder.embed_query(prepared)
        else:
            vector = embedder.embed_documents([prepared])[0]
    except Exception as exc:
        logger.error("[EMBED] Embedding call failed: %s", exc)
        raise KnowledgeError(f"Embedding error: {exc}") from exc

    if not vector:
        raise KnowledgeError("Embedding error: empty vector returned")
    return list(vector)
