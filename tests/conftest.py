"""Shared fixtures.  Required secrets are seeded before ``settings`` is imported."""

import os

os.environ.setdefault("GOOGLE_API_KEY", "test-google-key")
os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")
os.environ.setdefault("ENV", "dev")

import pytest

from nexus.src.core.knowledge import KnowledgeService
from nexus.src.database.knowledge_store import KnowledgeStore

DIMS = 4


class KeywordEmbedder:
    """
    Deterministic embedder: one axis per keyword, plus a small floor so
    no vector is all zeros.  Texts sharing a keyword are near-identical.
    """

    AXES = ("vault", "weather", "python", "music")

    def __init__(self):
        self.document_calls = 0
        self.query_calls = 0

    def _vector(self, text):
        lowered = text.lower()
        return [float(lowered.count(axis)) + 0.01 for axis in self.AXES]

    def embed_documents(self, texts):
        self.document_calls += 1
        return [self._vector(t) for t in texts]

    def embed_query(self, text):
        self.query_calls += 1
        return self._vector(text)


def axis_vector(index, weight=1.0):
    vector = [0.01] * DIMS
    vector[index] = weight
    return vector


@pytest.fixture
def embedder():
    return KeywordEmbedder()


@pytest.fixture
def store(tmp_path):
    return KnowledgeStore(db_path=str(tmp_path / "lancedb"), table_name="knowledge_test", dimensions=DIMS)


@pytest.fixture
def knowledge(store, embedder):
    return KnowledgeService(store, embedder)
