"""Tests for ``KnowledgeService``: embedding, matching, topic learning and URL ingestion."""

from unittest.mock import Mock

import httpx
import pytest

from nexus.src.core.errors import IngestionError, KnowledgeError
from nexus.src.core.knowledge import KnowledgeService, format_context
from nexus.src.database.knowledge_store import KnowledgeItem


class TestAddAndSearch:
    def test_add_then_search_finds_relevant_item(self, knowledge):
        knowledge.add_knowledge("The vault code is ALPHA-DELTA-99.")
        knowledge.add_knowledge("Tomorrow's weather looks sunny.")

        items = knowledge.search_knowledge("what is the vault code")

        assert [i.content for i in items] == ["The vault code is ALPHA-DELTA-99."]
        assert items[0].similarity > 0.9

    def test_empty_content_is_rejected(self, knowledge):
        with pytest.raises(ValueError, match="Content is required"):
            knowledge.add_knowledge("   ")

    def test_empty_query_is_rejected(self, knowledge):
        with pytest.raises(ValueError):
            knowledge.search_knowledge("")

    def test_query_uses_query_embedding(self, knowledge, embedder):
        knowledge.search_knowledge("vault")
        assert embedder.query_calls == 1

    def test_search_respects_conversation_scope(self, knowledge):
        knowledge.add_knowledge("vault note for chat one", conversation_id="one")
        assert knowledge.search_knowledge("vault", conversation_id="two") == []
        assert len(knowledge.search_knowledge("vault", conversation_id="one")) == 1

    def test_embedding_failure_becomes_knowledge_error(self, store):
        embedder = Mock()
        embedder.embed_documents.side_effect = RuntimeError("quota exceeded")
        service = KnowledgeService(store, embedder)

        with pytest.raises(KnowledgeError, match="quota exceeded"):
            service.add_knowledge("anything")


class TestBatchAndTopics:
    def test_add_knowledge_batch(self, knowledge, store, embedder):
        added = knowledge.add_knowledge_batch(["vault one", "music two"], [{"chunk_index": 0}, {"chunk_index": 1}])
        assert added == 2
        assert store.count() == 2
        assert embedder.document_calls == 1

    def test_learn_topic_format_and_metadata(self, knowledge):
        item = knowledge.learn_topic("Python", "Python is a programming language.")
        assert item.content == "Topic: Python\n\nPython is a programming language."
        assert item.metadata == {"type": "manual_search_result", "topic": "Python"}

    def test_list_and_delete(self, knowledge):
        item = knowledge.add_knowledge("music is great")
        assert [i.id for i in knowledge.list_knowledge()] == [item.id]
        assert knowledge.delete_knowledge(item.id) is True
        assert knowledge.list_knowledge() == []


class TestIngestFromUrl:
    def _service(self, store, embedder, handler):
        return KnowledgeService(store, embedder, httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    async def test_stores_page_text_with_source_metadata(self, store, embedder):
        body = "<html><body><p>" + "The python guide. " * 20 + "</p></body></html>"
        service = self._service(store, embedder, lambda r: httpx.Response(200, text=body))

        result = await service.ingest_from_url("https://docs.example.com/guide", conversation_id="c1")

        assert result["success"] is True
        items = store.list_items("c1")
        assert len(items) == 1
        assert items[0].content.startswith("Content from https://docs.example.com/guide: The python guide.")
        assert items[0].metadata == {"source": "https://docs.example.com/guide", "type": "url_ingest"}

    async def test_text_is_capped(self, store, embedder):
        service = self._service(store, embedder, lambda r: httpx.Response(200, text="x" * 20_000))
        result = await service.ingest_from_url("https://example.com")
        assert result["length"] == 5000

    async def test_too_little_text(self, store, embedder):
        service = self._service(store, embedder, lambda r: httpx.Response(200, text="<p>tiny</p>"))
        with pytest.raises(IngestionError, match="Could not extract enough text from URL"):
            await service.ingest_from_url("https://example.com")

    async def test_http_error_becomes_ingestion_error(self, store, embedder):
        service = self._service(store, embedder, lambda r: httpx.Response(503))
        with pytest.raises(IngestionError):
            await service.ingest_from_url("https://example.com")

    async def test_invalid_scheme(self, knowledge):
        with pytest.raises(ValueError):
            await knowledge.ingest_from_url("file:///etc/passwd")


def test_format_context_numbers_items_with_relevance():
    items = [KnowledgeItem(id="1", content="first", similarity=0.912), KnowledgeItem(id="2", content="second", similarity=0.5)]
    assert format_context(items) == "[1] (Relevance: 91%)\nfirst\n\n[2] (Relevance: 50%)\nsecond"
    assert format_context([]) == ""
