"""Tests for the bulk ``IngestionPipeline`` and its hash cache."""

import json

from nexus.src.core.ingestor import HASH_CACHE_FILENAME, IngestionPipeline


def _write(directory, name, text):
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(text, encoding="utf-8")
    return path


class TestIngestionPipeline:
    def test_ingests_supported_files_as_global_knowledge(self, tmp_path, knowledge, store):
        source = tmp_path / "raw"
        _write(source, "vault.md", "# Vault\n\nThe vault code is ALPHA-DELTA-99.")
        _write(source, "music.txt", "Music notes.")
        _write(source, "ignored.pdf", "binary-ish")

        summary = IngestionPipeline(knowledge, source_dir=source, cache_dir=tmp_path / "processed", max_workers=2).run()

        assert summary["total_files"] == 2
        assert summary["files_processed"] == 2
        assert summary["total_chunks"] == 2
        sources = sorted(item.metadata["source_file"] for item in store.list_items())
        assert sources == ["music.txt", "vault.md"]
        assert all(item.metadata["type"] == "file_ingest" for item in store.list_items())

    def test_unchanged_files_are_skipped_on_rerun(self, tmp_path, knowledge, store):
        source = tmp_path / "raw"
        _write(source, "vault.md", "The vault code is ALPHA-DELTA-99.")
        cache_dir = tmp_path / "processed"

        IngestionPipeline(knowledge, source_dir=source, cache_dir=cache_dir).run()
        second = IngestionPipeline(knowledge, source_dir=source, cache_dir=cache_dir).run()

        assert second["files_skipped"] == 1
        assert second["total_chunks"] == 0
        assert store.count() == 1
        assert "vault.md" in json.loads((cache_dir / HASH_CACHE_FILENAME).read_text(encoding="utf-8"))

    def test_changed_file_is_reingested(self, tmp_path, knowledge, store):
        source = tmp_path / "raw"
        cache_dir = tmp_path / "processed"
        path = _write(source, "notes.txt", "first version")
        IngestionPipeline(knowledge, source_dir=source, cache_dir=cache_dir).run()

        path.write_text("second version", encoding="utf-8")
        summary = IngestionPipeline(knowledge, source_dir=source, cache_dir=cache_dir).run()

        assert summary["files_processed"] == 1
        assert store.count() == 2

    def test_long_file_is_chunked(self, tmp_path, knowledge, store):
        source = tmp_path / "raw"
        _write(source, "long.txt", "\n\n".join(f"Section {i}. " + "python " * 200 for i in range(3)))

        summary = IngestionPipeline(knowledge, source_dir=source, cache_dir=tmp_path / "processed").run()

        assert summary["total_chunks"] > 1
        indexes = sorted(item.metadata["chunk_index"] for item in store.list_items())
        assert indexes == list(range(summary["total_chunks"]))

    def test_embedding_failure_counts_as_failed_file(self, tmp_path, store):
        from unittest.mock import Mock

        from nexus.src.core.knowledge import KnowledgeService

        embedder = Mock()
        embedder.embed_documents.side_effect = RuntimeError("boom")
        source = tmp_path / "raw"
        _write(source, "a.txt", "some text")

        summary = IngestionPipeline(KnowledgeService(store, embedder), source_dir=source, cache_dir=tmp_path / "processed").run()

        assert summary["files_failed"] == 1
        assert store.count() == 0

    def test_missing_source_directory(self, tmp_path, knowledge):
        summary = IngestionPipeline(knowledge, source_dir=tmp_path / "nope", cache_dir=tmp_path / "processed").run()
        assert summary["total_files"] == 0
