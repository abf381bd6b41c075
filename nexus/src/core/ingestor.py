"""
Nexus - IngestionPipeline
==========================
Bulk-loads a directory of text documents into the knowledge base as
*global* knowledge (no conversation scope).

    read → clean → chunk → embed → store

Key design decisions:
    • **Dependency Injection** – receives a ``KnowledgeService``.
    • **Chunking** – ``RecursiveCharacterTextSplitter`` via
      ``chunk_text`` with ``CHUNK_SIZE`` / ``CHUNK_OVERLAP``.
    • **Concurrency** – files are processed in parallel on a
      ``ThreadPoolExecutor`` (embedding calls are I/O-bound).
    • **Caching** – MD5 file hashes skip unchanged files across runs.

Usage:
    from nexus.src.core.ingestor import IngestionPipeline
    pipeline = IngestionPipeline(knowledge_service)
    summary  = pipeline.run()
"""

from __future__ import annotations

import hashlib
import json
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any

from nexus.config.settings import settings
from nexus.src.core.knowledge import KnowledgeService
from nexus.src.utils.logger import get_logger
from nexus.src.utils.text_utils import chunk_text, clean_text

logger = get_logger(__name__)

_SUPPORTED_EXTENSIONS = {".txt", ".md"}
HASH_CACHE_FILENAME = "ingestion_hashes.json"


class IngestionPipeline:
    """
    Parameters
    ----------
    knowledge
        The ``KnowledgeService`` that embeds and stores chunks.
    source_dir
        Directory to scan.  Defaults to ``settings.DATA_RAW_DIR``.
    cache_dir
        Where the hash cache lives.  Defaults to ``settings.DATA_PROCESSED_DIR``.
    max_workers
        Number of parallel threads for file processing.
    """

    def __init__(self, knowledge: KnowledgeService, source_dir: Path | None = None, cache_dir: Path | None = None, max_workers: int | None = None) -> None:
        self._knowledge = knowledge
        self._source_dir = Path(source_dir or settings.DATA_RAW_DIR)
        self._max_workers = max_workers or settings.MAX_WORKERS
        self._hash_cache_path: Path = Path(cache_dir or settings.DATA_PROCESSED_DIR) / HASH_CACHE_FILENAME
        self._hash_cache: dict[str, str] = self._load_hash_cache()
        self._cache_lock = threading.Lock()


    def run(self) -> dict[str, Any]:
        """
        Execute the ingestion pipeline.

        Returns
        -------
        dict
            ``total_files``, ``files_processed``, ``files_skipped``,
            ``files_failed``, ``total_chunks``, ``elapsed_seconds``.
        """
        t_start = time.perf_counter()

        if not self._source_dir.exists():
            logger.warning("Source directory does not exist: %s", self._source_dir)
            return self._summary(0, 0, 0, 0, 0, time.perf_counter() - t_start)

        files = sorted(f for f in self._source_dir.iterdir() if f.is_file() and f.suffix.lower() in _SUPPORTED_EXTENSIONS)
        if not files:
            logger.warning("No supported files found in %s", self._source_dir)
            return self._summary(0, 0, 0, 0, 0, time.perf_counter() - t_start)

        logger.info("Starting ingestion — %d file(s) found in %s", len(files), self._source_dir)

        total_chunks = files_processed = files_skipped = files_failed = 0

        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            future_to_path = {pool.submit(self._ingest_file, fp): fp for fp in files}
            for future in as_completed(future_to_path):
                filepath = future_to_path[future]
                try:
                    result = future.result()
                except Exception:
                    logger.exception("Failed to ingest file: %s", filepath.name)
                    files_failed += 1
                    continue
                if result == -1:
                    files_skipped += 1
                else:
                    total_chunks += result
                    files_processed += 1

        self._save_hash_cache()

        elapsed = time.perf_counter() - t_start
        logger.info("Ingestion complete — %d processed, %d skipped, %d failed, %d chunk(s) stored in %.2fs.", files_processed, files_skipped, files_failed, total_chunks, elapsed)
        return self._summary(len(files), files_processed, files_skipped, files_failed, total_chunks, elapsed)


    def _ingest_file(self, filepath: Path) -> int:
        """
        Read, clean, chunk, and store a single file.

        Returns the number of chunks added, or ``-1`` on a cache hit.
        """
        file_hash = self._compute_file_hash(filepath)
        with self._cache_lock:
            if self._hash_cache.get(filepath.name) == file_hash:
                logger.info("CACHE_HIT — Skipping unchanged file: %s", filepath.name)
                return -1

        cleaned = clean_text(self._read_file(filepath))
        if not cleaned:
            logger.warning("Skipping empty file: %s", filepath.name)
            return 0

        chunks = chunk_text(cleaned, settings.CHUNK_SIZE, settings.CHUNK_OVERLAP)
        metadatas = [{"source_file": filepath.name, "chunk_index": idx, "type": "file_ingest"} for idx in range(len(chunks))]

        t_embed = time.perf_counter()
        added = self._knowledge.add_knowledge_batch(chunks, metadatas)
        logger.info("File '%s' → %d chunk(s), embed+store %.1fms.", filepath.name, added, (time.perf_counter() - t_embed) * 1000)

        with self._cache_lock:
            self._hash_cache[filepath.name] = file_hash
        return added


    @staticmethod
    def _read_file(filepath: Path) -> str:
        try:
            return filepath.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            return filepath.read_text(encoding="latin-1")


    @staticmethod
    def _compute_file_hash(filepath: Path) -> str:
        """Return the MD5 hex digest of a file's contents."""
        hasher = hashlib.md5()
        with open(filepath, "rb") as f:
            for block in iter(lambda: f.read(8192), b""):
                hasher.update(block)
        return hasher.hexdigest()


    def _load_hash_cache(self) -> dict[str, str]:
        if self._hash_cache_path.exists():
            try:
                return json.loads(self._hash_cache_path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError):
                logger.warning("Corrupt hash cache — starting fresh.")
        return {}


    def _save_hash_cache(self) -> None:
        self._hash_cache_path.parent.mkdir(parents=True, exist_ok=True)
        self._hash_cache_path.write_text(json.dumps(self._hash_cache, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug("Hash cache saved to %s", self._hash_cache_path)


    @staticmethod
    def _summary(total: int, processed: int, skipped: int, failed: int, chunks: int, elapsed: float) -> dict[str, Any]:
        return {
            "total_files": total,
            "files_processed": processed,
            "files_skipped": skipped,
            "files_failed": failed,
            "total_chunks": chunks,
            "elapsed_seconds": round(elapsed, 2),
        }
