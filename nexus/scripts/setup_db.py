"""
Nexus - Knowledge Base Setup & Ingestion Script
=================================================
CLI entry point that orchestrates:
    1. Validate that the required secrets are set (fail-fast).
    2. Open the ``KnowledgeStore`` (optionally drop the existing table).
    3. Run the ``IngestionPipeline`` over the source directory.
    4. Print a structured execution summary with timing breakdown.

Flags:
    --drop       Drop the LanceDB table before ingesting (cache preserved).
    --purge      Drop table AND clear the hash cache (full re-ingestion).
    --source     Directory to ingest instead of ``DATA_RAW_DIR``.

Usage:
    python -m nexus.scripts.setup_db                  # Normal ingestion
    python -m nexus.scripts.setup_db --drop           # Drop table, re-ingest (skip cached)
    python -m nexus.scripts.setup_db --purge          # Drop table + cache, full re-ingest
    python -m nexus.scripts.setup_db --source ./docs  # Ingest another directory
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

# ── Ensure project root is importable when run directly ────────────────
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))


# ── CLI Argument Parsing ───────────────────────────────────────────────

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="setup_db", description="Nexus — Initialise the knowledge base and ingest a directory of documents.")
    parser.add_argument("--drop", action="store_true", default=False, help="Drop the LanceDB table before ingesting (hash cache preserved).")
    parser.add_argument("--purge", action="store_true", default=False, help="Drop the LanceDB table AND clear the hash cache (full clean re-ingestion).")
    parser.add_argument("--source", type=Path, default=None, help="Directory of .txt/.md files to ingest (defaults to DATA_RAW_DIR).")
    return parser.parse_args(argv)


# ── Main Orchestration ─────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    t_start = time.perf_counter()

    # ── 0. Load settings + .env (timed) ────────────────────────────────
    t_settings = time.perf_counter()
    try:
        from nexus.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your .env file:\n")
        print(f"  {exc}")
        print()
        return 1
    settings_ms = (time.perf_counter() - t_settings) * 1000

    from nexus.src.utils.logger import get_logger
    logger = get_logger(__name__)

    source_dir = args.source or settings.DATA_RAW_DIR
    _print_header(settings, source_dir)

    # ── 1. Embedder + store ────────────────────────────────────────────
    from nexus.src.core.embeddings import build_embedder
    from nexus.src.core.errors import KnowledgeError
    from nexus.src.core.ingestor import HASH_CACHE_FILENAME, IngestionPipeline
    from nexus.src.core.knowledge import KnowledgeService
    from nexus.src.database.knowledge_store import KnowledgeStore

    t_init = time.perf_counter()
    try:
        embedder = build_embedder()
        store = KnowledgeStore()
    except KnowledgeError as exc:
        logger.error("Initialisation failed: %s", exc)
        return 1
    init_ms = (time.perf_counter() - t_init) * 1000

    if args.drop or args.purge:
        logger.warning("Dropping table '%s' as requested.", settings.LANCEDB_TABLE_NAME)
        store.drop()

        if args.purge:
            cache_path = settings.DATA_PROCESSED_DIR / HASH_CACHE_FILENAME
            if cache_path.exists():
                cache_path.unlink()
                logger.warning("Hash cache deleted: %s", cache_path)
            else:
                logger.info("No hash cache to clear.")

        store = KnowledgeStore()

    logger.info("KnowledgeStore ready — %r", store)

    # ── 2. Run IngestionPipeline ───────────────────────────────────────
    pipeline = IngestionPipeline(KnowledgeService(store, embedder), source_dir=source_dir)
    summary = pipeline.run()

    # ── 3. Print execution summary ─────────────────────────────────────
    _print_footer(summary, time.perf_counter() - t_start, settings_ms, init_ms)
    return 0 if summary["files_failed"] == 0 else 2


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: object, source_dir: Path) -> None:
    api_key_val = settings.GOOGLE_API_KEY.get_secret_value()  # type: ignore[attr-defined]
    masked = f"****{api_key_val[-4:]}" if len(api_key_val) > 4 else "****"

    print()
    print("=" * 60)
    print("  NEXUS — Knowledge Base Setup & Ingestion")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")                   # type: ignore[attr-defined]
    print(f"  Embedding    : {settings.EMBEDDING_MODEL}")       # type: ignore[attr-defined]
    print(f"  LanceDB path : {settings.LANCEDB_PATH}")          # type: ignore[attr-defined]
    print(f"  Source dir   : {source_dir}")
    print(f"  Chunk size   : {settings.CHUNK_SIZE} chars")      # type: ignore[attr-defined]
    print(f"  Workers      : {settings.MAX_WORKERS}")           # type: ignore[attr-defined]
    print(f"  API Key      : {masked}")
    print("=" * 60)
    print()


def _print_footer(summary: dict, elapsed: float, settings_ms: float, init_ms: float) -> None:
    print()
    print("=" * 60)
    print("  EXECUTION SUMMARY")
    print("-" * 60)
    print(f"  Total files scanned  : {summary['total_files']}")
    print(f"  Files ingested       : {summary['files_processed']}")
    print(f"  Files skipped (cache): {summary['files_skipped']}")
    print(f"  Files failed         : {summary['files_failed']}")
    print(f"  Total chunks stored  : {summary['total_chunks']}")
    print("-" * 60)
    print(f"  Settings + .env load : {settings_ms:>8.1f}ms")
    print(f"  Embedder + LanceDB   : {init_ms:>8.1f}ms")
    print(f"  Processing time      : {summary['elapsed_seconds']:>8.2f}s")
    print(f"  Total elapsed        : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    sys.exit(main())
