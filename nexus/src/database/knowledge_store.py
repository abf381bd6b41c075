"""
Nexus - KnowledgeStore
=======================
OOP wrapper around LanceDB holding the knowledge base:
  • Table creation with a strict PyArrow schema
  • Row insertion (pre-computed embedding + metadata)
  • Cosine similarity matching with a threshold and conversation scope
  • Listing and deletion by id

Design decisions:
  • **Singleton DB connection** — ``_get_connection()`` caches the
    ``lancedb.DBConnection`` per path to avoid file-lock contention.
  • **Vectors in, vectors out** — the store never embeds; the
    ``KnowledgeService`` owns the embedder.
  • **Scope** — a row with ``conversation_id`` null is *global* and is
    visible from every conversation.  A row bound to a conversation is
    only visible from that conversation.

Usage:
    store = KnowledgeStore(dimensions=768)
    item = store.add("The vault code is ALPHA-DELTA-99.", vector)
    matches = store.match(query_vector, threshold=0.5, count=3)
"""

from __future__ import annotations

import json
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import lancedb
import pyarrow as pa

from nexus.config.settings import settings
from nexus.src.core.errors import KnowledgeError
from nexus.src.utils.logger import get_logger

logger = get_logger(__name__)

KnowledgeMetadata = dict[str, Any]

_DB_LOCK = threading.Lock()
_db_connection_cache: dict[str, lancedb.DBConnection] = {}
_ITEM_COLUMNS = ["id", "content", "metadata", "conversation_id", "created_at"]


def knowledge_schema(dimensions: int) -> pa.Schema:
    """Table schema; the vector column is fixed-width so it can be searched."""
    return pa.schema([
        pa.field("id", pa.utf8(), nullable=False),
        pa.field("vector", pa.list_(pa.float32(), dimensions)),
        pa.field("content", pa.utf8()),
        pa.field("metadata", pa.utf8()),
        pa.field("conversation_id", pa.utf8(), nullable=True),
        pa.field("created_at", pa.utf8()),
    ])


def _get_connection(db_path: str) -> lancedb.DBConnection:
    """Return a thread-safe **singleton** ``lancedb.DBConnection`` for *db_path*."""
    if db_path not in _db_connection_cache:
        with _DB_LOCK:
            if db_path not in _db_connection_cache:
                logger.info("Opening new LanceDB connection: %s", db_path)
                _db_connection_cache[db_path] = lancedb.connect(db_path)
    return _db_connection_cache[db_path]


def _quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


@dataclass
class KnowledgeItem:
    """A stored piece of knowledge.  ``similarity`` is set only on matches."""

    id: str
    content: str
    metadata: KnowledgeMetadata = field(default_factory=dict)
    conversation_id: str | None = None
    created_at: str | None = None
    similarity: float | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "content": self.content, "metadata": self.metadata}
        if self.conversation_id is not None:
            data["conversation_id"] = self.conversation_id
        if self.similarity is not None:
            data["similarity"] = self.similarity
        return data


class KnowledgeStore:
    """
    High-level abstraction over the LanceDB knowledge table.

    Parameters
    ----------
    db_path
        Override the database directory.  Defaults to ``settings.LANCEDB_PATH``.
    table_name
        Override the table name.  Defaults to ``settings.LANCEDB_TABLE_NAME``.
    dimensions
        Vector width.  Defaults to ``settings.EMBEDDING_DIMENSIONS``.
    """

    __slots__ = ("_db_path", "_table_name", "_dimensions", "_write_lock", "db", "table")

    def __init__(self, db_path: str | None = None, table_name: str | None = None, dimensions: int | None = None) -> None:
        self._db_path: str = str(db_path or settings.LANCEDB_PATH)
        self._table_name: str = table_name or settings.LANCEDB_TABLE_NAME
        self._dimensions: int = dimensions or settings.EMBEDDING_DIMENSIONS
        self._write_lock = threading.Lock()
        self.db: lancedb.DBConnection | None = None
        self.table: lancedb.table.Table | None = None
        self._connect()


    def _connect(self) -> None:
        """Open (or re-use) the LanceDB connection and initialise the table."""
        try:
            self.db = _get_connection(self._db_path)
            if self._table_name in self.db.table_names():
                self.table = self.db.open_table(self._table_name)
                logger.info("Opened existing table '%s' (%d rows).", self._table_name, self.table.count_rows())
            else:
                self.table = self.db.create_table(self._table_name, schema=knowledge_schema(self._dimensions))
                logger.info("Created new table '%s' (%d dims).", self._table_name, self._dimensions)
        except OSError as exc:
            logger.error("LanceDB filesystem error at %s: %s", self._db_path, exc)
            raise KnowledgeError(f"Knowledge store unavailable: {exc}") from exc


    def _require_table(self) -> lancedb.table.Table:
        if self.table is None:
            raise KnowledgeError("Knowledge table is not initialised.")
        return self.table


    def add(self, content: str, vector: list[float], conversation_id: str | None = None, metadata: KnowledgeMetadata | None = None) -> KnowledgeItem:
        """
        Persist one knowledge row.

        Raises
        ------
        KnowledgeError
            If the vector width does not match the table, or the write fails.
        """
        if len(vector) != self._dimensions:
            raise KnowledgeError(f"Vector has {len(vector)} dims, table '{self._table_name}' expects {self._dimensions}.")

        table = self._require_table()
        item = KnowledgeItem(id=uuid.uuid4().hex, content=content, metadata=dict(metadata or {}), conversation_id=conversation_id, created_at=datetime.now(timezone.utc).isoformat())
        record = {"id": item.id, "vector": [float(v) for v in vector], "content": item.content, "metadata": json.dumps(item.metadata, ensure_ascii=False), "conversation_id": item.conversation_id, "created_at": item.created_at}

        try:
            with self._write_lock:
                table.add([record])
        except OSError as exc:
            logger.error("Failed to write knowledge row: %s", exc)
            raise KnowledgeError(f"Error adding knowledge: {exc}") from exc

        logger.info("[KNOWLEDGE] Stored item %s (%d chars, scope=%s).", item.id, len(content), conversation_id or "global")
        return item


    def add_many(self, contents: list[str], vectors: list[list[float]], metadatas: list[KnowledgeMetadata], conversation_id: str | None = None) -> int:
        """
        Persist a batch of rows in one write.

        Raises
        ------
        ValueError
            If the three lists have mismatched lengths.
        """
        if not len(contents) == len(vectors) == len(metadatas):
            raise ValueError(f"Length mismatch: {len(contents)} contents, {len(vectors)} vectors, {len(metadatas)} metadatas.")
        if not contents:
            return 0

        table = self._require_table()
        now = datetime.now(timezone.utc).isoformat()
        records = []
        for content, vector, meta in zip(contents, vectors, metadatas):
            if len(vector) != self._dimensions:
                raise KnowledgeError(f"Vector has {len(vector)} dims, table '{self._table_name}' expects {self._dimensions}.")
            records.append({"id": uuid.uuid4().hex, "vector": [float(v) for v in vector], "content": content, "metadata": json.dumps(meta, ensure_ascii=False), "conversation_id": conversation_id, "created_at": now})

        try:
            with self._write_lock:
                table.add(records)
        except OSError as exc:
            logger.error("Failed to write %d knowledge rows: %s", len(records), exc)
            raise KnowledgeError(f"Error adding knowledge: {exc}") from exc

        logger.info("[KNOWLEDGE] Stored %d rows. Table '%s' now has %d total rows.", len(records), self._table_name, table.count_rows())
        return len(records)


    def match(self, query_vector: list[float], threshold: float, count: int, conversation_id: str | None = None) -> list[KnowledgeItem]:
        """
        Return up to *count* items with cosine similarity ≥ *threshold*,
        most similar first.

        With *conversation_id*, both that conversation's items and global
        items are candidates; without it, only global items are.
        """
        table = self._require_table()
        if count < 1 or table.count_rows() == 0:
            return []

        where = self._scope_clause(conversation_id, include_global=True)
        try:
            rows = table.search(query_vector).distance_type("cosine").where(where, prefilter=True).limit(count).to_list()
        except (OSError, ValueError) as exc:
            logger.error("Knowledge search failed: %s", exc)
            raise KnowledgeError(f"Error searching knowledge: {exc}") from exc

        items: list[KnowledgeItem] = []
        for row in rows:
            similarity = 1.0 - float(row.get("_distance", 1.0))
            if similarity < threshold:
                continue
            item = self._row_to_item(row)
            item.similarity = round(similarity, 4)
            items.append(item)

        items.sort(key=lambda i: i.similarity or 0.0, reverse=True)
        logger.info("[KNOWLEDGE] Match: %d candidate(s) → %d above threshold %.2f.", len(rows), len(items), threshold)
        return items


    def list_items(self, conversation_id: str | None = None) -> list[KnowledgeItem]:
        """
        List items newest first.

        With *conversation_id* only that conversation's items are returned;
        without it only global items, so per-chat knowledge never leaks.
        """
        items = [item for item in self._all_items() if item.conversation_id == conversation_id]
        items.sort(key=lambda i: i.created_at or "", reverse=True)
        return items


    def get(self, item_id: str) -> KnowledgeItem | None:
        table = self._require_table()
        rows = table.search().where(f"id = {_quote(item_id)}").select(_ITEM_COLUMNS).limit(1).to_list()
        return self._row_to_item(rows[0]) if rows else None


    def _all_items(self) -> list[KnowledgeItem]:
        table = self._require_table()
        rows = table.to_arrow().select(_ITEM_COLUMNS).to_pylist()
        return [self._row_to_item(row) for row in rows]


    def delete(self, item_id: str) -> bool:
        """Delete one item.  Returns False if no such id exists."""
        table = self._require_table()
        if table.count_rows(f"id = {_quote(item_id)}") == 0:
            return False
        with self._write_lock:
            table.delete(f"id = {_quote(item_id)}")
        logger.info("[KNOWLEDGE] Deleted item %s.", item_id)
        return True


    def count(self) -> int:
        """Return the total number of rows in the table."""
        if self.table is None:
            return 0
        return self.table.count_rows()


    def drop(self) -> None:
        """Drop the knowledge table (used by re-ingestion)."""
        if self.db is None:
            logger.warning("No database connection; nothing to drop.")
            return
        try:
            self.db.drop_table(self._table_name)
            self.table = None
            logger.info("Dropped table '%s'.", self._table_name)
        except (ValueError, FileNotFoundError):
            logger.warning("Table '%s' does not exist — nothing to drop.", self._table_name)


    @staticmethod
    def _scope_clause(conversation_id: str | None, include_global: bool) -> str:
        if conversation_id is None:
            return "conversation_id IS NULL"
        own = f"conversation_id = {_quote(conversation_id)}"
        return f"({own} OR conversation_id IS NULL)" if include_global else own


    @staticmethod
    def _row_to_item(row: dict[str, Any]) -> KnowledgeItem:
        raw_meta = row.get("metadata") or "{}"
        try:
            metadata = json.loads(raw_meta)
        except json.JSONDecodeError:
            metadata = {"raw": raw_meta}
        return KnowledgeItem(id=row["id"], content=row.get("content", ""), metadata=metadata, conversation_id=row.get("conversation_id"), created_at=row.get("created_at"))


    def __repr__(self) -> str:
        return f"KnowledgeStore(db='{self._db_path}', table='{self._table_name}', rows={self.count()})"
