"""
Nexus - Centralized Configuration
==================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``GOOGLE_API_KEY`` is typed as ``SecretStr`` and has **no default value**.
  If the key is missing at startup, Pydantic raises a ``ValidationError``.
  The raw value is never exposed in repr, logs, or tracebacks.
- ``MONGO_URI`` is also ``SecretStr`` — connection strings carry credentials.
- Tool API keys (NewsAPI, GNews, OpenWeather) are optional.  Tools that need
  a missing key answer with a configuration message instead of failing.

Retrieval
---------
``MATCH_THRESHOLD`` and ``MATCH_COUNT`` drive the knowledge lookup: only
items whose cosine similarity reaches the threshold are injected into the
chat prompt, at most ``MATCH_COUNT`` of them.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).
    Fields *without* a default are **required**.

    Attributes
    ----------
    GOOGLE_API_KEY : SecretStr
        API key for Google AI Studio (Gemini chat + embeddings).  **Required.**
    MONGO_URI : SecretStr
        MongoDB connection string for conversations and feedback.  **Required.**
    EMBEDDING_DIMENSIONS : int
        Width of the stored vectors.  Must match what ``EMBEDDING_MODEL``
        returns for the configured output dimensionality.
    MATCH_THRESHOLD : float
        Minimum cosine similarity for a knowledge item to count as a match.
    MATCH_COUNT : int
        Default number of knowledge matches per lookup.
    URL_INGEST_MAX_CHARS / URL_INGEST_MIN_CHARS : int
        Bounds on text extracted from a URL before it is learned.
    MAX_TOOL_CALLS : int
        Upper bound on planner → tool iterations per chat turn.
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent
    DATA_RAW_DIR: Path = BASE_DIR / "data" / "raw"
    DATA_PROCESSED_DIR: Path = BASE_DIR / "data" / "processed"
    LANCEDB_PATH: Path = BASE_DIR / "data" / "lancedb"

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"
    APP_NAME: str = "Nexus AI"

    # ── API Keys (REQUIRED — no default) ───────────────────────────────
    GOOGLE_API_KEY: SecretStr

    # ── Tool API Keys (optional) ───────────────────────────────────────
    NEWS_API_KEY: SecretStr | None = None
    GNEWS_API_KEY: SecretStr | None = None
    OPENWEATHER_API_KEY: SecretStr | None = None

    # ── MongoDB (REQUIRED — no default) ────────────────────────────────
    MONGO_URI: SecretStr
    MONGO_DB_NAME: str = "nexus"

    # ── Model Configuration ────────────────────────────────────────────
    LLM_MODEL: str = "gemini-2.0-flash"
    LLM_TEMPERATURE: float = 0.7
    SUGGEST_TEMPERATURE: float = 0.2
    EMBEDDING_MODEL: str = "models/gemini-embedding-001"
    EMBEDDING_DIMENSIONS: int = 768

    # ── LanceDB ────────────────────────────────────────────────────────
    LANCEDB_TABLE_NAME: str = "knowledge_base"

    # ── Retrieval ──────────────────────────────────────────────────────
    MATCH_THRESHOLD: float = 0.5
    MATCH_COUNT: int = 3

    # ── Ingestion Parameters ───────────────────────────────────────────
    CHUNK_SIZE: int = 1000
    CHUNK_OVERLAP: int = 100
    MAX_WORKERS: int = 4
    URL_INGEST_MAX_CHARS: int = 5000
    URL_INGEST_MIN_CHARS: int = 100

    # ── Tools ──────────────────────────────────────────────────────────
    ENABLE_TOOLS: bool = True
    MAX_TOOL_CALLS: int = 2
    TOOL_TIMEOUT_SECONDS: float = 15.0
    HTTP_TIMEOUT_SECONDS: float = 10.0
    FETCH_CONTENT_MAX_CHARS: int = 2000

    # ── HTTP ───────────────────────────────────────────────────────────
    API_HOST: str = "127.0.0.1"
    API_PORT: int = 8000
    CORS_ALLOW_ORIGINS: list[str] = ["*"]

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("MATCH_THRESHOLD")
    @classmethod
    def _threshold_range(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"MATCH_THRESHOLD must be within 0–1, got {v}")
        return v


    @field_validator("MATCH_COUNT", "EMBEDDING_DIMENSIONS", "MAX_TOOL_CALLS")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"value must be ≥ 1, got {v}")
        return v


    @field_validator("CHUNK_SIZE")
    @classmethod
    def _chunk_size_positive(cls, v: int) -> int:
        if v < 50:
            raise ValueError(f"CHUNK_SIZE must be ≥ 50, got {v}")
        return v


    @field_validator("MAX_WORKERS")
    @classmethod
    def _workers_range(cls, v: int) -> int:
        if not 1 <= v <= 16:
            raise ValueError(f"MAX_WORKERS must be 1–16, got {v}")
        return v

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent.parent / ".env", env_file_encoding="utf-8", extra="ignore")


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from nexus.config.settings import settings
settings = Settings()
