"""
Nexus - Text Utilities
=======================
Helpers for text cleaning, HTML stripping, and chunking.

These utilities are consumed by the knowledge service, the bulk
ingestion pipeline, and the web tools, and remain stateless and
side-effect-free.
"""

from __future__ import annotations

import re
import unicodedata

from langchain_text_splitters import RecursiveCharacterTextSplitter


# Control characters (C0/C1) except \n, \r, \t, plus BOM, zero-width
# chars, soft hyphens and directional marks.
_NON_PRINTABLE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\ufeff\u200b\u200c\u200d\u200e\u200f\u00ad\u2060\ufffe]")

_SCRIPT_RE = re.compile(r"<script\b[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style\b[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")


def clean_text(text: str) -> str:
    """
    Sanitise raw document text for embedding.

    Steps:
        1. Unicode NFC normalisation.
        2. Strip non-printable / zero-width characters.
        3. Collapse runs of horizontal whitespace into a single space,
           *preserving* newlines.
        4. Strip leading / trailing whitespace from every line.
        5. Collapse 3+ consecutive blank lines to 2.
    """
    text = unicodedata.normalize("NFC", text)
    text = _NON_PRINTABLE_RE.sub("", text)
    text = re.sub(r"[^\S\n]+", " ", text)
    lines = [line.strip() for line in text.splitlines()]
    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def html_to_text(html: str) -> str:
    """
    Reduce an HTML page to its visible text on a single line.

    ``<script>`` and ``<style>`` blocks are dropped with their contents,
    remaining tags become spaces, and whitespace is collapsed.
    """
    text = _SCRIPT_RE.sub("", html)
    text = _STYLE_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def prepare_for_embedding(text: str) -> str:
    """Flatten newlines to spaces before the text is sent to the embedder."""
    return text.replace("\n", " ")


def chunk_text(text: str, chunk_size: int, overlap: int = 0) -> list[str]:
    """
    Split *text* into chunks of at most *chunk_size* characters.

    Documents that already fit are returned as a single chunk.
    """
    if len(text) <= chunk_size:
        return [text] if text.strip() else []

    splitter = RecursiveCharacterTextSplitter(chunk_size=chunk_size, chunk_overlap=overlap, separators=["\n\n", "\n", ". ", " ", ""])
    return [c.strip() for c in splitter.split_text(text) if c.strip()]
