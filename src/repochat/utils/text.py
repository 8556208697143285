"""Text helpers including paragraph-aware chunking."""

from __future__ import annotations

import re

DEFAULT_CHUNK_CHARS = 3000
MIN_CHUNK_CHARS = 50

PARAGRAPH_SEPARATOR = "\n\n"
SENTENCE_SEPARATOR = " "
# Split on ". " keeping the period attached to the sentence it ends.
_SENTENCE_BOUNDARY = re.compile(r"(?<=\.) ")
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def _fits(current: str, separator: str, unit: str, max_chars: int) -> bool:
    joiner = len(separator) if current else 0
    return len(current) + joiner + len(unit) <= max_chars


def _append(current: str, separator: str, unit: str) -> str:
    return f"{current}{separator}{unit}" if current else unit


def chunk_text(
    text: str,
    *,
    max_chars: int = DEFAULT_CHUNK_CHARS,
    min_chars: int = MIN_CHUNK_CHARS,
) -> list[str]:
    """Split text into paragraph/sentence aware chunks of at most ``max_chars``.

    Paragraphs (blank-line separated) are packed greedily. A paragraph longer
    than the limit is broken on sentence boundaries and its sentences packed the
    same way; a single sentence longer than the limit becomes its own chunk.
    Chunks whose stripped length is ``min_chars`` or less are dropped.
    """
    if not text or not text.strip():
        return []

    chunks: list[str] = []
    current = ""

    for paragraph in text.split(PARAGRAPH_SEPARATOR):
        if _fits(current, PARAGRAPH_SEPARATOR, paragraph, max_chars):
            current = _append(current, PARAGRAPH_SEPARATOR, paragraph)
            continue

        if current:
            chunks.append(current)
            current = ""

        if len(paragraph) <= max_chars:
            current = paragraph
            continue

        for sentence in _SENTENCE_BOUNDARY.split(paragraph):
            if _fits(current, SENTENCE_SEPARATOR, sentence, max_chars):
                current = _append(current, SENTENCE_SEPARATOR, sentence)
            else:
                if current:
                    chunks.append(current)
                current = sentence

    if current:
        chunks.append(current)

    return [chunk for chunk in chunks if len(chunk.strip()) > min_chars]


def normalize_for_comparison(text: str | None) -> str:
    """Lower-case, replace punctuation with spaces and collapse whitespace."""
    if not text:
        return ""
    lowered = _NON_ALNUM.sub(" ", text.lower())
    return _WHITESPACE.sub(" ", lowered).strip()
