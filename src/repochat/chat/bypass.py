"""Decide when retrieved content is returned verbatim without the generator."""

from __future__ import annotations

import re
from typing import Sequence

from repochat.models import Chunk

DIRECT_CONTENT_MODEL = "Direct Content"
NO_MATCH_MESSAGE = "No matching file found for your request."

_COMPLETE_PATTERN = re.compile(
    r"\b(setup|install|guide|complete|full|entire|all steps|walkthrough|show|give|get|display)\b"
)
_RAW_PATTERN = re.compile(r"\b(raw|exact|direct|unprocessed|just|only|file|document)\b")
_FILE_SUFFIXES = (".md", ".txt")


def should_bypass(query: str) -> bool:
    lowered = (query or "").lower().strip()
    return bool(
        _COMPLETE_PATTERN.search(lowered)
        or _RAW_PATTERN.search(lowered)
        or any(suffix in lowered for suffix in _FILE_SUFFIXES)
    )


def format_direct_response(chunks: Sequence[Chunk]) -> str:
    if not chunks:
        return NO_MATCH_MESSAGE
    ordered = sorted(chunks, key=lambda c: c.chunk_index if c.chunk_index is not None else 0)
    body = "".join(f"{chunk.content or ''}\n" for chunk in ordered)
    return f"**File: {ordered[0].file_path}**\n\n{body}"
