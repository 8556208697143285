"""Prompt assembly: context building, intent detection and section slicing."""

from __future__ import annotations

import re
from typing import List, Pattern, Sequence, Tuple

from repochat.index.search import group_by_file
from repochat.models import Chunk
from repochat.utils.text import normalize_for_comparison

MIN_CONTEXT_CHUNK_CHARS = 20
SLICE_SEPARATOR = "\n\n---\n\n"

RAW_CONTENT = "raw_content"
COMPLETE_GUIDE = "complete_guide"
CREATE = "create"

INTENT_RULES: Tuple[Tuple[str, Pattern[str]], ...] = (
    (RAW_CONTENT, re.compile(r"\b(only|just|exact|raw|direct|exactly)\b", re.IGNORECASE)),
    (
        COMPLETE_GUIDE,
        re.compile(
            r"\b(setup|install|guide|complete|full|entire|all steps|walkthrough)\b",
            re.IGNORECASE,
        ),
    ),
    (CREATE, re.compile(r"\bcreate\b", re.IGNORECASE)),
)

PREREQUISITE_MARKERS = (
    "prerequisite",
    "requirements",
    "before you begin",
    "before starting",
    "prereq",
)

_PREREQUISITES_PATTERN = re.compile(
    r"^(#+\s*Prerequisites?\b.*?)(?=^#+\s|\Z)", re.MULTILINE | re.DOTALL
)

# Most specific heading shape first; candidates are collected in this order.
SECTION_LEVELS = (
    r"^(##\s*\d+\.\s*[^\n]*\b{op}\b[^\n]*\n[\s\S]*?)(?=^##\s|\Z)",
    r"^(##\s*[^\n]*\b{op}\b[^\n]*\n[\s\S]*?)(?=^##\s|\Z)",
    r"^(#+\s*[^\n]*\b{op}\b[^\n]*\n[\s\S]*?)(?=^#+\s|\Z)",
)

NO_DOCS_TEMPLATE = """USER QUESTION: {query}

No relevant documentation found for this query. Please try different keywords or check if the topic is covered under different terminology in the available documentation.
"""

VERBATIM_TEMPLATE = """Return the COMPLETE content related to: "{query}"

CRITICAL: Provide ALL steps, commands, and procedures from the document.
Do NOT summarize, truncate, or skip any details.
Include ALL download links, installation steps, configuration details, and verification commands.
Maintain exact formatting, commands, file paths, and structure from the original documentation.
When the document contains numbered steps, include ALL steps in order.

CONTENT:
{context}

RETURN COMPLETE CONTENT:
"""

PREREQUISITES_FIRST_TEMPLATE = """You are a technical documentation assistant. Return the EXACT, UNMODIFIED content from the repository.

USER QUESTION: "{query}"

CRITICAL INSTRUCTIONS - RAW CONTENT ONLY:
1. FIRST: Extract Prerequisites/Requirements section EXACTLY as written in the source
2. SECOND: Extract the COMPLETE section that answers the user's question EXACTLY as written
3. Include ALL steps, methods, URLs, headers, parameters, and request/response bodies for the requested operation
4. Do NOT add explanations, extra text, formatting changes, or modifications
5. Do NOT rewrite, paraphrase, or enhance the content
6. Do NOT add introductions like "To create..." or "Follow these steps..."
7. Return ONLY the raw content from the repository file
8. Preserve exact formatting: headings, lists, code blocks, spacing
9. Do NOT add markdown formatting that isn't in the original
10. If they ask "create asset", show Prerequisites FIRST, then ONLY the "Create Asset" section with ALL details (method, URL, headers, params, body, response)

COMPLETE DOCUMENTATION:
{context}

RETURN RAW CONTENT FOR: {query} (Prerequisites FIRST, then COMPLETE section for this specific operation)
"""

SELECTIVE_TEMPLATE = """You are an expert technical assistant. Analyze the user's question and extract ONLY the relevant information from the provided documentation.

USER QUESTION: "{query}"

CRITICAL INSTRUCTIONS - BE SELECTIVE:
1. Read and understand what the user is specifically asking for
2. From the complete documentation below, extract ONLY the section(s) that directly answer their question
3. Do NOT return the entire document or complete file content
4. If they ask "how to create X", provide ONLY the creation steps, not query/update/delete operations
5. If they ask "how to query X", provide ONLY the query examples, not creation/update operations
6. If they ask "how to update X", provide ONLY the update steps, not creation/query operations
7. If they ask "how to delete X", provide ONLY the deletion steps, not creation/update operations
8. Maintain the exact formatting, commands, and structure from the original documentation
9. Include ALL necessary details for the specific operation they're asking about
10. Do NOT include unrelated operations, sections, or topics from the same file
11. Be focused and targeted - users want specific answers, not entire documents

COMPLETE DOCUMENTATION:
{context}

EXTRACT AND PROVIDE ONLY THE SPECIFIC SECTION THAT ANSWERS: {query}
"""


def classify_intent(query: str) -> frozenset[str]:
    return frozenset(name for name, pattern in INTENT_RULES if pattern.search(query or ""))


def _chunk_order(chunk: Chunk) -> int:
    return chunk.chunk_index if chunk.chunk_index is not None else 0


def build_context(chunks: Sequence[Chunk]) -> str:
    """Concatenate chunks per file, in chunk order, under a file header."""
    parts: List[str] = []
    for file_path, file_chunks in group_by_file(chunks).items():
        parts.append(f"\n--- Content from: {file_path} ---\n")
        for chunk in sorted(file_chunks, key=_chunk_order):
            if chunk.content is None or len(chunk.content) <= MIN_CONTEXT_CHUNK_CHARS:
                continue
            parts.append(chunk.content + "\n")
    return "".join(parts)


def extract_prerequisites(text: str) -> str | None:
    """Return the Prerequisites section, up to the next heading or end of text."""
    match = _PREREQUISITES_PATTERN.search(text or "")
    return match.group(1) if match else None


def _overlap_score(heading: str, query: str) -> int:
    if not heading or not query:
        return 0
    heading_tokens = set(heading.split(" "))
    score = 0
    for token in query.split(" "):
        token = token.strip()
        if len(token) < 3:
            continue
        if token in heading_tokens:
            score += 2
        elif token in heading:
            score += 1
    return score


def extract_operation_section(text: str, operation: str, query: str | None = None) -> str | None:
    """Pick the markdown section for ``operation`` that best matches ``query``."""
    if not text or not text.strip() or not operation or not operation.strip():
        return None

    op = re.escape(operation.strip())
    candidates: List[str] = []
    for level in SECTION_LEVELS:
        pattern = re.compile(level.format(op=op), re.MULTILINE | re.DOTALL | re.IGNORECASE)
        candidates.extend(
            match.group(1) for match in pattern.finditer(text) if match.group(1).strip()
        )
    if not candidates:
        return None

    normalized_query = normalize_for_comparison(query or "")
    if not normalized_query:
        return candidates[0]

    best: str | None = None
    best_score = -1
    for section in candidates:
        heading = normalize_for_comparison(section.split("\n", 1)[0])
        if normalized_query in heading:
            return section
        score = _overlap_score(heading, normalized_query)
        if score > best_score:
            best, best_score = section, score
    return best


def slice_for_query(text: str, query: str) -> str:
    """Narrow the context to prerequisites plus the requested create section."""
    if CREATE not in classify_intent(query):
        return text
    prerequisites = extract_prerequisites(text)
    section = extract_operation_section(text, CREATE, query)
    pieces = [piece.strip() for piece in (prerequisites, section) if piece and piece.strip()]
    if not pieces:
        return text
    return SLICE_SEPARATOR.join(pieces)


def has_prerequisites(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in PREREQUISITE_MARKERS)


def build_prompt(query: str, chunks: Sequence[Chunk]) -> str:
    if not chunks:
        return NO_DOCS_TEMPLATE.format(query=query)

    intent = classify_intent(query)
    context = slice_for_query(build_context(chunks), query)

    if RAW_CONTENT in intent or COMPLETE_GUIDE in intent:
        template = VERBATIM_TEMPLATE
    elif has_prerequisites(context):
        template = PREREQUISITES_FIRST_TEMPLATE
    else:
        template = SELECTIVE_TEMPLATE
    return template.format(query=query, context=context)
