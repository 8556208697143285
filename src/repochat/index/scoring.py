"""Keyword relevance scoring for chunks and files.

All weights are fixed constants. Changing any of them changes ranking
behaviour and needs a new test baseline.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Sequence

from repochat.index.synonyms import SYNONYMS, plural_variant

EXACT_PHRASE_BONUS = 50.0
ADJACENT_PAIR_BONUS = 25.0
WORD_BOUNDARY_MATCH = 15.0
SUBSTRING_MATCH = 8.0
NORMALIZED_MATCH = 5.0
EXPANDED_MATCH = 5.0
FILENAME_MATCH = 3.0
FILENAME_NORMALIZED_MATCH = 2.0
CO_OCCURRENCE_BONUS = 5.0
SEMANTIC_WEIGHT = 4.0
CONTENT_WEIGHT = 3.0
HIGH_MATCH_RATIO = 0.7
HIGH_MATCH_RATIO_BONUS = 40.0
MID_MATCH_RATIO = 0.5
MID_MATCH_RATIO_BONUS = 20.0

FILE_WORD_MATCH = 20.0

_WORD_SPLIT = re.compile(r"\W+", re.ASCII)


@dataclass(slots=True, frozen=True)
class SemanticRule:
    """Bonus granted when the query and the content both mention a vocabulary."""

    query_terms: tuple[str, ...]
    content_terms: tuple[str, ...]
    bonus: float


@dataclass(slots=True, frozen=True)
class PathRule:
    """Bonus (or penalty) for a file path given the query vocabulary.

    With ``query_must_match`` False the rule fires when the query does *not*
    mention any of ``query_terms``.
    """

    path_terms: tuple[str, ...]
    query_terms: tuple[str, ...]
    bonus: float
    query_must_match: bool = True


_ORGANIZATION_QUERY = (
    "organization",
    "organisation",
    "org",
    "create organization",
    "how to create organization",
    "site",
)

SEMANTIC_RULES: tuple[SemanticRule, ...] = (
    SemanticRule(
        ("how to create", "create", "creating", "setup", "configure"),
        ("create", "setup", "configure", "build", "make", "generate"),
        30.0,
    ),
    SemanticRule(
        (
            "how to create organization",
            "create organization",
            "creating organization",
            "create org",
            "creating org",
        ),
        (
            "how to create organization",
            "create organization",
            "creating organization",
            "create site",
            "organization",
            "site",
        ),
        60.0,
    ),
    SemanticRule(
        ("tablespace", "table space", "tablespaces"),
        ("tablespace", "table space", "maxindex", "maxdata", "db2 create"),
        40.0,
    ),
    SemanticRule(("tablespace", "database", "db2"), ("tablespace", "database", "db2"), 25.0),
    SemanticRule(("config", "prerequisite"), ("configuration", "prerequisite", "setup"), 20.0),
    SemanticRule(("maximo", "mas"), ("maximo", "mas", "manage"), 15.0),
)

PATH_RULES: tuple[PathRule, ...] = (
    PathRule(("commodity", "commodities"), ("commodity", "commodities", "get", "item"), 100.0),
    PathRule(("liberty",), ("liberty", "setup", "install", "maximo"), 100.0),
    PathRule(("setup",), ("setup", "install", "configure"), 50.0),
    PathRule(("maximo",), ("maximo", "liberty", "setup"), 50.0),
    PathRule(("organization", "organisation", "org", "site"), _ORGANIZATION_QUERY, 120.0),
    PathRule(("glcomponents", "gl-components", "coa"), _ORGANIZATION_QUERY, -80.0),
    PathRule(("java",), ("java", "class", "code"), -30.0, query_must_match=False),
)

# Extra path-matching variants on top of the plural/singular one.
_FILENAME_VARIANTS: dict[str, tuple[str, ...]] = {
    "commodity": ("commodities",),
    "commodities": ("commodity",),
    "organization": ("organization", "org", "site"),
    "organisation": ("organization", "org", "site"),
}


def tokenize_query(query: str) -> tuple[str, list[str]]:
    """Return the lower-cased query and its whitespace tokens."""
    normalized = query.lower().strip()
    return normalized, normalized.split()


def contains_any(text: str, phrases: Iterable[str]) -> bool:
    return any(phrase in text for phrase in phrases)


def normalize_word(word: str | None) -> str | None:
    """Reduce a plural form to its singular (``ies`` -> ``y``, drop ``s``)."""
    if word is None or len(word) < 3:
        return word

    lower = word.lower()
    if lower.endswith("ies") and len(lower) > 4:
        return lower[:-3] + "y"
    if lower.endswith("s") and not lower.endswith("ss") and len(lower) > 3:
        return lower[:-1]
    return lower


def expand_keywords(words: Iterable[str]) -> set[str]:
    """Expand query tokens with the synonym table or a plural variant."""
    expanded: set[str] = set()
    for word in words:
        lower = word.lower()
        expanded.add(lower)
        if lower in SYNONYMS:
            expanded.update(SYNONYMS[lower])
        else:
            expanded.add(plural_variant(lower))
    return expanded


def count_occurrences(text: str | None, keyword: str | None) -> int:
    """Count whole-word, case-insensitive occurrences of ``keyword``."""
    if not text or not keyword:
        return 0
    target = keyword.lower()
    return sum(1 for word in _WORD_SPLIT.split(text) if word.lower() == target)


def _is_word_match(content: str, word: str) -> bool:
    return (
        f" {word} " in content
        or content.startswith(f"{word} ")
        or content.endswith(f" {word}")
    )


def semantic_bonus(query: str, content: str) -> float:
    return sum(
        rule.bonus
        for rule in SEMANTIC_RULES
        if contains_any(query, rule.query_terms) and contains_any(content, rule.content_terms)
    )


def relevance_score(
    content: str | None,
    file_path: str | None,
    query_words: Sequence[str],
    full_query: str,
) -> float:
    """Score how well a chunk answers a query.

    ``content * 3 + semantic * 4 + filename`` plus phrase, pair, co-occurrence
    and match-ratio bonuses. Missing content or path scores zero.
    """
    if content is None or file_path is None:
        return 0.0

    lower_content = content.lower()
    lower_file_name = file_path.lower()
    lower_query = (full_query or "").lower()

    words = [w.lower().strip() for w in query_words]
    words = [w for w in words if len(w) > 1]

    score = 0.0

    words_in_content = 0
    content_score = 0.0
    for word in words:
        if len(word) <= 2:
            continue
        if _is_word_match(lower_content, word):
            content_score += WORD_BOUNDARY_MATCH
            words_in_content += 1
        elif word in lower_content:
            content_score += SUBSTRING_MATCH
            words_in_content += 1

        if word not in lower_content:
            normalized = normalize_word(word)
            if normalized and normalized in lower_content:
                content_score += NORMALIZED_MATCH
                words_in_content += 1

    words_in_file_name = 0
    filename_score = 0.0
    for word in words:
        if len(word) <= 2:
            continue
        if word in lower_file_name:
            filename_score += FILENAME_MATCH
            words_in_file_name += 1
        normalized = normalize_word(word)
        if normalized and normalized in lower_file_name:
            filename_score += FILENAME_NORMALIZED_MATCH

    if lower_query and lower_query in lower_content:
        score += EXACT_PHRASE_BONUS

    for first, second in zip(words, words[1:]):
        if f"{first} {second}" in lower_content:
            score += ADJACENT_PAIR_BONUS

    originals = set(words)
    for word in expand_keywords(words):
        if len(word) > 2 and word not in originals and word in lower_content:
            content_score += EXPANDED_MATCH
            words_in_content += 1

    score += semantic_bonus(lower_query, lower_content) * SEMANTIC_WEIGHT
    score += content_score * CONTENT_WEIGHT
    score += filename_score

    if words_in_file_name > 0 and words_in_content > 0:
        score += CO_OCCURRENCE_BONUS

    match_ratio = words_in_content / max(len(words), 1)
    if match_ratio >= HIGH_MATCH_RATIO:
        score += HIGH_MATCH_RATIO_BONUS
    elif match_ratio >= MID_MATCH_RATIO:
        score += MID_MATCH_RATIO_BONUS

    return score


def filename_relevance(file_path: str | None, query_words: Sequence[str]) -> float:
    """File-level bonus from path/query word overlap and the domain path rules."""
    if file_path is None:
        return 0.0

    file_name = file_path.lower()
    joined_query = " ".join(query_words).lower()

    expanded: set[str] = set()
    for word in query_words:
        lower = word.lower()
        expanded.add(lower)
        expanded.add(plural_variant(lower))
        expanded.update(_FILENAME_VARIANTS.get(lower, ()))

    score = sum(FILE_WORD_MATCH for word in expanded if len(word) > 2 and word in file_name)

    for rule in PATH_RULES:
        if not contains_any(file_name, rule.path_terms):
            continue
        if contains_any(joined_query, rule.query_terms) == rule.query_must_match:
            score += rule.bonus

    return score


def relaxed_score(
    content: str | None,
    file_path: str | None,
    query_words: Sequence[str],
    query_lower: str,
) -> float:
    """Forgiving score over the expanded vocabulary, for broad lookups."""
    if content is None or file_path is None:
        return 0.0

    lower_content = content.lower()
    lower_path = file_path.lower()
    score = 0.0

    for word in expand_keywords(query_words):
        if len(word) <= 2:
            continue
        if _is_word_match(lower_content, word):
            score += 2.0
        elif word in lower_content:
            score += 1.0
        if word in lower_path:
            score += 1.5
        if word[:4] in lower_content:
            score += 0.5

    db_terms = ("tablespace", "db2", "database")
    if contains_any(lower_content, db_terms) and contains_any(query_lower, db_terms):
        score += 3.0

    if contains_any(lower_content, ("configuration", "config", "prerequisite")) and contains_any(
        query_lower, ("config", "prerequisite")
    ):
        score += 2.0

    if query_lower and query_lower in lower_content:
        score += 3.0

    return score


def keyword_score(content: str | None, file_path: str | None, keywords: Sequence[str]) -> float:
    """Raw occurrence count of expanded keywords in content (x2) and path (x1)."""
    if content is None or file_path is None:
        return 0.0

    lower_content = content.lower()
    lower_path = file_path.lower()
    score = 0.0

    for keyword in expand_keywords(keywords):
        if len(keyword) <= 2:
            continue
        content_matches = count_occurrences(lower_content, keyword)
        path_matches = count_occurrences(lower_path, keyword)
        score += content_matches * 2.0
        score += path_matches * 1.0
        if content_matches == 0 and keyword[:4] in lower_content:
            score += 0.5

    return score
