"""Layered retrieval with progressively more permissive fallbacks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Sequence

from repochat.index.search import Searcher
from repochat.models import Chunk

LOGGER = logging.getLogger(__name__)

FAST_MAX_CHUNKS = 6
NORMAL_MAX_CHUNKS = 25
FAST_THRESHOLD = 0.6
NORMAL_THRESHOLD = 0.7
RELEVANCE_MAX_CHUNKS = 25
KEYWORD_MAX_CHUNKS = 50


@dataclass(slots=True)
class RetrievalResult:
    chunks: List[Chunk]
    best_file: List[Chunk] = field(default_factory=list)
    stage: str | None = None
    stages_tried: List[str] = field(default_factory=list)


class RetrievalOrchestrator:
    """Runs the fallback chain and stops at the first stage with results."""

    def __init__(self, searcher: Searcher) -> None:
        self.searcher = searcher

    def retrieve(self, query: str, *, fast_mode: bool = True, full_content: bool = False) -> RetrievalResult:
        snapshot = self.searcher.store.find_all()
        result = RetrievalResult(chunks=[])

        def best_file() -> List[Chunk]:
            result.best_file = self.searcher.find_best_matching_file(query, chunks=snapshot)
            return result.best_file

        def hybrid() -> List[Chunk]:
            max_chunks = FAST_MAX_CHUNKS if fast_mode else NORMAL_MAX_CHUNKS
            threshold = FAST_THRESHOLD if fast_mode else NORMAL_THRESHOLD
            return self.searcher.select_relevant(query, best_file(), max_chunks, threshold)

        if full_content:
            self._run(result, "best_file", best_file)
        else:
            self._run(result, "hybrid", hybrid)

        # Fast mode stops here unless the caller asked for full content.
        if fast_mode and not full_content:
            return result

        fallbacks: Sequence[tuple[str, Callable[[], List[Chunk]]]] = (
            ("best_file", best_file),
            (
                "relevance",
                lambda: self.searcher.find_relevant_chunks(query, RELEVANCE_MAX_CHUNKS, chunks=snapshot),
            ),
            (
                "keyword",
                lambda: self.searcher.find_by_keywords(query, KEYWORD_MAX_CHUNKS, chunks=snapshot),
            ),
        )
        for stage, strategy in fallbacks:
            if result.chunks:
                break
            LOGGER.info("No results yet, trying %s search for: %s", stage, query)
            self._run(result, stage, strategy)

        return result

    @staticmethod
    def _run(result: RetrievalResult, stage: str, strategy: Callable[[], List[Chunk]]) -> None:
        result.stages_tried.append(stage)
        try:
            chunks = strategy()
        except Exception as exc:
            LOGGER.warning("Retrieval stage %s failed: %s", stage, exc)
            chunks = []
        if chunks:
            result.chunks = chunks
            result.stage = stage
