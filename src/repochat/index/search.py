"""Keyword search strategies over the chunk corpus."""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Sequence

import numpy as np

from repochat.index.scoring import (
    filename_relevance,
    keyword_score,
    relaxed_score,
    relevance_score,
    tokenize_query,
)
from repochat.index.storage import ChunkStore
from repochat.models import Chunk, FileScore, ScoredChunk

LOGGER = logging.getLogger(__name__)

TOP_K_CHUNKS = 5
RELEVANCE_FLOOR = 0.1
RELAXED_FLOOR = 0.001
KEYWORD_FLOOR = 0.5


def _chunk_order(chunk: Chunk) -> int:
    return chunk.chunk_index if chunk.chunk_index is not None else 0


def group_by_file(chunks: Sequence[Chunk]) -> Dict[str, List[Chunk]]:
    """Group chunks by file path, keeping first-encounter order of files."""
    groups: Dict[str, List[Chunk]] = {}
    for chunk in chunks:
        groups.setdefault(chunk.file_path or "", []).append(chunk)
    return groups


def top_k_average(scores: Sequence[float], k: int = TOP_K_CHUNKS) -> float:
    """Average of the ``k`` best scores (all of them when fewer than ``k``)."""
    if not scores:
        return 0.0
    ranked = np.sort(np.asarray(scores, dtype="float64"))[::-1]
    return float(ranked[: min(k, len(ranked))].mean())


class Searcher:
    """High-level API to query the chunk store.

    Every method accepts an optional ``chunks`` snapshot so a caller can run
    several strategies against the same corpus view.
    """

    def __init__(self, store: ChunkStore) -> None:
        self.store = store

    def _corpus(self, chunks: Sequence[Chunk] | None) -> List[Chunk]:
        return list(chunks) if chunks is not None else self.store.find_all()

    def rank_files(self, query: str, *, chunks: Sequence[Chunk] | None = None) -> List[FileScore]:
        """Score every file by top-K chunk average plus filename relevance."""
        normalized, words = tokenize_query(query)
        ranking: List[FileScore] = []
        for file_path, file_chunks in group_by_file(self._corpus(chunks)).items():
            scores = [
                relevance_score(chunk.content, chunk.file_path, words, normalized)
                for chunk in file_chunks
            ]
            aggregate = top_k_average(scores) + filename_relevance(file_path, words)
            ranking.append(FileScore(file_path=file_path, score=aggregate))
        # Stable sort keeps encounter order between equal scores.
        ranking.sort(key=lambda item: item.score, reverse=True)
        return ranking

    def find_best_matching_file(
        self, query: str, *, chunks: Sequence[Chunk] | None = None
    ) -> List[Chunk]:
        """Return every chunk of the single best matching file, in index order."""
        corpus = self._corpus(chunks)
        ranking = self.rank_files(query, chunks=corpus)
        if not ranking or ranking[0].score <= 0:
            LOGGER.warning("No matching file found for query: %s", query)
            return []

        best = ranking[0].file_path
        LOGGER.info("Best matching file: %s (score %.2f)", best, ranking[0].score)
        return sorted(group_by_file(corpus)[best], key=_chunk_order)

    def find_hybrid(
        self,
        query: str,
        max_results: int,
        threshold: float,
        *,
        chunks: Sequence[Chunk] | None = None,
    ) -> List[Chunk]:
        """Best-file lookup capped to ``max_results`` chunks scoring at least ``threshold``."""
        best_file = self.find_best_matching_file(query, chunks=chunks)
        return self.select_relevant(query, best_file, max_results, threshold)

    @staticmethod
    def select_relevant(
        query: str, file_chunks: Sequence[Chunk], max_results: int, threshold: float
    ) -> List[Chunk]:
        """Keep the top ``max_results`` chunks scoring at least ``threshold``, in index order."""
        normalized, words = tokenize_query(query)
        scored = [
            ScoredChunk(chunk, relevance_score(chunk.content, chunk.file_path, words, normalized))
            for chunk in file_chunks
        ]
        kept = [item for item in scored if item.score >= threshold]
        kept.sort(key=lambda item: item.score, reverse=True)
        return sorted((item.chunk for item in kept[:max_results]), key=_chunk_order)

    def find_relevant_chunks(
        self, query: str, max_results: int, *, chunks: Sequence[Chunk] | None = None
    ) -> List[Chunk]:
        """Flat per-chunk relevance ranking across the whole corpus."""
        normalized, words = tokenize_query(query)
        return self._rank(
            self._corpus(chunks),
            lambda chunk: relevance_score(chunk.content, chunk.file_path, words, normalized),
            RELEVANCE_FLOOR,
            max_results,
        )

    def find_relevant_chunks_relaxed(
        self, query: str, max_results: int, *, chunks: Sequence[Chunk] | None = None
    ) -> List[Chunk]:
        """Broad ranking over expanded vocabulary with a very low floor."""
        normalized, words = tokenize_query(query)
        return self._rank(
            self._corpus(chunks),
            lambda chunk: relaxed_score(chunk.content, chunk.file_path, words, normalized),
            RELAXED_FLOOR,
            max_results,
        )

    def find_by_keywords(
        self, query: str, max_results: int, *, chunks: Sequence[Chunk] | None = None
    ) -> List[Chunk]:
        """Last-resort ranking by raw keyword occurrence counts."""
        _, words = tokenize_query(query)
        return self._rank(
            self._corpus(chunks),
            lambda chunk: keyword_score(chunk.content, chunk.file_path, words),
            KEYWORD_FLOOR,
            max_results,
        )

    @staticmethod
    def _rank(
        corpus: Sequence[Chunk],
        scorer: Callable[[Chunk], float],
        floor: float,
        max_results: int,
    ) -> List[Chunk]:
        scored = [ScoredChunk(chunk, scorer(chunk)) for chunk in corpus]
        kept = [item for item in scored if item.score > floor]
        kept.sort(key=lambda item: item.score, reverse=True)
        return [item.chunk for item in kept[:max_results]]
