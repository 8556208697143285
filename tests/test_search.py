"""Tests for the keyword search strategies."""

from __future__ import annotations

from unittest.mock import Mock

import pytest

from repochat.index.scoring import filename_relevance, relevance_score, tokenize_query
from repochat.index.search import Searcher, group_by_file, top_k_average
from repochat.models import Chunk


def _chunk(file_path: str, index: int, content: str) -> Chunk:
    return Chunk(
        file_path=file_path,
        repository_owner="acme",
        repository_name="docs",
        branch_name="main",
        content=content,
        chunk_index=index,
    )


ASSET_CREATE = _chunk(
    "docs/assets.md", 0, "# Assets\n\nTo create an asset open the console and press new."
)
ASSET_DELETE = _chunk(
    "docs/assets.md", 1, "Deleting an asset requires admin rights in the console."
)
NETWORK = _chunk("docs/network.md", 0, "Configure the firewall rules for the cluster network.")


@pytest.fixture
def corpus():
    # Out of index order on purpose.
    return [ASSET_DELETE, NETWORK, ASSET_CREATE]


@pytest.fixture
def searcher(corpus):
    store = Mock()
    store.find_all.return_value = list(corpus)
    return Searcher(store)


class TestHelpers:
    """Test module-level helpers."""

    def test_group_by_file_keeps_encounter_order(self, corpus) -> None:
        groups = group_by_file(corpus)
        assert list(groups) == ["docs/assets.md", "docs/network.md"]
        assert groups["docs/assets.md"] == [ASSET_DELETE, ASSET_CREATE]

    def test_top_k_average(self) -> None:
        assert top_k_average([1, 2, 3, 4, 5, 6]) == pytest.approx(4.0)

    def test_top_k_average_fewer_scores(self) -> None:
        assert top_k_average([3.0, 1.0]) == pytest.approx(2.0)

    def test_top_k_average_empty(self) -> None:
        assert top_k_average([]) == 0.0


class TestRankFiles:
    """Test file aggregation."""

    def test_best_file_first(self, searcher) -> None:
        ranking = searcher.rank_files("create asset")
        assert ranking[0].file_path == "docs/assets.md"
        assert ranking[0].score > ranking[1].score

    def test_uses_given_snapshot(self, searcher) -> None:
        ranking = searcher.rank_files("firewall", chunks=[NETWORK])
        assert [item.file_path for item in ranking] == ["docs/network.md"]
        searcher.store.find_all.assert_not_called()

    def test_small_file_averages_every_chunk(self) -> None:
        chunks = [
            _chunk("docs/assets.md", 0, "To create an asset open the console and press new."),
            _chunk("docs/assets.md", 1, "An asset can be exported to a spreadsheet."),
            _chunk("docs/assets.md", 2, "Contact support for licensing questions."),
        ]
        normalized, words = tokenize_query("create asset")
        scores = [relevance_score(c.content, c.file_path, words, normalized) for c in chunks]

        [item] = Searcher(Mock()).rank_files("create asset", chunks=chunks)

        expected = filename_relevance("docs/assets.md", words) + sum(scores) / len(scores)
        assert item.score == pytest.approx(expected)

    def test_large_file_averages_top_five(self) -> None:
        contents = [
            "To create an asset open the console and press new.",
            "Create asset records before assigning locations.",
            "An asset can be exported to a spreadsheet.",
            "The create button sits in the toolbar.",
            "Asset numbers are generated automatically.",
            "Contact support for licensing questions.",
            "Restart the server after changing memory settings.",
        ]
        chunks = [_chunk("docs/assets.md", i, text) for i, text in enumerate(contents)]
        normalized, words = tokenize_query("create asset")
        scores = sorted(
            (relevance_score(c.content, c.file_path, words, normalized) for c in chunks),
            reverse=True,
        )

        [item] = Searcher(Mock()).rank_files("create asset", chunks=chunks)

        expected = filename_relevance("docs/assets.md", words) + sum(scores[:5]) / 5
        assert item.score == pytest.approx(expected)
        assert item.score != pytest.approx(
            filename_relevance("docs/assets.md", words) + sum(scores) / len(scores)
        )


class TestFindBestMatchingFile:
    """Test find_best_matching_file."""

    def test_returns_whole_file_in_order(self, searcher) -> None:
        assert searcher.find_best_matching_file("create asset") == [ASSET_CREATE, ASSET_DELETE]

    def test_no_positive_score(self, searcher) -> None:
        assert searcher.find_best_matching_file("zzz") == []

    def test_empty_corpus(self) -> None:
        store = Mock()
        store.find_all.return_value = []
        assert Searcher(store).find_best_matching_file("create asset") == []


class TestFindHybrid:
    """Test find_hybrid."""

    def test_keeps_index_order(self, searcher) -> None:
        assert searcher.find_hybrid("create asset", 6, 0.6) == [ASSET_CREATE, ASSET_DELETE]

    def test_cap_keeps_best_scores(self, searcher) -> None:
        assert searcher.find_hybrid("create asset", 1, 0.6) == [ASSET_CREATE]

    def test_threshold(self, searcher) -> None:
        assert searcher.find_hybrid("create asset", 6, 100.0) == [ASSET_CREATE]

    def test_no_best_file(self, searcher) -> None:
        assert searcher.find_hybrid("zzz", 6, 0.6) == []


class TestFlatRankings:
    """Test the per-chunk strategies."""

    def test_relevant_chunks(self, searcher) -> None:
        assert searcher.find_relevant_chunks("firewall", 5) == [NETWORK]

    def test_relevant_chunks_cap(self, searcher) -> None:
        results = searcher.find_relevant_chunks("asset", 1)
        assert results == [ASSET_CREATE]

    def test_relaxed(self, searcher) -> None:
        results = searcher.find_relevant_chunks_relaxed("network", 5)
        assert results[0] == NETWORK

    def test_keywords(self, searcher) -> None:
        results = searcher.find_by_keywords("console", 50)
        assert set(results) == {ASSET_CREATE, ASSET_DELETE}

    def test_keywords_no_match(self, searcher) -> None:
        assert searcher.find_by_keywords("zzzz", 50) == []
