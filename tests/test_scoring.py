"""Tests for keyword relevance scoring."""

from __future__ import annotations

import pytest

from repochat.index.scoring import (
    count_occurrences,
    expand_keywords,
    filename_relevance,
    keyword_score,
    normalize_word,
    relaxed_score,
    relevance_score,
    semantic_bonus,
    tokenize_query,
)
from repochat.index.synonyms import plural_variant


class TestTokenizeQuery:
    """Test tokenize_query function."""

    def test_lowercases_and_splits(self) -> None:
        assert tokenize_query("  Create  Asset ") == ("create  asset", ["create", "asset"])


class TestNormalizeWord:
    """Test normalize_word function."""

    @pytest.mark.parametrize(
        ("word", "expected"),
        [
            ("commodities", "commodity"),
            ("assets", "asset"),
            ("class", "class"),
            ("Setup", "setup"),
            ("is", "is"),
            (None, None),
        ],
    )
    def test_normalize(self, word: str | None, expected: str | None) -> None:
        assert normalize_word(word) == expected


class TestExpandKeywords:
    """Test expand_keywords and the synonym table."""

    def test_stop_word_has_no_variants(self) -> None:
        assert expand_keywords(["to"]) == {"to"}

    def test_plural_variant_for_unknown_word(self) -> None:
        assert expand_keywords(["asset"]) == {"asset", "assets"}
        assert expand_keywords(["assets"]) == {"assets", "asset"}

    def test_synonyms(self) -> None:
        expanded = expand_keywords(["Org"])
        assert {"org", "organization", "organisation", "site"} <= expanded

    def test_plural_variant(self) -> None:
        assert plural_variant("items") == "item"
        assert plural_variant("gas") == "gass"
        assert plural_variant("key") == "keys"


class TestCountOccurrences:
    """Test count_occurrences function."""

    def test_whole_words_only(self) -> None:
        assert count_occurrences("Create, create; CREATE-d recreate", "create") == 3

    def test_empty_inputs(self) -> None:
        assert count_occurrences(None, "create") == 0
        assert count_occurrences("create", "") == 0


class TestRelevanceScore:
    """Test relevance_score function."""

    def test_reference_value(self) -> None:
        """Word matches, semantic bonus, filename, co-occurrence and ratio bonus."""
        normalized, words = tokenize_query("create asset")

        score = relevance_score(
            "To create an asset open the console", "docs/assets.md", words, normalized
        )

        assert score == pytest.approx(260.0)

    def test_no_match_scores_zero(self) -> None:
        normalized, words = tokenize_query("zzz")
        assert relevance_score("hello world", "a.md", words, normalized) == 0.0

    def test_missing_fields_score_zero(self) -> None:
        normalized, words = tokenize_query("create asset")
        assert relevance_score(None, "a.md", words, normalized) == 0.0
        assert relevance_score("create asset", None, words, normalized) == 0.0

    def test_exact_phrase_scores_higher(self) -> None:
        normalized, words = tokenize_query("create asset")
        with_phrase = relevance_score("Use create asset from the menu", "a.md", words, normalized)
        without_phrase = relevance_score("Use create and then asset", "a.md", words, normalized)
        assert with_phrase > without_phrase

    @pytest.mark.parametrize(
        "content",
        ["Open the console", "To create an asset open the console", "asset list"],
    )
    def test_extra_token_match_never_lowers_score(self, content: str) -> None:
        normalized, words = tokenize_query("create asset")
        base = relevance_score(content, "docs/a.md", words, normalized)
        extended = relevance_score(content + " then create", "docs/a.md", words, normalized)
        assert extended >= base

    def test_matching_content_outranks_unrelated(self) -> None:
        normalized, words = tokenize_query("configure firewall")
        related = relevance_score("Configure the firewall rules", "net.md", words, normalized)
        unrelated = relevance_score("Bake bread at high heat", "food.md", words, normalized)
        assert related > unrelated


class TestSemanticBonus:
    """Test semantic_bonus function."""

    def test_organization_rules(self) -> None:
        bonus = semantic_bonus("how to create organization", "create site for the organization")
        assert bonus == 90.0

    def test_no_rules(self) -> None:
        assert semantic_bonus("delete user", "remove the account") == 0.0


class TestFilenameRelevance:
    """Test filename_relevance function."""

    def test_organization_file_boosted(self) -> None:
        score = filename_relevance("docs/organization-setup.md", ["create", "organization"])
        assert score == 160.0

    def test_gl_components_penalised(self) -> None:
        score = filename_relevance("finance/glcomponents.md", ["create", "organization"])
        assert score == -80.0

    def test_java_penalised_unless_asked(self) -> None:
        assert filename_relevance("src/Main.java", ["deploy"]) == -30.0
        assert filename_relevance("src/Main.java", ["java", "deploy"]) == 20.0

    def test_none_path(self) -> None:
        assert filename_relevance(None, ["anything"]) == 0.0


class TestRelaxedScore:
    """Test relaxed_score function."""

    def test_synonym_match(self) -> None:
        assert relaxed_score("The installation steps", "a.md", ["install"], "install") > 0

    def test_unrelated(self) -> None:
        assert relaxed_score("hello world", "a.md", ["zzzz"], "zzzz") == 0.0


class TestKeywordScore:
    """Test keyword_score function."""

    def test_counts_content_and_path(self) -> None:
        score = keyword_score("install the agent. install again", "docs/install.md", ["install"])
        assert score == pytest.approx(6.0)

    def test_no_match(self) -> None:
        assert keyword_score("db2 setup", "x.md", ["zzzz"]) == 0.0

    def test_missing_fields(self) -> None:
        assert keyword_score(None, "x.md", ["install"]) == 0.0
