"""Tests for topic depth analysis."""

import pytest

from worker.analysis.topic_depth import (
    analyze_topic_depth,
    extract_top_terms,
    generate_seed_terms,
    term_frequency,
)
from worker.extraction.signals import PageSignals

RICH_TEXT = (
    " ".join(f"topic{i}" for i in range(50))
    + " What is it, how does it work, why choose it, the best guide."
    + " For example, widgets versus gadgets."
)


class TestTermHelpers:
    """Tests for tokenizing and term extraction."""

    def test_short_words_and_stopwords_dropped(self) -> None:
        """Test terms need three characters and must not be stopwords."""
        counts = term_frequency("The cat and an ox ran with the dog dog")

        assert counts == {"cat": 1, "ran": 1, "dog": 2}

    def test_top_terms_limited(self) -> None:
        """Test top terms are capped at forty."""
        assert len(extract_top_terms(RICH_TEXT)) == 40

    def test_generate_seed_terms(self) -> None:
        """Test seeds come from description, title and meta, deduplicated."""
        seeds = generate_seed_terms("The widget company", "Widget Shop", None)

        assert seeds == ["widget", "company", "shop"]

    def test_generate_seed_terms_empty(self) -> None:
        """Test no inputs yields no seeds."""
        assert generate_seed_terms() == []


class TestAnalyzeTopicDepth:
    """Tests for analyze_topic_depth."""

    def test_empty_text_scores_zero(self) -> None:
        """Test empty content has no depth."""
        result = analyze_topic_depth("")

        assert result.score == 0
        assert result.raw_score == 0.0
        assert result.found is False

    def test_deep_page_scores_three(self) -> None:
        """Test full coverage, questions and structures."""
        signals = PageSignals(url="https://example.com/", list_count=2, table_count=1)
        result = analyze_topic_depth(RICH_TEXT, signals)

        assert result.coverage_ratio == 1.0
        assert set(result.question_patterns) >= {"what", "how", "why", "best", "guide"}
        assert result.structures == ["2 lists", "1 tables", "examples", "comparisons"]
        assert result.raw_score == pytest.approx(1.0)
        assert result.score == 3

    def test_seed_coverage(self) -> None:
        """Test coverage against seed terms."""
        result = analyze_topic_depth(
            "widget widget gadget gadget other",
            seed_terms=["widget", "gadget", "sprocket", "gizmo"],
        )

        assert result.coverage_ratio == 0.5

    def test_questions_match_whole_words(self) -> None:
        """Test 'however' does not count as 'how'."""
        result = analyze_topic_depth("however, somewhat toppled")

        assert result.question_patterns == []

    def test_structures_without_signals(self) -> None:
        """Test text-only structures are still detected."""
        result = analyze_topic_depth("Tools such as hammers compare well versus saws")

        assert result.structures == ["examples", "comparisons"]

    def test_to_dict_shape(self) -> None:
        """Test evidence lists top terms and found patterns."""
        data = analyze_topic_depth(RICH_TEXT).to_dict()

        assert data["metrics"]["term_count"] == 40
        assert len(data["evidence"]["top_terms"]) == 10
        assert "examples" in data["evidence"]["structures_found"]
