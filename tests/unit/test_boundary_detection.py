"""
Unit tests for sentence boundary detection and sentence-safe splitting.
"""

import pytest

from pagetranslate.core.chunking import (
    BoundaryType,
    find_sentence_boundaries,
    split_at_sentences,
)


class TestFindSentenceBoundaries:
    """Test find_sentence_boundaries function."""

    def test_period_question_exclamation(self):
        """Should find positions just after each terminator."""
        assert find_sentence_boundaries("Hi. How are you? Fine") == [3, 16]
        assert find_sentence_boundaries("Wow! Really?") == [4, 12]

    def test_terminator_must_be_followed_by_space_or_end(self):
        """Decimal points and file names are not sentence ends."""
        assert find_sentence_boundaries("Pi is 3.14 exactly.") == [19]
        assert find_sentence_boundaries("see index.html now") == []

    def test_newline_counts_as_whitespace(self):
        assert find_sentence_boundaries("One.\nTwo.") == [4, 9]


class TestSplitAtSentences:
    """Test split_at_sentences function."""

    def test_short_text_single_chunk(self):
        chunks = split_at_sentences("Short text.", 100)
        assert len(chunks) == 1
        assert chunks[0].text == "Short text."
        assert chunks[0].boundary == BoundaryType.END_OF_TEXT

    def test_fills_greedily_with_whole_sentences(self):
        chunks = split_at_sentences("Aaaa. Bbbb. Cccc.", 12)
        assert [c.text for c in chunks] == ["Aaaa. Bbbb.", "Cccc."]
        assert [c.boundary for c in chunks] == [BoundaryType.SENTENCE_END, BoundaryType.END_OF_TEXT]

    def test_never_ends_mid_sentence_when_boundary_available(self):
        text = "The first sentence is here. The second one follows it! Is there a third? Yes."
        chunks = split_at_sentences(text, 40)
        for chunk in chunks:
            assert chunk.text[-1] in ".!?"
            assert len(chunk) <= 40

    def test_forced_split_without_boundary(self):
        """A sentence longer than the limit is cut at raw offsets."""
        chunks = split_at_sentences("a" * 25, 10)
        assert [len(c) for c in chunks] == [10, 10, 5]
        assert [c.boundary for c in chunks] == [
            BoundaryType.FORCED_SIZE, BoundaryType.FORCED_SIZE, BoundaryType.END_OF_TEXT,
        ]

    def test_forced_split_avoids_placeholders(self):
        """A forced cut should move before a placeholder instead of splitting it."""
        text = "x" * 8 + "<b_12>" + "y" * 10
        chunks = split_at_sentences(text, 10)
        assert chunks[0].text == "x" * 8
        assert chunks[1].text == "<b_12>yyyy"
        assert "".join(c.text for c in chunks) == text

    def test_leading_whitespace_dropped(self):
        chunks = split_at_sentences("   Hello. World.   ", 8)
        assert [c.text for c in chunks] == ["Hello.", "World."]

    def test_whitespace_only(self):
        assert split_at_sentences("   ", 10) == []

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            split_at_sentences("text", 0)
