"""
Chunker Tests

Covers tier selection, greedy packing, hard splitting and the size bound.
"""

import re

import pytest

from pdf_qa_server.ingestion.chunker import (
    LINES,
    WHOLE_TEXT,
    chunk_stats,
    chunk_text,
    pack_units,
    split_lines,
    split_paragraphs,
)


def _contents(chunks):
    return [c.content for c in chunks]


class TestParagraphTier:

    def test_two_paragraphs_over_limit_become_two_chunks(self):
        chunks = chunk_text("Para A.\n\nPara B.", max_chunk_size=10)

        assert _contents(chunks) == ["Para A.", "Para B."]
        assert [c.position for c in chunks] == [1, 2]

    def test_paragraphs_within_limit_are_packed_together(self):
        chunks = chunk_text("Para A.\n\nPara B.", max_chunk_size=20)

        assert _contents(chunks) == ["Para A.\n\nPara B."]
        assert chunks[0].position == 1

    def test_internal_whitespace_is_collapsed(self):
        chunks = chunk_text("Hello   world\nagain\n\n  Next\tone  ", max_chunk_size=200)

        assert _contents(chunks) == ["Hello world again\n\nNext one"]

    def test_blank_line_with_spaces_separates_paragraphs(self):
        assert split_paragraphs("first\n   \nsecond") == ["first", "second"]

    def test_packing_flushes_when_next_unit_overflows(self):
        text = "aaaa\n\nbbbb\n\ncccc"
        # "aaaa\n\nbbbb" is 10 chars; adding "\n\ncccc" would make 16
        chunks = chunk_text(text, max_chunk_size=12)

        assert _contents(chunks) == ["aaaa\n\nbbbb", "cccc"]


class TestHardSplit:

    def test_oversized_paragraph_is_split_into_fixed_slices(self):
        chunks = chunk_text("a" * 25, max_chunk_size=10)

        assert _contents(chunks) == ["a" * 10, "a" * 10, "a" * 5]
        assert [c.position for c in chunks] == [1, 2, 3]

    def test_buffer_is_flushed_before_oversized_unit(self):
        text = "short\n\n" + "x" * 25 + "\n\ntail"
        chunks = chunk_text(text, max_chunk_size=10)

        assert _contents(chunks) == ["short", "x" * 10, "x" * 10, "x" * 5, "tail"]
        assert [c.position for c in chunks] == [1, 2, 3, 4, 5]

    def test_every_chunk_respects_max_size(self):
        words = " ".join(f"word{i}" for i in range(300))
        text = "\n\n".join([words[:450], "tiny", words[450:1400], "x" * 700])

        for size in (7, 50, 200):
            chunks = chunk_text(text, max_chunk_size=size)
            assert chunks
            assert all(len(c.content) <= size for c in chunks)


class TestFallbackTiers:

    def test_line_tier_packs_with_single_newline(self):
        chunks = chunk_text(
            "  line one \nline two\n\n\nline three",
            max_chunk_size=20,
            strategies=(LINES, WHOLE_TEXT),
        )

        assert _contents(chunks) == ["line one\nline two", "line three"]

    def test_split_lines_drops_empty_lines(self):
        assert split_lines("a\n\n  \nb ") == ["a", "b"]

    def test_whole_text_tier_used_last(self):
        chunks = chunk_text("  just this  ", max_chunk_size=50, strategies=(WHOLE_TEXT,))

        assert _contents(chunks) == ["just this"]

    def test_pack_units_with_empty_separator(self):
        assert pack_units(["abc", "def", "gh"], "", 6) == ["abcdef", "gh"]


class TestEdgeCases:

    @pytest.mark.parametrize("text", ["", "   ", "\n\n\t\n"])
    def test_empty_or_blank_text_yields_no_chunks(self, text):
        assert chunk_text(text, max_chunk_size=10) == []

    @pytest.mark.parametrize("size", [0, -5])
    def test_non_positive_size_rejected(self, size):
        with pytest.raises(ValueError):
            chunk_text("text", max_chunk_size=size)

    def test_default_size_comes_from_settings(self):
        from pdf_qa_server.config import settings

        chunks = chunk_text("z" * (settings.chunk_size + 1))

        assert [len(c.content) for c in chunks] == [settings.chunk_size, 1]

    def test_chunking_is_deterministic(self):
        text = "Alpha beta.\n\nGamma delta epsilon.\n\n" + "zeta " * 80

        assert _contents(chunk_text(text, 40)) == _contents(chunk_text(text, 40))

    def test_no_information_lost_beyond_whitespace(self):
        text = "Alpha  beta.\n\nGamma\ndelta.\n\n" + "omega" * 30
        chunks = chunk_text(text, max_chunk_size=30)

        original = re.sub(r"\s+", "", text)
        rebuilt = re.sub(r"\s+", "", "".join(_contents(chunks)))
        assert rebuilt == original


def test_chunk_stats():
    chunks = chunk_text("aaaa\n\nbb\n\ncccccc", max_chunk_size=5)

    assert _contents(chunks) == ["aaaa", "bb", "ccccc", "c"]
    assert chunk_stats(chunks) == {
        "chunk_count": 4,
        "min_chunk_size": 1,
        "max_chunk_size": 5,
        "avg_chunk_size": 3,
    }


def test_chunk_stats_empty():
    assert chunk_stats([])["chunk_count"] == 0
