"""Tests for the fixed-window token chunker."""

import pytest

from textcarve.chunking.token import TokenChunker


class TestTokenChunker:
    def test_fixed_windows_without_overlap(self, char_tokenizer):
        chunks = TokenChunker(tokenizer=char_tokenizer, chunk_size=4).chunk("abcdefghij")

        assert [c.text for c in chunks] == ["abcd", "efgh", "ij"]
        assert [c.token_count for c in chunks] == [4, 4, 2]
        assert [(c.start_index, c.end_index) for c in chunks] == [(0, 4), (4, 8), (8, 10)]

    def test_overlapping_windows(self, char_tokenizer):
        text = "abcdefghij"
        chunks = TokenChunker(tokenizer=char_tokenizer, chunk_size=4, chunk_overlap=2).chunk(text)

        assert [c.start_index for c in chunks] == [0, 2, 4, 6]
        assert [c.text for c in chunks] == ["abcd", "cdef", "efgh", "ghij"]
        for chunk in chunks:
            assert text[chunk.start_index : chunk.end_index] == chunk.text

    def test_fractional_overlap(self, char_tokenizer):
        chunker = TokenChunker(tokenizer=char_tokenizer, chunk_size=10, chunk_overlap=0.5)
        assert chunker.chunk_overlap == 5

    def test_text_shorter_than_window(self, char_tokenizer):
        chunks = TokenChunker(tokenizer=char_tokenizer, chunk_size=50).chunk("short")
        assert len(chunks) == 1
        assert chunks[0].text == "short"
        assert chunks[0].token_count == 5

    def test_word_tokenizer_counts_words(self, word_tokenizer):
        chunks = TokenChunker(tokenizer=word_tokenizer, chunk_size=2).chunk("a b c d e")
        assert [c.text for c in chunks] == ["a b", "c d", "e"]
        assert [c.token_count for c in chunks] == [2, 2, 1]

    @pytest.mark.parametrize("text", ["", "   \n"])
    def test_blank_text(self, char_tokenizer, text):
        assert TokenChunker(tokenizer=char_tokenizer).chunk(text) == []

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"chunk_size": 0},
            {"chunk_size": 4, "chunk_overlap": 4},
            {"chunk_size": 4, "chunk_overlap": -1},
        ],
    )
    def test_invalid_configuration_raises(self, kwargs):
        with pytest.raises(ValueError):
            TokenChunker(**kwargs)

    def test_batch_and_call(self, char_tokenizer):
        chunker = TokenChunker(tokenizer=char_tokenizer, chunk_size=3)
        assert [len(r) for r in chunker(["abcdef", "ab"])] == [2, 1]

    def test_repr(self):
        assert "chunk_overlap=1" in repr(TokenChunker(chunk_size=4, chunk_overlap=1))
