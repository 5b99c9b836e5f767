"""Tests for the recursive chunker."""

import pytest

from textcarve.chunking.recursive import RecursiveChunker
from textcarve.tokenizer import CharacterTokenizer
from textcarve.types import RecursiveLevel, RecursiveRules


def _assert_contiguous(text, chunks):
    assert "".join(c.text for c in chunks) == text
    cursor = 0
    for chunk in chunks:
        assert chunk.start_index == cursor
        assert text[chunk.start_index : chunk.end_index] == chunk.text
        cursor = chunk.end_index
    assert cursor == len(text)


class TestRecursiveChunker:
    """Default hierarchy: paragraphs, sentences, punctuation, words, token window."""

    def test_undividable_word_falls_to_token_windows(self, char_tokenizer):
        text = "a" * 500
        chunks = RecursiveChunker(tokenizer=char_tokenizer, chunk_size=5).chunk(text)

        assert len(chunks) == 100
        assert all(c.text == "aaaaa" for c in chunks)
        assert all(c.token_count == 5 for c in chunks)
        assert [c.start_index for c in chunks] == list(range(0, 500, 5))

    def test_reconstruction_and_budget(self, char_tokenizer):
        text = (
            "First paragraph has a few sentences. It keeps going for a while. Then it stops.\n\n"
            "Second paragraph is short.\n\n" + "x" * 100 + " tail words here."
        )
        chunks = RecursiveChunker(tokenizer=char_tokenizer, chunk_size=40).chunk(text)

        _assert_contiguous(text, chunks)
        for chunk in chunks:
            assert chunk.token_count == len(chunk.text)
            assert chunk.token_count <= 40

    def test_small_text_is_a_single_chunk(self, char_tokenizer):
        text = "A short paragraph that fits."
        chunks = RecursiveChunker(tokenizer=char_tokenizer, chunk_size=100).chunk(text)
        assert len(chunks) == 1
        assert chunks[0].text == text
        assert chunks[0].token_count == len(text)

    def test_word_tokenizer_budget(self, word_tokenizer):
        text = "\n\n".join(
            " ".join(f"w{p}_{i}" for i in range(12)) + "." for p in range(4)
        )
        chunks = RecursiveChunker(tokenizer=word_tokenizer, chunk_size=8).chunk(text)

        assert "".join(c.text for c in chunks) == text
        assert all(c.token_count <= 8 for c in chunks)

    def test_empty_text(self, char_tokenizer):
        assert RecursiveChunker(tokenizer=char_tokenizer).chunk("") == []
        assert RecursiveChunker(tokenizer=char_tokenizer).chunk("  \n ") == []


class TestCustomRules:
    def test_token_window_only(self, char_tokenizer):
        rules = RecursiveRules(levels=[RecursiveLevel()])
        chunks = RecursiveChunker(tokenizer=char_tokenizer, chunk_size=4, rules=rules).chunk(
            "abcdefghij"
        )
        assert [c.text for c in chunks] == ["abcd", "efgh", "ij"]
        assert [c.token_count for c in chunks] == [4, 4, 2]

    def test_whitespace_merge_reinserts_single_space(self, char_tokenizer):
        rules = RecursiveRules(levels=[RecursiveLevel(whitespace=True), RecursiveLevel()])
        text = "alpha beta gamma delta"
        chunks = RecursiveChunker(tokenizer=char_tokenizer, chunk_size=12, rules=rules).chunk(text)

        assert [c.text for c in chunks] == ["alpha beta", " gamma delta"]
        assert [c.token_count for c in chunks] == [10, 12]
        _assert_contiguous(text, chunks)

    def test_without_token_window_oversized_leaf_is_emitted(self, char_tokenizer):
        rules = RecursiveRules(
            levels=[RecursiveLevel(delimiters=["\n\n"]), RecursiveLevel(whitespace=True)]
        )
        assert not rules.has_token_window
        text = "short para.\n\n" + "y" * 60
        chunks = RecursiveChunker(
            tokenizer=char_tokenizer, chunk_size=10, rules=rules, min_characters_per_chunk=1
        ).chunk(text)

        assert [c.text for c in chunks] == ["short", " para.\n\n", "y" * 60]
        assert chunks[-1].token_count == 60
        _assert_contiguous(text, chunks)

    def test_large_leaf_without_token_window_is_estimated(self):
        class RecordingTokenizer(CharacterTokenizer):
            def __init__(self):
                self.counted = []

            def count_tokens(self, text):
                self.counted.append(text)
                return len(text)

        tokenizer = RecordingTokenizer()
        rules = RecursiveRules(
            levels=[RecursiveLevel(delimiters=["\n\n"]), RecursiveLevel(whitespace=True)]
        )
        text = "y" * 200
        chunks = RecursiveChunker(tokenizer=tokenizer, chunk_size=10, rules=rules).chunk(text)

        assert [c.text for c in chunks] == [text]
        assert chunks[0].token_count == 11
        assert text not in tokenizer.counted


class TestValidation:
    def test_non_positive_chunk_size(self):
        with pytest.raises(ValueError):
            RecursiveChunker(chunk_size=0)

    def test_non_positive_min_characters(self):
        with pytest.raises(ValueError):
            RecursiveChunker(min_characters_per_chunk=0)

    def test_rules_must_be_recursive_rules(self):
        with pytest.raises(TypeError):
            RecursiveChunker(rules=[RecursiveLevel()])

    def test_from_recipe_uses_recipe_hierarchy(self):
        chunker = RecursiveChunker.from_recipe("markdown", chunk_size=64)
        assert chunker.chunk_size == 64
        assert "\n# " in chunker.rules[0].delimiters
        assert chunker.rules[0].include_delim == "next"
