"""
Recursive chunking: descend a rule hierarchy until every piece fits the budget.

Strategy order follows ``RecursiveRules`` (default: paragraphs, sentences,
punctuation, words, token window). At each level the text is split, the
pieces are merged back up to ``chunk_size`` and any merged piece still over
budget is split again at the next level.
"""

from __future__ import annotations

from typing import Any, List, Optional, Tuple

from ..core.logging import log
from ..tokenizer import TokenizerLike
from ..types import Chunk, RecursiveLevel, RecursiveRules
from .base import BaseChunker
from .boundaries import merge_pieces, split_text, split_whitespace

# Rough characters-per-token ratio used to skip exact counts on obviously large text
CHARS_PER_TOKEN = 6.5


class RecursiveChunker(BaseChunker):
    """Split text with a hierarchy of progressively finer rules.

    The token budget is a hard ceiling on leaf chunks only when the rules end
    with a token-window level; otherwise an undividable run is emitted as one
    oversized leaf.
    """

    def __init__(
        self,
        tokenizer: TokenizerLike = "character",
        chunk_size: int = 512,
        rules: Optional[RecursiveRules] = None,
        min_characters_per_chunk: int = 24,
    ):
        """Initialize the recursive chunker.

        Args:
            tokenizer: Tokenizer instance or name
            chunk_size: Maximum tokens per chunk
            rules: Rule hierarchy, coarse to fine (default ``RecursiveRules()``)
            min_characters_per_chunk: Minimum fragment length at delimiter levels

        Raises:
            ValueError: if chunk_size or min_characters_per_chunk is not positive
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be greater than 0")
        if min_characters_per_chunk <= 0:
            raise ValueError("min_characters_per_chunk must be greater than 0")
        if rules is not None and not isinstance(rules, RecursiveRules):
            raise TypeError("rules must be a RecursiveRules instance")

        super().__init__(tokenizer)
        self.chunk_size = chunk_size
        self.rules = rules if rules is not None else RecursiveRules()
        self.min_characters_per_chunk = min_characters_per_chunk

    @classmethod
    def from_recipe(
        cls,
        name: str = "default",
        language: str = "en",
        path: Optional[str] = None,
        **kwargs: Any,
    ) -> "RecursiveChunker":
        """Build a chunker whose rule hierarchy comes from a recipe."""
        return cls(rules=RecursiveRules.from_recipe(name, language, path), **kwargs)

    def chunk(self, text: str) -> List[Chunk]:
        """
        Chunk text into leaf chunks ordered by offset.

        Args:
            text: Text to chunk

        Returns:
            Leaf chunks; concatenated they reproduce the text for
            delimiter levels that keep their delimiters
        """
        if not text.strip():
            return []
        chunks = self._recursive_chunk(text, 0, 0)
        log.debug("chunk.recursive.done", chars=len(text), chunks=len(chunks))
        return chunks

    def _estimate_token_count(self, text: str) -> int:
        """Cheap length-based estimate; exact count only near or under the budget."""
        estimate = max(1, int(len(text) // CHARS_PER_TOKEN))
        if estimate > self.chunk_size:
            return self.chunk_size + 1
        return self.tokenizer.count_tokens(text)

    def _split_by_tokens(self, text: str) -> Tuple[List[str], List[int]]:
        encoded = self.tokenizer.encode(text)
        windows = [
            encoded[i : i + self.chunk_size] for i in range(0, len(encoded), self.chunk_size)
        ]
        return self.tokenizer.decode_batch(windows), [len(w) for w in windows]

    def _split_and_merge(self, text: str, level: RecursiveLevel) -> Tuple[List[str], List[int]]:
        """Split ``text`` by one level and merge the pieces back up to the budget."""
        if level.is_token_window:
            return self._split_by_tokens(text)

        if level.whitespace:
            pieces = split_whitespace(text)
        else:
            pieces = split_text(
                text,
                level.delimiters or [],
                level.include_delim,
                self.min_characters_per_chunk,
            )
        token_counts = [self._estimate_token_count(piece) for piece in pieces]

        if not level.whitespace:
            return merge_pieces(pieces, token_counts, self.chunk_size)

        merged, merged_counts = merge_pieces(
            pieces, token_counts, self.chunk_size, combine_whitespace=True
        )
        # Re-attach the space consumed between merged groups and count it
        return (
            merged[:1] + [" " + piece for piece in merged[1:]],
            merged_counts[:1] + [count + 1 for count in merged_counts[1:]],
        )

    def _make_chunk(self, text: str, token_count: int, start_offset: int) -> Chunk:
        return Chunk(
            text=text,
            start_index=start_offset,
            end_index=start_offset + len(text),
            token_count=token_count,
        )

    def _recursive_chunk(self, text: str, level: int, start_offset: int) -> List[Chunk]:
        if not text:
            return []

        if level >= len(self.rules):
            # Out of rules: emit whatever is left as one leaf
            return [self._make_chunk(text, self._estimate_token_count(text), start_offset)]

        rule = self.rules[level]
        pieces, token_counts = self._split_and_merge(text, rule)

        chunks: List[Chunk] = []
        offset = start_offset
        for piece, token_count in zip(pieces, token_counts):
            if not piece:
                continue
            if token_count > self.chunk_size and not rule.is_token_window:
                chunks.extend(self._recursive_chunk(piece, level + 1, offset))
            else:
                chunks.append(self._make_chunk(piece, token_count, offset))
            offset += len(piece)

        return chunks

    def __repr__(self) -> str:
        return (
            f"RecursiveChunker(tokenizer={self.tokenizer!r}, "
            f"chunk_size={self.chunk_size}, rules={self.rules}, "
            f"min_characters_per_chunk={self.min_characters_per_chunk})"
        )
