"""
Token chunking: fixed-size windows over the encoded text, optionally overlapping.
"""

from __future__ import annotations

from itertools import accumulate
from typing import List, Sequence, Union

from ..core.logging import log
from ..tokenizer import TokenizerLike
from ..types import Chunk
from .base import BaseChunker


class TokenChunker(BaseChunker):
    """Cut text into windows of exactly ``chunk_size`` tokens (the last may be shorter).

    Consecutive windows share ``chunk_overlap`` tokens. A float overlap below 1
    is read as a fraction of ``chunk_size``.
    """

    def __init__(
        self,
        tokenizer: TokenizerLike = "character",
        chunk_size: int = 512,
        chunk_overlap: Union[int, float] = 0,
    ):
        """Initialize the token chunker.

        Raises:
            ValueError: if chunk_size is not positive or the overlap is not in ``[0, chunk_size)``
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be greater than 0")
        if isinstance(chunk_overlap, float) and 0 < chunk_overlap < 1:
            chunk_overlap = int(chunk_overlap * chunk_size)
        if chunk_overlap < 0:
            raise ValueError("chunk_overlap must be non-negative")
        if chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must be less than chunk_size")

        super().__init__(tokenizer)
        self.chunk_size = chunk_size
        self.chunk_overlap = int(chunk_overlap)

    def _window_starts(self, total: int) -> List[int]:
        step = self.chunk_size - self.chunk_overlap
        starts: List[int] = []
        for start in range(0, total, step):
            starts.append(start)
            if start + self.chunk_size >= total:
                break
        return starts

    def _char_offsets(self, tokens: Sequence[int], starts: List[int]) -> List[int]:
        """Character offset of each window start, from the decoded length of the tokens before it."""
        bounds = starts[1:] + [len(tokens)]
        pieces = [tokens[a:b] for a, b in zip(starts, bounds)]
        lengths = [len(piece) for piece in self.tokenizer.decode_batch(pieces)]
        return [0] + list(accumulate(lengths))[:-1]

    def chunk(self, text: str) -> List[Chunk]:
        """
        Chunk text into token windows.

        Offsets are exact for tokenizers whose decode reproduces the source
        (character, tiktoken); the word tokenizer collapses whitespace.
        """
        if not text.strip():
            return []

        tokens = self.tokenizer.encode(text)
        starts = self._window_starts(len(tokens))
        windows = [tokens[start : start + self.chunk_size] for start in starts]
        texts = self.tokenizer.decode_batch(windows)
        offsets = self._char_offsets(tokens, starts)

        chunks = [
            Chunk(
                text=window_text,
                start_index=offset,
                end_index=offset + len(window_text),
                token_count=len(window),
            )
            for window_text, window, offset in zip(texts, windows, offsets)
        ]
        log.debug("chunk.token.done", tokens=len(tokens), chunks=len(chunks))
        return chunks

    def __repr__(self) -> str:
        return (
            f"TokenChunker(tokenizer={self.tokenizer!r}, "
            f"chunk_size={self.chunk_size}, chunk_overlap={self.chunk_overlap})"
        )
