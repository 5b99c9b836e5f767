"""
Sentence chunking: delimiter-split sentences packed greedily into token windows.
"""

from __future__ import annotations

from bisect import bisect_right
from itertools import accumulate
from typing import Any, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..core.logging import log
from ..tokenizer import TokenizerLike
from ..types import (
    IncludeDelim,
    Sentence,
    SentenceChunk,
    normalize_delimiters,
    validate_include_delim,
)
from .base import BaseChunker
from .boundaries import split_text

DEFAULT_DELIMITERS = [". ", "! ", "? ", "\n"]


class SentenceChunkerConfig(BaseModel):
    """Validated sentence chunker settings; invalid values fail at construction."""

    model_config = ConfigDict(frozen=True)

    chunk_size: int = Field(512, gt=0)
    chunk_overlap: int = Field(0, ge=0)
    min_sentences_per_chunk: int = Field(1, gt=0)
    min_characters_per_sentence: int = Field(12, gt=0)
    delim: List[str] = Field(default_factory=lambda: list(DEFAULT_DELIMITERS))
    include_delim: IncludeDelim = "prev"

    @field_validator("delim", mode="before")
    @classmethod
    def _check_delim(cls, value: Any) -> List[str]:
        return normalize_delimiters(value)

    @field_validator("include_delim", mode="before")
    @classmethod
    def _check_include_delim(cls, value: Any) -> IncludeDelim:
        return validate_include_delim(value)

    @model_validator(mode="after")
    def _check_overlap(self) -> "SentenceChunkerConfig":
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be less than chunk_size")
        return self


class SentenceChunker(BaseChunker):
    """Split text into chunks of whole sentences under a token budget.

    Sentences are never cut. A chunk exceeds ``chunk_size`` only when it holds
    a single sentence that is itself larger than the budget. Consecutive
    chunks may share trailing sentences when ``chunk_overlap`` is set.
    """

    def __init__(
        self,
        tokenizer: TokenizerLike = "character",
        chunk_size: int = 512,
        chunk_overlap: int = 0,
        min_sentences_per_chunk: int = 1,
        min_characters_per_sentence: int = 12,
        delim: Union[str, Sequence[str], None] = None,
        include_delim: IncludeDelim = "prev",
    ):
        """Initialize the sentence chunker.

        Args:
            tokenizer: Tokenizer instance or name
            chunk_size: Maximum tokens per chunk
            chunk_overlap: Tokens shared between consecutive chunks, realised in whole sentences
            min_sentences_per_chunk: Minimum sentences per chunk (the last chunk may have fewer)
            min_characters_per_sentence: Shorter fragments are merged into the following text
            delim: Sentence delimiters
            include_delim: Attach delimiters to the previous ("prev") or next ("next") sentence, or drop them (None)

        Raises:
            ValueError: if any setting is out of range
        """
        self.config = SentenceChunkerConfig(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            min_sentences_per_chunk=min_sentences_per_chunk,
            min_characters_per_sentence=min_characters_per_sentence,
            delim=list(DEFAULT_DELIMITERS) if delim is None else delim,
            include_delim=include_delim,
        )
        super().__init__(tokenizer)

    @property
    def chunk_size(self) -> int:
        return self.config.chunk_size

    @property
    def chunk_overlap(self) -> int:
        return self.config.chunk_overlap

    @property
    def min_sentences_per_chunk(self) -> int:
        return self.config.min_sentences_per_chunk

    @property
    def min_characters_per_sentence(self) -> int:
        return self.config.min_characters_per_sentence

    @property
    def delim(self) -> List[str]:
        return list(self.config.delim)

    @property
    def include_delim(self) -> IncludeDelim:
        return self.config.include_delim

    @classmethod
    def from_recipe(
        cls,
        name: str = "default",
        language: str = "en",
        path: Optional[str] = None,
        **kwargs: Any,
    ) -> "SentenceChunker":
        """Build a chunker whose delimiters and inclusion policy come from a recipe."""
        from ..recipes import load_recipe

        recipe = load_recipe(name, language, path)
        return cls(delim=recipe.delimiters, include_delim=recipe.include_delim, **kwargs)

    def _split_text(self, text: str) -> List[str]:
        return split_text(
            text,
            self.config.delim,
            self.config.include_delim,
            self.config.min_characters_per_sentence,
        )

    def _prepare_sentences(self, text: str) -> List[Sentence]:
        """Split text into sentences with absolute offsets and exact token counts."""
        sentence_texts = self._split_text(text)
        if not sentence_texts:
            return []

        # Fragments carry their own delimiters, so offsets are a plain running sum
        ends = list(accumulate(len(s) for s in sentence_texts))
        token_counts = self.tokenizer.count_tokens_batch(sentence_texts)

        return [
            Sentence(
                text=sent,
                start_index=end - len(sent),
                end_index=end,
                token_count=count,
            )
            for sent, end, count in zip(sentence_texts, ends, token_counts)
        ]

    def _create_chunk(self, sentences: List[Sentence]) -> SentenceChunk:
        chunk_text = "".join(sentence.text for sentence in sentences)
        # Whole-text count differs from the per-sentence sum at token boundaries
        token_count = self.tokenizer.count_tokens(chunk_text)
        return SentenceChunk(
            text=chunk_text,
            start_index=sentences[0].start_index,
            end_index=sentences[-1].end_index,
            token_count=token_count,
            sentences=sentences,
        )

    def _overlap_start(self, sentences: List[Sentence], pos: int, split_idx: int) -> int:
        """Index of the first sentence the next chunk re-uses from this one."""
        overlap_tokens = 0
        overlap_idx = split_idx - 1
        while overlap_idx > pos and overlap_tokens < self.chunk_overlap:
            # +1 for the separator between sentences
            next_tokens = overlap_tokens + sentences[overlap_idx].token_count + 1
            if next_tokens > self.chunk_overlap:
                break
            overlap_tokens = next_tokens
            overlap_idx -= 1
        return overlap_idx + 1

    def chunk(self, text: str) -> List[SentenceChunk]:
        """
        Split text into sentence chunks that respect the token budget.

        Args:
            text: Text to chunk

        Returns:
            Chunks ordered by ``start_index``; empty for blank input
        """
        if not text.strip():
            return []

        sentences = self._prepare_sentences(text)
        if not sentences:
            return []

        n = len(sentences)
        token_sums = [0] + list(accumulate(s.token_count for s in sentences))

        chunks: List[SentenceChunk] = []
        pos = 0
        while pos < n:
            # Last index whose running total still fits the budget
            target_tokens = token_sums[pos] + self.chunk_size
            split_idx = bisect_right(token_sums, target_tokens, lo=pos) - 1
            split_idx = max(min(split_idx, n), pos + 1)

            if split_idx - pos < self.min_sentences_per_chunk:
                if pos + self.min_sentences_per_chunk <= n:
                    split_idx = pos + self.min_sentences_per_chunk
                else:
                    log.warning(
                        "chunk.min_sentences_unmet",
                        min_sentences_per_chunk=self.min_sentences_per_chunk,
                        last_chunk_sentences=n - pos,
                        hint="increase chunk_size or decrease min_sentences_per_chunk",
                    )
                    split_idx = n

            chunks.append(self._create_chunk(sentences[pos:split_idx]))

            if self.chunk_overlap > 0 and split_idx < n:
                pos = self._overlap_start(sentences, pos, split_idx)
            else:
                pos = split_idx

        log.debug("chunk.sentence.done", sentences=n, chunks=len(chunks))
        return chunks

    def __repr__(self) -> str:
        return (
            f"SentenceChunker(tokenizer={self.tokenizer!r}, "
            f"chunk_size={self.chunk_size}, "
            f"chunk_overlap={self.chunk_overlap}, "
            f"min_sentences_per_chunk={self.min_sentences_per_chunk}, "
            f"min_characters_per_sentence={self.min_characters_per_sentence}, "
            f"delim={self.delim!r}, include_delim={self.include_delim!r})"
        )
