"""
Tokenizer adapters: exact and batched token counts plus encode/decode.

Chunkers only talk to the ``Tokenizer`` interface. Failures raised by an
underlying tokenizer are never caught here; token counts are required for
budget correctness.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Sequence, Union

import tiktoken


class Tokenizer(ABC):
    """Abstract tokenizer interface."""

    @abstractmethod
    def encode(self, text: str) -> List[int]:
        """Encode text to token IDs."""

    @abstractmethod
    def decode(self, tokens: Sequence[int]) -> str:
        """Decode token IDs to text."""

    def count_tokens(self, text: str) -> int:
        """Count tokens in text."""
        return len(self.encode(text))

    def count_tokens_batch(self, texts: Sequence[str]) -> List[int]:
        return [len(tokens) for tokens in self.encode_batch(texts)]

    def encode_batch(self, texts: Sequence[str]) -> List[List[int]]:
        return [self.encode(text) for text in texts]

    def decode_batch(self, token_lists: Sequence[Sequence[int]]) -> List[str]:
        return [self.decode(tokens) for tokens in token_lists]

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class CharacterTokenizer(Tokenizer):
    """One token per character; token IDs are code points."""

    def encode(self, text: str) -> List[int]:
        return [ord(c) for c in text]

    def decode(self, tokens: Sequence[int]) -> str:
        return "".join(chr(t) for t in tokens)

    def count_tokens(self, text: str) -> int:
        return len(text)

    def count_tokens_batch(self, texts: Sequence[str]) -> List[int]:
        return [len(text) for text in texts]


class WordTokenizer(Tokenizer):
    """One token per whitespace-delimited word.

    The vocabulary grows as new words are encoded; decoding joins words with a
    single space, so original whitespace is not preserved.
    """

    def __init__(self) -> None:
        self._vocab: Dict[str, int] = {}
        self._words: List[str] = []
        self._lock = threading.Lock()

    def _token_id(self, word: str) -> int:
        token_id = self._vocab.get(word)
        if token_id is not None:
            return token_id
        # Batch runs share one tokenizer across threads
        with self._lock:
            token_id = self._vocab.get(word)
            if token_id is None:
                token_id = len(self._words)
                self._words.append(word)
                self._vocab[word] = token_id
        return token_id

    def encode(self, text: str) -> List[int]:
        return [self._token_id(word) for word in text.split()]

    def decode(self, tokens: Sequence[int]) -> str:
        return " ".join(self._words[t] for t in tokens)

    def count_tokens(self, text: str) -> int:
        return len(text.split())

    def count_tokens_batch(self, texts: Sequence[str]) -> List[int]:
        return [len(text.split()) for text in texts]


class TiktokenTokenizer(Tokenizer):
    """Tiktoken-based tokenizer (OpenAI compatible)."""

    def __init__(self, model: str = "gpt2"):
        """Initialize tiktoken tokenizer.

        Args:
            model: tiktoken encoding name (``gpt2``, ``cl100k_base``...) or an
                OpenAI model name; unknown names fall back to ``cl100k_base``.
        """
        self.model = model
        self.encoding = _resolve_encoding(model)

    def encode(self, text: str) -> List[int]:
        return self.encoding.encode(text, disallowed_special=())

    def decode(self, tokens: Sequence[int]) -> str:
        return self.encoding.decode(list(tokens))

    def encode_batch(self, texts: Sequence[str]) -> List[List[int]]:
        return self.encoding.encode_batch(list(texts), disallowed_special=())

    def decode_batch(self, token_lists: Sequence[Sequence[int]]) -> List[str]:
        return self.encoding.decode_batch([list(t) for t in token_lists])

    def __repr__(self) -> str:
        return f"TiktokenTokenizer(model={self.model!r})"


def _resolve_encoding(model: str) -> "tiktoken.Encoding":
    if model in tiktoken.list_encoding_names():
        return tiktoken.get_encoding(model)
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        # Fallback if model not found
        return tiktoken.get_encoding("cl100k_base")


TokenizerLike = Union[str, Tokenizer]


def get_tokenizer(tokenizer: TokenizerLike = "character") -> Tokenizer:
    """Resolve a tokenizer name or instance to a ``Tokenizer``."""
    if isinstance(tokenizer, Tokenizer):
        return tokenizer
    if not isinstance(tokenizer, str):
        raise TypeError(
            f"tokenizer must be a name or a Tokenizer instance, got {type(tokenizer).__name__}"
        )
    if tokenizer == "character":
        return CharacterTokenizer()
    if tokenizer == "word":
        return WordTokenizer()
    return TiktokenTokenizer(tokenizer)
