"""
textcarve chunking package

Sentence, recursive and token-window chunkers over a shared split/merge core, with
exact offsets and token counts on every chunk.
"""

from .base import BaseChunker
from .recursive import RecursiveChunker
from .sentence import SentenceChunker
from .token import TokenChunker
from .verify import verify_chunks

__all__ = ["BaseChunker", "RecursiveChunker", "SentenceChunker", "TokenChunker", "verify_chunks"]
