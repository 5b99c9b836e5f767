"""
Base chunker: single-text and batch entry points shared by all chunkers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Union

from rich.console import Console
from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn

from ..core.logging import log
from ..tokenizer import Tokenizer, TokenizerLike, get_tokenizer
from ..types import Chunk


class BaseChunker(ABC):
    """Common surface for chunkers.

    A chunker holds only immutable configuration and its tokenizer, so one
    instance can serve concurrent ``chunk`` calls as long as the tokenizer
    itself is safe to share.
    """

    def __init__(self, tokenizer: TokenizerLike = "character"):
        self.tokenizer: Tokenizer = get_tokenizer(tokenizer)

    @abstractmethod
    def chunk(self, text: str) -> List[Chunk]:
        """Chunk a single text into an ordered list of chunks."""

    def chunk_batch(
        self,
        texts: Sequence[str],
        show_progress: bool = False,
        workers: Optional[int] = None,
    ) -> List[List[Chunk]]:
        """
        Chunk several independent texts, preserving input order.

        Args:
            texts: Texts to chunk
            show_progress: Render a progress bar on stderr
            workers: Thread count; documents are independent so they may run in parallel

        Returns:
            One chunk list per input text
        """
        texts = list(texts)
        workers = workers or 1
        log.debug("chunk.batch.start", docs=len(texts), workers=workers)

        if not show_progress:
            if workers > 1 and len(texts) > 1:
                with ThreadPoolExecutor(max_workers=workers) as pool:
                    results = list(pool.map(self.chunk, texts))
            else:
                results = [self.chunk(text) for text in texts]
        else:
            results = self._chunk_batch_with_progress(texts, workers)

        log.debug(
            "chunk.batch.done",
            docs=len(texts),
            chunks=sum(len(r) for r in results),
        )
        return results

    def _chunk_batch_with_progress(self, texts: List[str], workers: int) -> List[List[Chunk]]:
        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("docs={task.completed}/{task.total}"),
            TimeElapsedColumn(),
            console=Console(stderr=True),
        ) as progress:
            task = progress.add_task(f"Chunking ({type(self).__name__})", total=len(texts))
            results: List[List[Chunk]] = []
            if workers > 1 and len(texts) > 1:
                with ThreadPoolExecutor(max_workers=workers) as pool:
                    # map() yields in input order
                    for chunks in pool.map(self.chunk, texts):
                        results.append(chunks)
                        progress.advance(task)
            else:
                for text in texts:
                    results.append(self.chunk(text))
                    progress.advance(task)
        return results

    def __call__(
        self,
        text: Union[str, Sequence[str]],
        show_progress: bool = False,
    ) -> Union[List[Chunk], List[List[Chunk]]]:
        """Chunk a single text or a sequence of texts."""
        if isinstance(text, str):
            return self.chunk(text)
        if isinstance(text, (list, tuple)):
            return self.chunk_batch(text, show_progress=show_progress)
        raise TypeError(f"Input must be a string or a list of strings, got {type(text).__name__}")
