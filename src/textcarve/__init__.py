__version__ = "0.3.0"

from .chunking import RecursiveChunker, SentenceChunker, TokenChunker
from .tokenizer import CharacterTokenizer, TiktokenTokenizer, Tokenizer, WordTokenizer, get_tokenizer
from .types import Chunk, RecursiveLevel, RecursiveRules, Sentence, SentenceChunk

__all__ = [
    "__version__",
    "CharacterTokenizer",
    "Chunk",
    "RecursiveChunker",
    "RecursiveLevel",
    "RecursiveRules",
    "Sentence",
    "SentenceChunk",
    "SentenceChunker",
    "TiktokenTokenizer",
    "TokenChunker",
    "Tokenizer",
    "WordTokenizer",
    "get_tokenizer",
]
