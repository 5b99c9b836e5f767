"""
Chunk, sentence and recursive-rule records shared by both chunking pipelines.

All records are frozen pydantic models: they are built once per ``chunk()``
call and never mutated afterwards.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

IncludeDelim = Optional[Literal["prev", "next"]]

INCLUDE_DELIM_VALUES = ("prev", "next", None)


def validate_include_delim(value: Any) -> IncludeDelim:
    """Return ``value`` if it is a known inclusion policy, else raise ValueError."""
    if value not in INCLUDE_DELIM_VALUES:
        raise ValueError(f"include_delim must be 'prev', 'next' or None, got {value!r}")
    return value


def normalize_delimiters(value: Union[str, List[str], None]) -> List[str]:
    """Accept a single delimiter or a list of them; reject empty sets and members."""
    if value is None:
        raise ValueError("delim must be a list of strings or a string")
    if isinstance(value, str):
        value = [value]
    delimiters = list(value)
    if not delimiters:
        raise ValueError("delim must contain at least one delimiter")
    for d in delimiters:
        if not isinstance(d, str) or not d:
            raise ValueError(f"delimiters must be non-empty strings, got {d!r}")
    return delimiters


class Chunk(BaseModel):
    """A contiguous text segment with offsets and a token count."""

    model_config = ConfigDict(frozen=True)

    text: str
    start_index: int = Field(ge=0)
    end_index: int = Field(ge=0)
    token_count: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_span(self) -> "Chunk":
        if self.end_index < self.start_index:
            raise ValueError(
                f"end_index ({self.end_index}) is before start_index ({self.start_index})"
            )
        return self

    def __len__(self) -> int:
        return len(self.text)

    def __str__(self) -> str:
        return self.text

    def to_dict(self) -> Dict[str, Any]:
        """Convert chunk to a JSON-friendly dictionary."""
        return self.model_dump()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Chunk":
        if "sentences" in data and cls is Chunk:
            return SentenceChunk.model_validate(data)
        return cls.model_validate(data)


class Sentence(BaseModel):
    """A delimiter-bounded fragment, the atomic unit of a sentence chunk."""

    model_config = ConfigDict(frozen=True)

    text: str
    start_index: int = Field(ge=0)
    end_index: int = Field(ge=0)
    token_count: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_span(self) -> "Sentence":
        if self.end_index - self.start_index != len(self.text):
            raise ValueError(
                "sentence span does not match its text length: "
                f"[{self.start_index}, {self.end_index}) vs {len(self.text)} chars"
            )
        return self

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


class SentenceChunk(Chunk):
    """A chunk made of whole sentences."""

    sentences: List[Sentence] = Field(min_length=1)

    @model_validator(mode="after")
    def _check_sentences(self) -> "SentenceChunk":
        if self.text != "".join(s.text for s in self.sentences):
            raise ValueError("chunk text must equal the concatenation of its sentences")
        if self.start_index != self.sentences[0].start_index:
            raise ValueError("start_index must match the first sentence")
        if self.end_index != self.sentences[-1].end_index:
            raise ValueError("end_index must match the last sentence")
        return self


class RecursiveLevel(BaseModel):
    """One rule of the recursive hierarchy.

    Exactly one mode is active: ``delimiters`` (split on delimiters with
    ``include_delim``), ``whitespace`` (split on spaces), or neither, which
    means slicing encoded tokens into fixed windows.
    """

    model_config = ConfigDict(frozen=True)

    delimiters: Optional[List[str]] = None
    whitespace: bool = False
    include_delim: IncludeDelim = "prev"

    @field_validator("delimiters", mode="before")
    @classmethod
    def _coerce_delimiters(cls, value: Any) -> Optional[List[str]]:
        if value is None:
            return None
        return normalize_delimiters(value)

    @field_validator("include_delim", mode="before")
    @classmethod
    def _check_include_delim(cls, value: Any) -> IncludeDelim:
        return validate_include_delim(value)

    @model_validator(mode="after")
    def _check_mode(self) -> "RecursiveLevel":
        if self.delimiters is not None and self.whitespace:
            raise ValueError("a recursive level cannot use both delimiters and whitespace")
        return self

    @property
    def is_token_window(self) -> bool:
        return self.delimiters is None and not self.whitespace

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecursiveLevel":
        return cls.model_validate(data)

    def __str__(self) -> str:
        if self.whitespace:
            return "RecursiveLevel(whitespace=True)"
        if self.delimiters is not None:
            return (
                f"RecursiveLevel(delimiters={self.delimiters!r}, "
                f"include_delim={self.include_delim!r})"
            )
        return "RecursiveLevel(token_window)"


def _default_levels() -> List[RecursiveLevel]:
    return [
        RecursiveLevel(delimiters=["\n\n", "\r\n", "\n", "\r"]),
        RecursiveLevel(delimiters=[". ", "! ", "? "]),
        RecursiveLevel(
            delimiters=[
                "{", "}", '"', "[", "]", "<", ">", "(", ")", ":", ";", ",",
                "—", "|", "~", "-", "...", "`", "'",
            ]
        ),
        RecursiveLevel(whitespace=True),
        RecursiveLevel(),
    ]


class RecursiveRules(BaseModel):
    """Ordered, immutable hierarchy of recursive levels, coarse to fine."""

    model_config = ConfigDict(frozen=True)

    levels: List[RecursiveLevel] = Field(default_factory=_default_levels)

    def __len__(self) -> int:
        return len(self.levels)

    def __getitem__(self, index: int) -> RecursiveLevel:
        return self.levels[index]

    @property
    def has_token_window(self) -> bool:
        """True when the token budget is a hard cap for leaf chunks."""
        return any(level.is_token_window for level in self.levels)

    def to_dict(self) -> Dict[str, Any]:
        return {"levels": [level.to_dict() for level in self.levels]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecursiveRules":
        return cls.model_validate(data)

    @classmethod
    def from_recipe(
        cls,
        name: str = "default",
        language: str = "en",
        path: Optional[str] = None,
        recipe_dir: Optional[str] = None,
    ) -> "RecursiveRules":
        from .recipes import load_recipe

        return load_recipe(name, language, path, recipe_dir).recursive_rules()

    def __str__(self) -> str:
        return f"RecursiveRules(levels={[str(level) for level in self.levels]})"
