"""Shared fixtures for textcarve tests."""

import pytest
import structlog

from textcarve.tokenizer import CharacterTokenizer, WordTokenizer


@pytest.fixture(autouse=True)
def reset_structlog():
    """CLI runs bind the log stream to a temporary stderr; unbind it after each test."""
    yield
    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep host configuration out of tests."""
    for var in (
        "TOKENIZER",
        "CHUNK_SIZE",
        "CHUNK_OVERLAP",
        "RECIPE_DIR",
        "TEXTCARVE_API_KEY",
        "TEXTCARVE_BASE_URL",
        "LOG_FORMAT",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def char_tokenizer():
    return CharacterTokenizer()


@pytest.fixture
def word_tokenizer():
    return WordTokenizer()


@pytest.fixture
def sentences_3453():
    """Four sentences of 3, 4, 5 and 3 words."""
    return [
        "one two three. ",
        "four five six seven. ",
        "eight nine ten eleven twelve. ",
        "thirteen fourteen fifteen.",
    ]
