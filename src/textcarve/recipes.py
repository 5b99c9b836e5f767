"""
Recipes: named delimiter configurations per language.

A recipe resolves ``(name, language)`` to the delimiters and inclusion policy
used by the sentence chunker and to a recursive rule hierarchy. Lookup order:
an explicit file path, then ``SETTINGS.RECIPE_DIR``, then the built-ins.
Recipes are read once when a chunker is constructed.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .core.config import SETTINGS
from .core.logging import log
from .types import IncludeDelim, RecursiveRules, normalize_delimiters, validate_include_delim


class RecipeNotFoundError(LookupError):
    """No recipe matches the requested name and language."""


class Recipe(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    language: str
    delimiters: List[str]
    include_delim: IncludeDelim = "prev"
    recursive: Optional[Dict[str, Any]] = Field(
        default=None, description="RecursiveRules payload ({'levels': [...]})"
    )

    @field_validator("delimiters", mode="before")
    @classmethod
    def _check_delimiters(cls, value: Any) -> List[str]:
        return normalize_delimiters(value)

    @field_validator("include_delim", mode="before")
    @classmethod
    def _check_include_delim(cls, value: Any) -> IncludeDelim:
        try:
            return validate_include_delim(value)
        except ValueError as e:
            raise ValueError(f"Invalid include_delim value in recipe: {e}") from e

    def recursive_rules(self) -> RecursiveRules:
        if self.recursive is None:
            return RecursiveRules()
        return RecursiveRules.from_dict(self.recursive)


_PARAGRAPHS = {"delimiters": ["\n\n", "\r\n", "\n", "\r"]}

BUILTIN_RECIPES: Dict[str, Dict[str, Any]] = {
    "default_en": {
        "delimiters": [". ", "! ", "? ", "\n"],
        "include_delim": "prev",
        "recursive": {
            "levels": [
                _PARAGRAPHS,
                {"delimiters": [". ", "! ", "? "]},
                {
                    "delimiters": [
                        "{", "}", '"', "[", "]", "<", ">", "(", ")", ":", ";", ",",
                        "—", "|", "~", "-", "...", "`", "'",
                    ]
                },
                {"whitespace": True},
                {},
            ]
        },
    },
    "markdown_en": {
        "delimiters": [". ", "! ", "? ", "\n"],
        "include_delim": "prev",
        "recursive": {
            "levels": [
                {"delimiters": ["\n# ", "\n## ", "\n### ", "\n#### "], "include_delim": "next"},
                {"delimiters": ["\n```\n", "\n\n***\n\n", "\n\n---\n\n"], "include_delim": "next"},
                _PARAGRAPHS,
                {"delimiters": [". ", "! ", "? "]},
                {"whitespace": True},
                {},
            ]
        },
    },
}


def _read_recipe_file(path: Path) -> Dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f) or {}
        else:
            data = json.load(f)
    # Hub-style files nest the payload under "recipe"
    return data.get("recipe", data)


def _find_in_dir(recipe_dir: Path, name: str, language: str) -> Optional[Path]:
    for ext in ("json", "yaml", "yml"):
        candidate = recipe_dir / f"{name}_{language}.{ext}"
        if candidate.exists():
            return candidate
    return None


def load_recipe(
    name: str = "default",
    language: str = "en",
    path: Optional[str] = None,
    recipe_dir: Optional[str] = None,
) -> Recipe:
    """
    Resolve a recipe.

    Args:
        name: Recipe name (e.g. "default", "markdown")
        language: Language code
        path: Explicit JSON/YAML recipe file; wins over everything else
        recipe_dir: Directory of ``<name>_<language>`` files (default ``SETTINGS.RECIPE_DIR``)

    Raises:
        RecipeNotFoundError: if nothing matches
        ValueError: if the recipe content is invalid
    """
    if path:
        recipe_path = Path(path)
        if not recipe_path.exists():
            raise RecipeNotFoundError(f"Recipe file not found: {path}")
        payload = _read_recipe_file(recipe_path)
        source = str(recipe_path)
    else:
        directory = recipe_dir or SETTINGS.RECIPE_DIR
        found = _find_in_dir(Path(directory), name, language) if directory else None
        if found is not None:
            payload = _read_recipe_file(found)
            source = str(found)
        else:
            key = f"{name}_{language}"
            if key not in BUILTIN_RECIPES:
                raise RecipeNotFoundError(
                    f"Recipe '{name}' for language '{language}' not found. "
                    f"Built-in recipes: {sorted(BUILTIN_RECIPES)}"
                )
            payload = BUILTIN_RECIPES[key]
            source = "builtin"

    log.debug("recipe.load", name=name, language=language, source=source)
    return Recipe(
        name=name,
        language=language,
        delimiters=payload.get("delimiters", [". ", "! ", "? ", "\n"]),
        include_delim=payload.get("include_delim", "prev"),
        recursive=payload.get("recursive"),
    )


def list_builtin_recipes() -> List[str]:
    return sorted(BUILTIN_RECIPES)
