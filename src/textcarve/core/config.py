from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Tokenizer: "character", "word", or a tiktoken encoding/model name
    TOKENIZER: str = "character"

    # Sentence chunker defaults
    CHUNK_SIZE: int = 512
    CHUNK_OVERLAP: int = 0
    MIN_SENTENCES_PER_CHUNK: int = 1
    MIN_CHARACTERS_PER_SENTENCE: int = 12
    SENTENCE_DELIMITERS: List[str] = [". ", "! ", "? ", "\n"]
    INCLUDE_DELIM: Optional[str] = "prev"  # prev|next|None (drop)

    # Recursive chunker defaults
    MIN_CHARACTERS_PER_CHUNK: int = 24

    # Recipes
    RECIPE_DIR: Optional[str] = None  # <dir>/<name>_<language>.{json,yaml,yml}
    RECIPE_LANGUAGE: str = "en"

    # Batch processing
    BATCH_WORKERS: int = 1  # >1 fans documents out over threads

    # Cloud pipeline API
    TEXTCARVE_API_KEY: Optional[str] = None
    TEXTCARVE_BASE_URL: str = "https://api.chonkie.ai"
    TEXTCARVE_TIMEOUT: float = 60.0

    # Observability
    LOG_FORMAT: str = "auto"  # json|plain|auto
    LOG_LEVEL: str = "info"
    PROGRESS: bool = False  # Show progress bars on batch runs

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @classmethod
    def load_config(cls, config_file: Optional[str] = None) -> "Settings":
        """Load settings with config file -> env -> CLI precedence."""
        config_data: Dict[str, Any] = {}

        if config_file:
            config_path: Optional[Path] = Path(config_file)
        else:
            # Auto-discover .textcarve.{yaml,yml,toml}
            for ext in ["yaml", "yml", "toml"]:
                config_path = Path(f".textcarve.{ext}")
                if config_path.exists():
                    break
            else:
                config_path = None

        if config_path and config_path.exists():
            if config_path.suffix in [".yaml", ".yml"]:
                import yaml

                with open(config_path) as f:
                    config_data = yaml.safe_load(f) or {}
            elif config_path.suffix == ".toml":
                import tomllib

                with open(config_path, "rb") as f:
                    config_data = tomllib.load(f)

        # Environment variables override file values
        env_overrides = cls()
        for key in env_overrides.model_fields_set:
            config_data.pop(key, None)
        return cls(**config_data)


# Default settings - replaced by load_config() during CLI startup
SETTINGS = Settings()
