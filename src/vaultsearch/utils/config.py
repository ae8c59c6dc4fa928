"""
Configuration utilities.
"""

import json
from pathlib import Path
from typing import Literal, Optional

import yaml

from pydantic import BaseModel, Field


class Config(BaseModel):
    """Base configuration class."""

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    @classmethod
    def from_file(cls, path: str | Path) -> "Config":
        """Load configuration from file (YAML or JSON)."""
        path = Path(path)

        if path.suffix in (".yaml", ".yml"):
            return cls.from_yaml(path)
        elif path.suffix == ".json":
            with open(path) as f:
                data = json.load(f)
            return cls(**data)
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")


class AppConfig(Config):
    """Configuration for syncing a vault into a Meilisearch index."""
    meili_host: str = "http://localhost:7700"
    meili_master_key: Optional[str] = None
    index_uid: str = "obsidian-aid"

    vault_root: str = "."

    # Embeddings service
    embeddings_url: str = "http://localhost:8000/api/v1/embeddings"
    embedding_size: Literal[32, 64, 128, 256, 512, 768, 1024] = 512
    embedding_concurrency: int = Field(default=8, gt=0)

    # Chunking
    chunk_size: int = Field(default=3000, gt=0)
    chunk_overlap: int = Field(default=500, ge=0)

    # Timing, in seconds
    debounce_seconds: float = 10.0
    health_interval: float = 5.0

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


def load_config(path: str | Path = "vaultsearch.yaml") -> AppConfig:
    """
    Load application configuration from file.

    Args:
        path: Path to config file

    Returns:
        AppConfig instance, defaults when the file does not exist
    """
    path = Path(path)

    if not path.exists():
        return AppConfig()

    return AppConfig.from_file(path)
