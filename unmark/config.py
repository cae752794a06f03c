"""
Configuration

Environment-based settings for asset lookup and batch output naming.
Variables are read with the ``UNMARK_`` prefix, e.g. ``UNMARK_ASSETS_DIR``.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Package settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="UNMARK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Directory holding bg_48.png / bg_96.png; None = packaged assets
    assets_dir: Optional[Path] = None

    # Batch output naming: <stem><output_suffix>.png
    output_suffix: str = "_unwatermarked"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
