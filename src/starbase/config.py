from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="STARBASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Fetch
    cache_dir: Path = Path(".repo-cache")
    git_base_url: str = "https://github.com"
    clone_timeout: float = Field(default=60.0, gt=0)
    checkout_timeout: float = Field(default=30.0, gt=0)

    # Build
    default_sparse_dir: str = "src"
    max_files: int = Field(default=600, ge=1)
    resolve_concurrency: int = Field(default=8, ge=1)


def get_settings() -> Settings:
    return Settings()
