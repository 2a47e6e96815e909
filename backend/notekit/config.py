"""Typed settings configuration - single source of truth."""

from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite+aiosqlite:///./notekit.db"

    # Text generation (any OpenAI-compatible chat completion endpoint)
    openai_api_key: SecretStr | None = None
    openai_base_url: str | None = None
    openai_model: str = "gpt-4o-mini"

    # Generation budgets
    llm_timeout_seconds: float = 30.0
    llm_temperature: float = 0.7
    llm_max_tokens: int = 4096
    cleanup_temperature: float = 0.5
    cleanup_max_tokens: int = 8192
    metadata_max_tokens: int = 512

    # Consolidation
    min_chunk_chars: int = 10

    # Compilation
    compile_dedup_window_seconds: int = 10
    max_compiled_tags: int = 5

    # Metadata generation
    transcript_preview_chars: int = 2000


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
