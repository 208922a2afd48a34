"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Conversation memory configuration. All values come from environment variables."""

    # Database
    database_path: Path = Field(default=Path("data/memory.db"))

    # Turso (hosted libSQL): overrides database_path when set
    turso_database_url: str = Field(default="")
    turso_auth_token: str = Field(default="")

    # Anthropic (summarization)
    anthropic_api_key: str = Field(default="")
    summary_model: str = Field(default="claude-haiku-4-5-20251001")
    summary_max_tokens: int = Field(default=300)
    summary_timeout_seconds: float = Field(default=30.0)

    # Recency cache
    recency_cache_ttl_seconds: float = Field(default=5.0)

    # Summarization trigger
    summary_threshold: int = Field(default=15)

    # Context assembly
    context_token_limit: int = Field(default=3000)
    context_recent_limit: int = Field(default=8)
    context_pin_limit: int = Field(default=5)
    context_summary_limit: int = Field(default=3)
    context_message_floor: int = Field(default=3)
    chars_per_token: int = Field(default=4)

    # Default importance for memory artifacts
    default_summary_importance: float = Field(default=0.7)
    default_pin_importance: float = Field(default=0.8)

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)


settings = Settings()
