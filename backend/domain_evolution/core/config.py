"""Runtime configuration helpers.

Classes:
    Settings: Pydantic settings model capturing environment-driven defaults.

Functions:
    get_settings(): Return a cached Settings instance for dependency injection.
"""

from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Domain Evolution API"
    database_url: str = "sqlite+aiosqlite:///./data/domain_evolution.db"
    openai_api_key: SecretStr | None = None
    openai_base_url: str | None = None
    openai_chat_model: str = "gpt-4.1-mini"
    openai_embedding_model: str = "text-embedding-3-small"
    generation_temperature: float = 0.7
    extraction_temperature: float = 0.2
    embedding_max_attempts: int = Field(default=3, ge=1)
    capture_confidence_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    cluster_default_min_size: int = Field(default=3, ge=1)
    cluster_default_threshold: float = Field(default=0.75, ge=-1.0, le=1.0)
    dynamic_table_prefix: str = "dynamic_"
    pending_list_limit: int = 100
    log_level: str = "INFO"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
