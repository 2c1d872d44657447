from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PARTITION_SIZE = 30_000
DEFAULT_SEARCH_TOKENIZATION_INTERVAL = 1  # hours


class Settings(BaseSettings):
    app_env: str = "development"
    database_url: str = "sqlite+aiosqlite:///./events.db"
    read_database_url: str | None = None
    redis_url: str = "redis://localhost:6379/0"

    event_partition_size: int = DEFAULT_PARTITION_SIZE
    default_per_page: int = 20
    search_tokenization_interval: int = DEFAULT_SEARCH_TOKENIZATION_INTERVAL

    cors_origins: List[str] = ["*"]

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    @field_validator("read_database_url", mode="before")
    @classmethod
    def _empty_str_to_none(cls, value: object) -> object:
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @field_validator("event_partition_size")
    @classmethod
    def _positive_partition(cls, value: int) -> int:
        if value < 1:
            raise ValueError("event_partition_size must be positive")
        return value

    def get_read_database_url(self) -> str:
        return self.read_database_url or self.database_url


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
