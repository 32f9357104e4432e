from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings loaded from environment variables with JSONAPI_ prefix."""

    # Transport
    base_url: str = "http://localhost:8000"
    timeout: float = 30.0
    # Wire format
    content_type: str = "application/vnd.api+json"
    jsonapi_version: str = "1.0"

    model_config = SettingsConfigDict(env_prefix="JSONAPI_", env_file=".env")


@lru_cache
def get_settings() -> Settings:
    """Return cached client settings instance."""
    return Settings()
