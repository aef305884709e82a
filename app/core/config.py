"""Application configuration using Pydantic settings."""

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central application configuration."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    app_name: str = "Product Image Processor"
    environment: str = "development"
    debug: bool = True

    host: str = "0.0.0.0"
    port: int = 4000

    api_v1_prefix: str = "/api"
    cors_allowed_origins: List[str] = ["*"]

    database_url: str = "sqlite:///./image_processor.db"
    redis_url: str = "redis://localhost:6379/0"

    celery_broker_url: str | None = None
    celery_result_backend: str | None = None
    celery_always_eager: bool = False
    task_soft_time_limit_seconds: int = 55 * 60
    task_time_limit_seconds: int = 60 * 60

    media_root: str = "./media"
    public_base_url: str = "http://localhost:4000"

    image_quality: int = 50
    fetch_timeout_seconds: float = 60.0

    webhook_url: Optional[str] = None
    webhook_timeout_seconds: float = 10.0

    failure_mode: Literal["fail_fast", "isolate"] = "fail_fast"
    orphan_grace_seconds: int = 600


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


settings = get_settings()
