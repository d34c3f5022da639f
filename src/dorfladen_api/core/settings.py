from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "sqlite+aiosqlite:///./dorfladen.db"
    database_echo: bool = False
    redis_url: str = "redis://localhost:6379/0"
    celery_broker_url: str | None = None
    celery_result_backend: str | None = None
    celery_default_queue: str = "dorfladen-default"

    # Tracing
    tracing_enabled: bool = True
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_console_exporter: bool = False

    # Staff tooling (POS scanner, admin dashboard)
    staff_api_key: str = ""

    # Points ledger
    points_rate_setting_key: str = "points_per_euro"
    default_points_per_euro: float = Field(default=1.0, gt=0)
    claim_code_bytes: int = Field(default=18, ge=12, le=64)

    # Badge evaluation
    badge_evaluation_enabled: bool = True
    badge_task_queue: str = "badges"
    badge_task_soft_time_limit: int = Field(default=30, ge=1)
    badge_task_time_limit: int = Field(default=60, ge=1)
    badge_task_result_expires: int = Field(default=3600, ge=60)


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
