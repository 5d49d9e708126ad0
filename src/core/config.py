from functools import lru_cache
from typing import Any

from pydantic import Field, RedisDsn, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "BeyondWork Leaderboards"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Database (postgresql+asyncpg in production, sqlite+aiosqlite in tests)
    database_url: str
    database_pool_size: int = 5
    database_max_overflow: int = 10

    # Redis
    redis_url: RedisDsn

    # Identity collaborator (turns a bearer credential into a caller identity)
    identity_verify_url: str
    identity_timeout_seconds: float = 5.0

    # Leaderboard aggregation
    leaderboard_points_per_event: int = 10
    leaderboard_max_ranking_size: int | None = Field(100, ge=0)  # None or 0 = no cap
    leaderboard_empty_partition_policy: str = "skip"  # "skip" or "publish"
    leaderboard_run_timeout_seconds: float = 600.0
    leaderboard_lock_name: str = "leaderboards:aggregation"
    leaderboard_lock_lease_seconds: int = 900
    leaderboard_schedule_hour: int = 0  # UTC
    leaderboard_schedule_minute: int = 0
    leaderboard_trigger_roles: list[str] = []  # empty = any authenticated caller

    # Profile stats credited when an event completes
    event_attendance_points: int = 10
    event_hosting_points: int = 5

    # Job processing
    celery_broker_url: str | None = None
    celery_result_backend: str | None = None
    job_default_timeout: int = 3600  # 1 hour

    # API settings
    api_pagination_default_limit: int = 50
    api_pagination_max_limit: int = 100

    @field_validator("celery_broker_url", "celery_result_backend", mode="before")
    @classmethod
    def set_celery_urls(cls, v: str | None, info: Any) -> str | None:
        if v is None and "redis_url" in info.data:
            return str(info.data["redis_url"])
        return v

    @field_validator("leaderboard_max_ranking_size", mode="before")
    @classmethod
    def blank_ranking_size_means_no_cap(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("leaderboard_empty_partition_policy")
    @classmethod
    def check_empty_partition_policy(cls, v: str) -> str:
        v = v.lower()
        if v not in ("skip", "publish"):
            raise ValueError("leaderboard_empty_partition_policy must be 'skip' or 'publish'")
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
