from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from fastapi import Depends
from typing_extensions import Annotated


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite+aiosqlite:///./tasks.db"
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    redis_dsn: str = "redis://localhost:6379/0"
    redis_pool_size: int = 5
    redis_connect_timeout_seconds: float = 5.0
    redis_socket_timeout_seconds: float = 5.0
    # reconnect policy: min(attempt * step, cap), at most max_retries attempts
    redis_max_retries: int = 3
    redis_backoff_step_seconds: float = 0.05
    redis_backoff_cap_seconds: float = 0.5

    cache_namespace: str = "taskcache:"
    cache_ttl_seconds: int = Field(default=120, gt=0)


@lru_cache
def get_settings() -> Settings:
    return Settings()


SettingsDep = Annotated[Settings, Depends(get_settings)]
