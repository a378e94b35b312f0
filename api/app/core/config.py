from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "channelboard-api"
    environment: str = "dev"
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    database_auto_migrate: bool = False
    admin_secret_a: str | None = None
    admin_secret_b: str | None = None
    admin_cookie_name: str = "admin_session"
    admin_session_ttl_hours: int = 24 * 7
    visitor_cookie_name: str = "visitor_id"
    visitor_cookie_max_age_seconds: int = 365 * 24 * 60 * 60
    cookie_secure: bool = False
    boost_cooldown_seconds: int = 15 * 60
    channel_initial_rank: Literal["epoch", "now"] = "epoch"
    channel_default_name: str = "WhatsApp Channel"
    metadata_fetch_timeout_seconds: float = 10.0
    metadata_user_agent: str = "channelboard-metadata-fetcher/1.0"
    cors_allow_origins: list[str] = ["http://localhost:5173"]
    otel_enabled: bool = True
    otel_service_name: str = "channelboard-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="CB_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
