"""Configuration management using pydantic-settings."""
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Upstream FPL API
    fpl_api_base_url: str = "https://fantasy.premierleague.com/api"
    upstream_timeout_seconds: float = 20.0
    user_agent: str = "fpl-tools/1.0"

    # Snapshot cache
    # Store expiry is twice the TTL so stale data outlives its freshness window
    bootstrap_cache_key: str = "fpl:bootstrap:v1"
    cache_ttl_seconds: int = 3600

    # Key-value store (Vercel KV / Upstash REST). Unset = in-process store.
    kv_rest_api_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("KV_REST_API_URL", "UPSTASH_REDIS_REST_URL"),
    )
    kv_rest_api_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("KV_REST_API_TOKEN", "UPSTASH_REDIS_REST_TOKEN"),
    )

    # Rate limiting
    rate_limit_requests: int = 60
    rate_limit_window_seconds: int = 60

    # Access control
    mcp_admin_token: Optional[str] = None
    cron_secret: Optional[str] = None
    cors_allow_origin: str = "*"

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
