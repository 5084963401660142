"""
Shared configuration management for the Eiga rooms service.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="EIGA_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = "local"
    log_level: str = "info"

    # Cache store
    cache_backend: str = Field(default="redis", pattern="^(redis|memory)$")
    redis_url: str = "redis://localhost:6379/0"
    cache_namespace: str = "eiga"

    # TTLs in seconds
    cache_default_ttl: int = Field(default=15 * 60, gt=0)
    cache_long_ttl: int = Field(default=60 * 60, gt=0)
    cache_short_ttl: int = Field(default=5 * 60, gt=0)

    # Backend-as-a-service (PostgREST)
    supabase_url: str = "http://localhost:54321"
    supabase_key: Optional[str] = None

    # Movie metadata
    tmdb_base_url: str = "https://api.themoviedb.org/3"
    tmdb_access_token: Optional[str] = None
    tmdb_language: str = "en-US"
    tmdb_region: str = "IN"

    http_timeout: float = 10.0


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
