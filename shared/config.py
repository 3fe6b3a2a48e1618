"""
Shared configuration management for the rate limit hook service.
"""

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    log_json: bool = Field(default=True)

    # External services
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_socket_timeout: float = Field(default=1.0)

    # Observability
    enable_tracing: bool = Field(default=False)
    otel_exporter: Optional[str] = Field(default=None)
    enable_console_tracing: bool = Field(default=False)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


class RateLimitServiceConfig(ServiceConfig):
    """Settings for the rate limit hook service."""

    config_path: str = Field(
        default="config",
        validation_alias=AliasChoices("HASURA_DDN_PLUGIN_CONFIG_PATH", "RATE_LIMIT_CONFIG_PATH", "config_path"),
    )
    unavailable_status_code: int = Field(default=500, ge=400, le=599)
    health_check_interval: float = Field(default=5.0, gt=0)
    key_prefix: str = Field(default="")


def get_config(service_name: str, port: int) -> RateLimitServiceConfig:
    """Get configuration for the rate limit service."""
    return RateLimitServiceConfig(service_name=service_name, port=port)
