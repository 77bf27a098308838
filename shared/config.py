"""
Shared configuration management for the JWT gateway auth service.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="ACCESS_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = "local"
    log_level: str = "info"

    # Backing store; an empty DSN selects the in-memory store
    postgres_dsn: str = ""
    postgres_min_pool_size: int = 2
    postgres_max_pool_size: int = 10


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, config_class: Optional[type] = None) -> ServiceConfig:
    """Get configuration for a specific service."""
    cls = config_class or ServiceConfig
    return cls(service_name=service_name, port=port)
