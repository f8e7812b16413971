"""
Shared configuration management for the Graph access layer.
"""

from typing import Optional

from pydantic import Field
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
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Identity provider (refresh grant)
    identity_authority_url: str = Field(default="https://login.microsoftonline.com")
    identity_tenant: str = Field(default="common")
    client_id: str = Field(default="")
    client_secret: str = Field(default="")
    oauth_scopes: str = Field(
        default=(
            "openid profile email offline_access Mail.ReadWrite Mail.Send "
            "Calendars.ReadWrite Tasks.ReadWrite Contacts.ReadWrite User.Read"
        )
    )

    # Remote provider API
    graph_base_url: str = Field(default="https://graph.microsoft.com/v1.0")
    request_timeout_seconds: float = Field(default=10.0)

    # Retry policy
    retry_max_retries: int = Field(default=3)
    retry_base_delay_seconds: float = Field(default=1.0)
    retry_max_delay_seconds: float = Field(default=32.0)
    retry_jitter_max_seconds: float = Field(default=1.0)
    retry_attempt_timeout_seconds: Optional[float] = Field(default=None)
    retry_time_budget_seconds: Optional[float] = Field(default=None)

    # Credential lifecycle
    token_refresh_safety_margin_seconds: float = Field(default=120.0)

    # Directory caches
    folder_cache_ttl_seconds: float = Field(default=300.0)
    address_cache_ttl_seconds: float = Field(default=300.0)

    @property
    def token_endpoint(self) -> str:
        """Token endpoint for the configured authority and tenant."""
        authority = self.identity_authority_url.rstrip("/")
        return f"{authority}/{self.identity_tenant}/oauth2/v2.0/token"


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)
