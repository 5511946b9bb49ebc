"""
Centralized configuration management for the credential vault.

This module provides a unified configuration system with support for:
- Environment variables
- Provider client credentials
- Runtime configuration
- Validation using Pydantic
"""

import os
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator

from .constants import EnvironmentVariable, LogLevel, ServiceName, Timeouts


def _env(name: EnvironmentVariable, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(name.value, default)


def _env_int(name: EnvironmentVariable, default: int) -> int:
    return int(os.getenv(name.value, str(default)))


class QueueConfig(BaseModel):
    """Queue configuration for Azure Storage Queues."""

    connection_string: str = Field(
        default_factory=lambda: _env(EnvironmentVariable.AZURE_STORAGE_CONNECTION, ""),
        description="Azure Storage connection string",
    )
    logs_queue_name: str = Field(default="logs-queue", description="Log shipping queue name")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default_factory=lambda: _env(EnvironmentVariable.LOG_LEVEL, LogLevel.INFO.value),
        description="Logging level",
    )
    enable_queue_logs: bool = Field(
        default_factory=lambda: _env(EnvironmentVariable.ENABLE_QUEUE_LOGS, "false").lower()
        == "true",
        description="Ship logs to the Azure Storage queue",
    )

    @field_validator("level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {level.value for level in LogLevel}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class SecurityConfig(BaseModel):
    """Secret material used by the vault itself."""

    encryption_key: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.CREDENTIAL_ENCRYPTION_KEY),
        description="AES-256 key as 64 hex characters",
    )
    auth_token_secret: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.AUTH_TOKEN_SECRET),
        description="HMAC secret used to verify caller bearer tokens",
    )

    def __repr__(self) -> str:
        return "SecurityConfig(encryption_key='***', auth_token_secret='***')"


class OAuthConfig(BaseModel):
    """OAuth flow timing and redirect settings."""

    frontend_url: str = Field(
        default_factory=lambda: _env(EnvironmentVariable.FRONTEND_URL, "https://myriagon.app"),
        description="Frontend origin hosting the OAuth callback route",
    )
    state_ttl_seconds: int = Field(
        default_factory=lambda: _env_int(
            EnvironmentVariable.OAUTH_STATE_TTL_SECONDS, Timeouts.OAUTH_STATE_TTL
        ),
        gt=0,
        description="Lifetime of an issued state token",
    )
    refresh_buffer_seconds: int = Field(
        default_factory=lambda: _env_int(
            EnvironmentVariable.TOKEN_REFRESH_BUFFER_SECONDS, Timeouts.TOKEN_REFRESH_BUFFER
        ),
        ge=0,
        description="Lookahead before expiry at which tokens are refreshed",
    )
    http_timeout_seconds: int = Field(
        default=Timeouts.HTTP_REQUEST, gt=0, description="Outbound provider HTTP timeout"
    )

    @field_validator("frontend_url")
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def callback_url(self) -> str:
        return f"{self.frontend_url}/oauth/callback"


class ProviderCredentialsConfig(BaseModel):
    """OAuth client credentials and platform API keys per provider."""

    google_client_id: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.GOOGLE_CLIENT_ID)
    )
    google_client_secret: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.GOOGLE_CLIENT_SECRET)
    )
    slack_client_id: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.SLACK_CLIENT_ID)
    )
    slack_client_secret: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.SLACK_CLIENT_SECRET)
    )
    notion_client_id: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.NOTION_CLIENT_ID)
    )
    notion_client_secret: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.NOTION_CLIENT_SECRET)
    )
    hubspot_client_id: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.HUBSPOT_CLIENT_ID)
    )
    hubspot_client_secret: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.HUBSPOT_CLIENT_SECRET)
    )
    stripe_client_id: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.STRIPE_CONNECT_CLIENT_ID)
    )
    stripe_secret_key: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.STRIPE_SECRET_KEY)
    )
    openai_api_key: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.OPENAI_API_KEY)
    )
    anthropic_api_key: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.ANTHROPIC_API_KEY)
    )

    def platform_keys(self) -> Dict[str, Optional[str]]:
        """Platform-owned API keys tenants may opt into instead of their own."""
        return {
            ServiceName.OPENAI.value: self.openai_api_key,
            ServiceName.ANTHROPIC.value: self.anthropic_api_key,
        }

    def __repr__(self) -> str:
        return "ProviderCredentialsConfig(***)"


class MirrorConfig(BaseModel):
    """Workflow engine credential API settings."""

    api_key: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.N8N_API_KEY),
        description="Workflow engine API key",
    )
    base_url: str = Field(
        default_factory=lambda: _env(
            EnvironmentVariable.N8N_BASE_URL, "https://api.n8n.cloud/api/v1"
        ),
        description="Workflow engine REST API base URL",
    )

    @field_validator("base_url")
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class RateLimitConfig(BaseModel):
    """Per-tenant fixed-window request limits."""

    enabled: bool = Field(default=True, description="Apply the per-tenant limiter")
    max_requests: int = Field(
        default_factory=lambda: _env_int(EnvironmentVariable.RATE_LIMIT_MAX_REQUESTS, 100),
        gt=0,
        description="Requests allowed per window",
    )
    window_seconds: int = Field(
        default_factory=lambda: _env_int(EnvironmentVariable.RATE_LIMIT_WINDOW_SECONDS, 60),
        gt=0,
        description="Window length in seconds",
    )


class AppConfig(BaseModel):
    """Main application configuration."""

    debug: bool = Field(
        default_factory=lambda: _env(EnvironmentVariable.DEBUG, "false").lower() == "true",
        description="Include error causes in HTTP error bodies",
    )

    # Sub-configurations
    queue: QueueConfig = Field(default_factory=QueueConfig, description="Queue configuration")
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    security: SecurityConfig = Field(
        default_factory=SecurityConfig, description="Security configuration"
    )
    oauth: OAuthConfig = Field(default_factory=OAuthConfig, description="OAuth configuration")
    providers: ProviderCredentialsConfig = Field(
        default_factory=ProviderCredentialsConfig, description="Provider client credentials"
    )
    mirror: MirrorConfig = Field(default_factory=MirrorConfig, description="Mirror configuration")
    rate_limit: RateLimitConfig = Field(
        default_factory=RateLimitConfig, description="Rate limit configuration"
    )

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create configuration from environment variables."""
        return cls()


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
