"""
Centralized configuration management for the gateway control plane.

Configuration is read from environment variables and validated with
Pydantic. Services receive the sub-configuration they need; the global
accessors below exist for the composition root and for tests.
"""

import os
import secrets
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .constants import EnvironmentVariable, Limits, LogLevel, QueueName, Timeouts


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class QueueConfig(BaseModel):
    """Queue configuration for Azure Storage Queues."""

    connection_string: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.AZURE_STORAGE_CONNECTION.value, ""),
        description="Azure Storage connection string",
    )
    logs_queue_name: str = Field(default=QueueName.LOGS.value, description="Log shipping queue")
    audit_queue_name: str = Field(default=QueueName.AUDIT.value, description="Audit event queue")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.LOG_LEVEL.value, LogLevel.INFO.value),
        description="Logging level",
    )

    @field_validator("level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {level.value for level in LogLevel}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class AuthConfig(BaseModel):
    """Credential and session settings."""

    master_api_key: Optional[str] = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.MASTER_API_KEY.value) or None,
        description="Global administrator API key",
    )
    session_secret: Optional[str] = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.SESSION_SECRET.value) or None,
        description="HMAC secret used to sign session tokens",
    )
    session_ttl_seconds: int = Field(default=Timeouts.SESSION_TTL, gt=0)
    api_secret_prefix: str = Field(default="gw_", min_length=1)
    verification_token_ttl_seconds: int = Field(default=Timeouts.VERIFICATION_TOKEN_TTL, gt=0)
    password_reset_ttl_seconds: int = Field(default=Timeouts.PASSWORD_RESET_TTL, gt=0)
    trial_days: int = Field(default=4, gt=0, description="Length of the post-verification trial")
    password_hash_rounds: int = Field(default=12, ge=4, le=31, description="bcrypt cost factor")
    min_password_length: int = Field(default=Limits.MIN_PASSWORD_LENGTH, ge=1)

    def resolve_session_secret(self) -> str:
        """
        Return the configured signing secret, generating a per-process one if absent.

        A generated secret invalidates every session on restart, so a warning
        is logged the first time it is created.
        """
        if not self.session_secret:
            from .utils.logger import get_logger

            get_logger().warning(
                "JWT_SECRET is not set; using a random per-process session secret",
                extra={"env_var": EnvironmentVariable.SESSION_SECRET.value},
            )
            self.session_secret = secrets.token_hex(32)
        return self.session_secret


class EmailConfig(BaseModel):
    """Outbound email transport settings."""

    api_key: Optional[str] = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.EMAIL_API_KEY.value) or None,
        description="Email API key; previews are logged when missing",
    )
    api_url: str = Field(default="https://api.resend.com/emails")
    from_email: str = Field(
        default_factory=lambda: os.getenv(
            EnvironmentVariable.EMAIL_FROM.value, "Gateway <noreply@example.com>"
        )
    )
    app_url: str = Field(
        default_factory=lambda: os.getenv(
            EnvironmentVariable.SERVER_URL.value, "http://localhost:7071"
        ).rstrip("/")
    )
    timeout_seconds: int = Field(default=Timeouts.EXTERNAL_API_CALL, gt=0)


class FeatureFlags(BaseModel):
    """Feature flags for controlling control plane behavior."""

    persist_instance_data: bool = Field(
        default_factory=lambda: _env_flag(EnvironmentVariable.SAVE_INSTANCE_DATA.value),
        description="Allow reverse instance-token lookup when listing instances",
    )
    enable_logs_queue: bool = Field(
        default_factory=lambda: _env_flag(EnvironmentVariable.ENABLE_LOGS_QUEUE.value),
        description="Ship logs to an Azure Storage Queue",
    )
    enable_audit_queue: bool = Field(
        default_factory=lambda: _env_flag(EnvironmentVariable.ENABLE_AUDIT_QUEUE.value),
        description="Ship audit events to an Azure Storage Queue",
    )


class AppConfig(BaseModel):
    """Main application configuration."""

    environment: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.APP_ENV.value, "development"),
        description="Application environment",
    )
    debug: bool = Field(
        default_factory=lambda: _env_flag(EnvironmentVariable.DEBUG.value),
        description="Debug mode",
    )

    queue: QueueConfig = Field(default_factory=QueueConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    features: FeatureFlags = Field(default_factory=FeatureFlags)

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
