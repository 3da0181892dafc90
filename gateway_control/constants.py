"""
Constants for the gateway control plane.

This module centralizes the magic strings and numeric defaults used
throughout the package to keep them consistent.
"""

from enum import Enum


class QueueName(str, Enum):
    """Standard queue names used by the control plane."""

    LOGS = "logs-queue"
    AUDIT = "audit-queue"


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentVariable(str, Enum):
    """Standard environment variable names."""

    AZURE_STORAGE_CONNECTION = "AzureWebJobsStorage"
    APP_ENV = "APP_ENV"
    LOG_LEVEL = "LOG_LEVEL"
    DEBUG = "DEBUG"
    MASTER_API_KEY = "AUTHENTICATION_API_KEY"
    SESSION_SECRET = "JWT_SECRET"
    SAVE_INSTANCE_DATA = "DATABASE_SAVE_DATA_INSTANCE"
    ENABLE_LOGS_QUEUE = "ENABLE_LOGS_QUEUE"
    ENABLE_AUDIT_QUEUE = "ENABLE_AUDIT_QUEUE"
    EMAIL_API_KEY = "RESEND_API_KEY"
    EMAIL_FROM = "FROM_EMAIL"
    SERVER_URL = "SERVER_URL"


class HeaderName(str, Enum):
    """HTTP headers carrying credentials."""

    API_KEY = "apikey"
    AUTHORIZATION = "Authorization"
    CORRELATION_ID = "x-correlation-id"


class LogContextKey(str, Enum):
    """Standard keys for logging context."""

    OPERATION_ID = "operation_id"
    CORRELATION_ID = "correlation_id"
    TENANT_ID = "tenant_id"
    INSTANCE_ID = "instance_id"
    PRINCIPAL_KIND = "principal_kind"
    DURATION_MS = "duration_ms"
    STATUS = "status"
    ERROR_CODE = "error_code"


BEARER_PREFIX = "Bearer "


class Limits:
    """System limits and thresholds."""

    MIN_PASSWORD_LENGTH = 8
    MIN_HANDLE_LENGTH = 3
    MAX_HANDLE_LENGTH = 20
    DEFAULT_EXPIRING_WINDOW_DAYS = 7
    AUDIT_RETENTION_DAYS = 90
    DEFAULT_AUDIT_PAGE_SIZE = 100
    API_SECRET_RANDOM_BYTES = 24
    OPAQUE_TOKEN_RANDOM_BYTES = 32


class Timeouts:
    """Timeout values in seconds."""

    SESSION_TTL = 7 * 24 * 60 * 60
    VERIFICATION_TOKEN_TTL = 24 * 60 * 60
    PASSWORD_RESET_TTL = 60 * 60
    EXTERNAL_API_CALL = 10
