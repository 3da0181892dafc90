"""
Consolidated exception system with error codes, context, and correlation support.

Every failure the control plane reports derives from BaseError, which logs
itself on construction and renders to the JSON error body used by the HTTP
surface.
"""

import threading
import traceback
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

_thread_local = threading.local()


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # System errors (1xxx)
    INTERNAL_ERROR = "1000"
    DATABASE_ERROR = "1001"
    CONFIGURATION_ERROR = "1003"

    # Validation errors (2xxx)
    VALIDATION_FAILED = "2000"
    INVALID_FORMAT = "2001"
    MISSING_REQUIRED = "2002"

    # Resource errors (3xxx)
    NOT_FOUND = "3000"
    CONFLICT = "3002"
    EXPIRED = "3004"

    # Business logic errors (4xxx)
    INVALID_STATE_TRANSITION = "4001"
    QUOTA_EXCEEDED = "4002"
    PERMISSION_DENIED = "4003"
    AUTHENTICATION_MISSING = "4005"
    AUTHENTICATION_INVALID = "4006"

    # External service errors (5xxx)
    EXTERNAL_API_ERROR = "5002"


class BaseError(Exception):
    """Base exception with context, error codes, logging and an optional cause."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context: Any,
    ):
        """
        Initialize base error with rich context.

        Args:
            message: Human-readable error message
            error_code: Standardized error code from ErrorCode enum
            status_code: HTTP status code for API responses
            cause: Original exception that caused this error
            **context: Additional context information
        """
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.error_id = str(uuid.uuid4())
        self.context = context

        correlation_id = get_correlation_id()
        if correlation_id:
            self.context["correlation_id"] = correlation_id

        self.context["error_id"] = self.error_id

        if cause:
            self.context["cause"] = {
                "type": type(cause).__name__,
                "message": str(cause),
                "traceback": traceback.format_exception(type(cause), cause, cause.__traceback__),
            }

        self._log_error()

        super().__init__(message)

    def _log_error(self) -> None:
        """Log error with appropriate level based on status code."""
        # Import logger here to avoid circular dependency at module load time
        from .utils.logger import get_logger

        logger = get_logger()

        log_data = {
            "error_id": self.error_id,
            "error_code": self.error_code.value,
            "status_code": self.status_code,
            "error_message": self.message,
            "context": {k: v for k, v in self.context.items() if k not in ["cause", "traceback"]},
        }

        if "correlation_id" in self.context:
            log_data["correlation_id"] = self.context["correlation_id"]

        if self.status_code >= 500:
            logger.error(
                f"Error {self.error_code.name}: {self.message}", extra=log_data, exc_info=self.cause
            )
        elif self.status_code >= 400:
            logger.warning(f"Client error {self.error_code.name}: {self.message}", extra=log_data)
        else:
            logger.info(f"Error {self.error_code.name}: {self.message}", extra=log_data)

    def to_dict(
        self, include_cause: bool = False, include_traceback: bool = False
    ) -> Dict[str, Any]:
        """
        Convert to dict for API responses.

        Args:
            include_cause: Include cause information (useful for debugging)
            include_traceback: Include full traceback (only in debug mode)

        Returns:
            Dictionary representation suitable for JSON serialization
        """
        result: Dict[str, Any] = {
            "error": {
                "id": self.error_id,
                "code": self.error_code.value,
                "type": self.error_code.name,
                "message": self.message,
                "timestamp": self.timestamp,
                "context": {
                    k: v
                    for k, v in self.context.items()
                    if k not in ["cause", "error_id", "correlation_id"]
                },
            }
        }

        if "correlation_id" in self.context:
            result["error"]["correlation_id"] = self.context["correlation_id"]

        if include_cause and "cause" in self.context:
            result["error"]["cause"] = {
                "type": self.context["cause"]["type"],
                "message": self.context["cause"]["message"],
            }
            if include_traceback:
                result["error"]["cause"]["traceback"] = self.context["cause"]["traceback"]

        return result

    def add_context(self, **kwargs: Any) -> "BaseError":
        """
        Add additional context to the error (fluent interface).

        Returns:
            Self for method chaining
        """
        self.context.update(kwargs)
        return self


# Layer-specific base exceptions
class ServiceError(BaseError):
    """Service layer errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        operation: Optional[str] = None,
        cause: Optional[Exception] = None,
        **context,
    ):
        """Initialize service error with operation context."""
        if operation:
            context["operation"] = operation
        super().__init__(message, error_code, 500, cause, **context)


class ValidationError(BaseError):
    """Request validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        cause: Optional[Exception] = None,
        **context,
    ):
        """Initialize validation error with field context."""
        if field:
            context["field"] = field
        super().__init__(message, error_code, 400, cause, **context)


class ExternalServiceError(BaseError):
    """External service integration errors."""

    def __init__(
        self,
        message: str,
        service_name: str,
        error_code: ErrorCode = ErrorCode.EXTERNAL_API_ERROR,
        cause: Optional[Exception] = None,
        **context,
    ):
        context["service_name"] = service_name
        super().__init__(message, error_code, 502, cause, **context)


# ==================== AUTHENTICATION / AUTHORIZATION ====================


class AuthenticationMissingError(BaseError):
    """Raised when a request presents no credential at all."""

    def __init__(self, message: str = "Authentication required", **kwargs):
        super().__init__(
            message=message, error_code=ErrorCode.AUTHENTICATION_MISSING, status_code=401, **kwargs
        )


class AuthenticationInvalidError(BaseError):
    """Raised when a presented credential matches nothing."""

    def __init__(self, message: str = "Invalid credentials", **kwargs):
        super().__init__(
            message=message, error_code=ErrorCode.AUTHENTICATION_INVALID, status_code=401, **kwargs
        )


class SessionInvalidError(AuthenticationInvalidError):
    """Raised for any bearer session that cannot be honoured."""

    def __init__(self, message: str = "Session is invalid or has expired", **kwargs):
        super().__init__(message=message, **kwargs)


class AuthorizationDeniedError(BaseError):
    """Raised when an authenticated principal lacks the required rights."""

    def __init__(self, message: str = "Permission denied", **kwargs):
        super().__init__(
            message=message, error_code=ErrorCode.PERMISSION_DENIED, status_code=403, **kwargs
        )


class ConfigurationError(BaseError):
    """Raised when the deployment is missing required configuration."""

    def __init__(self, message: str = "Configuration error", **kwargs):
        super().__init__(
            message=message, error_code=ErrorCode.CONFIGURATION_ERROR, status_code=500, **kwargs
        )


# ==================== RESOURCE / LIFECYCLE ====================


class NotFoundError(BaseError):
    """Raised when a requested record does not exist."""

    def __init__(self, message: str = "Resource not found", **kwargs):
        super().__init__(message=message, error_code=ErrorCode.NOT_FOUND, status_code=404, **kwargs)


class ConflictError(BaseError):
    """Raised when a write would violate a uniqueness rule."""

    def __init__(self, message: str = "Resource already exists", **kwargs):
        super().__init__(message=message, error_code=ErrorCode.CONFLICT, status_code=409, **kwargs)


class ExpiredResourceError(BaseError):
    """Raised when a subscription or token window has elapsed."""

    def __init__(self, message: str = "Resource has expired", **kwargs):
        super().__init__(message=message, error_code=ErrorCode.EXPIRED, status_code=403, **kwargs)


class QuotaExceededError(BaseError):
    """Raised when a tenant is at its instance quota."""

    def __init__(self, message: str = "Instance quota exceeded", **kwargs):
        super().__init__(
            message=message, error_code=ErrorCode.QUOTA_EXCEEDED, status_code=403, **kwargs
        )


class InvalidStateTransitionError(BaseError):
    """Raised when a subscription is asked to make a disallowed move."""

    def __init__(
        self,
        message: str = "Invalid state transition",
        from_status: Optional[str] = None,
        to_status: Optional[str] = None,
        **kwargs,
    ):
        if from_status:
            kwargs["from_status"] = from_status
        if to_status:
            kwargs["to_status"] = to_status
        super().__init__(
            message=message,
            error_code=ErrorCode.INVALID_STATE_TRANSITION,
            status_code=409,
            **kwargs,
        )


# Factory functions for common error patterns
def not_found(resource_type: str, cause: Optional[Exception] = None, **identifiers) -> NotFoundError:
    """
    Factory for not found errors.

    Args:
        resource_type: Type of resource (e.g., 'TenantAccount', 'Subscription')
        cause: Original exception if any
        **identifiers: Resource identifiers (e.g., tenant_id='123')

    Returns:
        Configured NotFoundError instance
    """
    id_parts = [f"{k}={v}" for k, v in identifiers.items()]
    message = f"{resource_type} not found"
    if id_parts:
        message += f": {', '.join(id_parts)}"

    return NotFoundError(message, cause=cause, resource_type=resource_type, **identifiers)


def duplicate(resource_type: str, cause: Optional[Exception] = None, **identifiers) -> ConflictError:
    """
    Factory for duplicate resource errors.

    Args:
        resource_type: Type of resource
        cause: Original exception if any
        **identifiers: Resource identifiers

    Returns:
        Configured ConflictError instance
    """
    id_parts = [f"{k}={v}" for k, v in identifiers.items()]
    message = f"Duplicate {resource_type}"
    if id_parts:
        message += f": {', '.join(id_parts)}"

    return ConflictError(message, cause=cause, resource_type=resource_type, **identifiers)


def permission_denied(
    action: str, resource: str, cause: Optional[Exception] = None, **context
) -> AuthorizationDeniedError:
    """
    Factory for permission denied errors.

    Args:
        action: Action that was denied (e.g., 'renew', 'delete')
        resource: Resource being accessed
        cause: Original exception if any
        **context: Additional context

    Returns:
        Configured AuthorizationDeniedError instance
    """
    return AuthorizationDeniedError(
        f"Permission denied: {action} on {resource}",
        cause=cause,
        action=action,
        resource=resource,
        **context,
    )


# Correlation ID management
def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current thread."""
    _thread_local.correlation_id = correlation_id


def get_correlation_id() -> Optional[str]:
    """Get the current thread's correlation ID."""
    return getattr(_thread_local, "correlation_id", None)


def clear_correlation_id() -> None:
    """Clear the current thread's correlation ID."""
    if hasattr(_thread_local, "correlation_id"):
        delattr(_thread_local, "correlation_id")
