"""
Consolidated exception system with error codes, context, and correlation support.

This module provides a unified exception hierarchy for the vault, with
automatic logging and correlation ID tracking. Every error carries the HTTP
status the Functions surface should answer with.
"""

import threading
import traceback
import uuid
from enum import Enum
from typing import Any, Dict, Optional

_thread_local = threading.local()


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # System errors (1xxx)
    INTERNAL_ERROR = "1000"
    DATABASE_ERROR = "1001"
    CONFIGURATION_ERROR = "1003"
    DECRYPTION_FAILED = "1005"

    # Validation errors (2xxx)
    VALIDATION_FAILED = "2000"
    INVALID_FORMAT = "2001"
    MISSING_REQUIRED = "2002"

    # Resource errors (3xxx)
    CONFLICT = "3002"
    EXPIRED = "3004"
    LIMIT_EXCEEDED = "3005"
    NOT_CONNECTED = "3006"

    # Business logic errors (4xxx)
    AUTHENTICATION_FAILED = "4005"
    UNSUPPORTED_SERVICE = "4006"
    TENANT_MISMATCH = "4007"
    RECONNECT_REQUIRED = "4008"

    # External service errors (5xxx)
    EXTERNAL_API_ERROR = "5002"
    EXCHANGE_FAILED = "5005"
    REFRESH_FAILED = "5006"
    MIRROR_FAILED = "5007"


class BaseError(Exception):
    """Base exception with context, error codes, logging, and error chaining."""

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

        # Lazy import keeps the logger out of module load order
        self._log_error()

        super().__init__(message)

    def _log_error(self) -> None:
        """Log error with appropriate level based on status code."""
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
                f"Error {self.error_code.value}: {self.message}", extra=log_data, exc_info=self.cause
            )
        elif self.status_code >= 400:
            logger.warning(f"Client error {self.error_code.value}: {self.message}", extra=log_data)
        else:
            logger.info(f"Error {self.error_code.value}: {self.message}", extra=log_data)

    def to_dict(self, include_cause: bool = False) -> Dict[str, Any]:
        """
        Response body for the HTTP surface.

        Args:
            include_cause: Add the type and message of the wrapped exception

        Returns:
            ``{"error", "code", "error_id"}`` plus the correlation id when one is set
        """
        result: Dict[str, Any] = {
            "error": self.message,
            "code": self.error_code.value,
            "error_id": self.error_id,
        }
        if "correlation_id" in self.context:
            result["correlation_id"] = self.context["correlation_id"]
        if include_cause and "cause" in self.context:
            result["cause"] = {
                "type": self.context["cause"]["type"],
                "message": self.context["cause"]["message"],
            }
        return result


# Layer-specific base exceptions
class RepositoryError(BaseError):
    """Repository layer errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.DATABASE_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context,
    ):
        """Initialize repository error with database context."""
        super().__init__(message, error_code, status_code, cause, **context)


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
    """Validation errors."""

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
        status_code: int = 502,
        cause: Optional[Exception] = None,
        **context,
    ):
        """Initialize external service error with service context."""
        context["service_name"] = service_name
        super().__init__(message, error_code, status_code, cause, **context)


# ==================== VAULT-SPECIFIC EXCEPTIONS ====================


class ConfigError(BaseError):
    """Raised when required configuration or key material is missing or malformed."""

    def __init__(self, message: str = "Invalid configuration", **kwargs):
        super().__init__(
            message=message, error_code=ErrorCode.CONFIGURATION_ERROR, status_code=500, **kwargs
        )


class AuthError(BaseError):
    """Raised when the caller cannot be authenticated."""

    def __init__(self, message: str = "Unauthorized", **kwargs):
        super().__init__(
            message=message, error_code=ErrorCode.AUTHENTICATION_FAILED, status_code=401, **kwargs
        )


class RateLimitError(BaseError):
    """Raised when a tenant exceeds its request limit for the current window."""

    def __init__(self, message: str = "Rate limit exceeded", **kwargs):
        super().__init__(
            message=message, error_code=ErrorCode.LIMIT_EXCEEDED, status_code=429, **kwargs
        )


class UnsupportedServiceError(BaseError):
    """Raised when a service has no adapter for the requested capability."""

    def __init__(self, message: str, service_name: Optional[str] = None, **kwargs):
        if service_name:
            kwargs["service_name"] = service_name
        super().__init__(
            message=message, error_code=ErrorCode.UNSUPPORTED_SERVICE, status_code=400, **kwargs
        )


class StateInvalidOrExpiredError(BaseError):
    """Raised when an OAuth state token cannot be consumed. The user must restart the flow."""

    reason = "invalid"

    def __init__(self, message: str = "Invalid or expired state token", **kwargs):
        kwargs.setdefault("reason", self.reason)
        super().__init__(message=message, error_code=ErrorCode.EXPIRED, status_code=400, **kwargs)


class StateNotFoundError(StateInvalidOrExpiredError):
    """State token unknown or already consumed."""

    reason = "not_found"

    def __init__(self, message: str = "Invalid or expired state token", **kwargs):
        super().__init__(message=message, **kwargs)


class StateExpiredError(StateInvalidOrExpiredError):
    """State token existed but its expiry has passed."""

    reason = "expired"

    def __init__(self, message: str = "State token expired. Please try again.", **kwargs):
        super().__init__(message=message, **kwargs)


class TenantMismatchError(BaseError):
    """Raised when the tenant completing an exchange is not the tenant that initiated it."""

    def __init__(self, message: str = "Tenant mismatch", **kwargs):
        super().__init__(
            message=message, error_code=ErrorCode.TENANT_MISMATCH, status_code=403, **kwargs
        )


class ExchangeError(ExternalServiceError):
    """Raised when a provider rejects an authorization code exchange."""

    def __init__(
        self,
        message: str,
        provider: str,
        http_status: Optional[int] = None,
        body: Optional[str] = None,
        cause: Optional[Exception] = None,
        **context,
    ):
        self.provider = provider
        self.http_status = http_status
        self.body = body
        super().__init__(
            message,
            service_name=provider,
            error_code=ErrorCode.EXCHANGE_FAILED,
            status_code=502,
            cause=cause,
            provider=provider,
            http_status=http_status,
            **context,
        )


class DecryptionError(BaseError):
    """Raised when stored token material fails authentication or cannot be parsed."""

    def __init__(self, message: str = "Failed to decrypt credential tokens", **kwargs):
        super().__init__(
            message=message, error_code=ErrorCode.DECRYPTION_FAILED, status_code=500, **kwargs
        )


class NotConnectedError(BaseError):
    """Raised when a tenant has no connected credential for a service."""

    def __init__(self, message: str = "Service is not connected", **kwargs):
        super().__init__(
            message=message, error_code=ErrorCode.NOT_CONNECTED, status_code=404, **kwargs
        )


class NoStoredTokensError(BaseError):
    """Raised when a connected credential carries no token material."""

    def __init__(self, message: str = "Credential has no stored tokens", **kwargs):
        super().__init__(
            message=message, error_code=ErrorCode.RECONNECT_REQUIRED, status_code=409, **kwargs
        )


class NoRefreshTokenError(BaseError):
    """Raised when an expiring token cannot be refreshed. The user must reconnect."""

    def __init__(self, message: str = "No refresh token available, reconnect required", **kwargs):
        super().__init__(
            message=message, error_code=ErrorCode.RECONNECT_REQUIRED, status_code=409, **kwargs
        )


class RefreshFailedError(ExternalServiceError):
    """Raised when the provider refuses a refresh. The service is temporarily unusable."""

    def __init__(
        self,
        message: str,
        service: str,
        detail: Optional[str] = None,
        cause: Optional[Exception] = None,
        **context,
    ):
        self.service = service
        self.detail = detail
        super().__init__(
            message,
            service_name=service,
            error_code=ErrorCode.REFRESH_FAILED,
            status_code=503,
            cause=cause,
            detail=detail,
            **context,
        )


class MirrorError(ExternalServiceError):
    """Raised when the workflow engine rejects a credential sync."""

    def __init__(
        self,
        message: str,
        http_status: Optional[int] = None,
        cause: Optional[Exception] = None,
        **context,
    ):
        self.http_status = http_status
        super().__init__(
            message,
            service_name="workflow_engine",
            error_code=ErrorCode.MIRROR_FAILED,
            status_code=502,
            cause=cause,
            http_status=http_status,
            **context,
        )


class StaleCredentialWriteError(RepositoryError):
    """Raised when a token update loses a compare-and-swap against a newer write."""

    def __init__(self, message: str = "Credential was modified concurrently", **kwargs):
        super().__init__(message, error_code=ErrorCode.CONFLICT, status_code=409, **kwargs)


# Factory functions for common error patterns
def not_connected(tenant_id: str, service_name: str) -> NotConnectedError:
    """
    Factory for not-connected errors.

    Args:
        tenant_id: Tenant that asked for the credential
        service_name: Service that has no connected credential

    Returns:
        Configured NotConnectedError instance
    """
    return NotConnectedError(
        f"{service_name} is not connected",
        tenant_id=tenant_id,
        service_name=service_name,
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
