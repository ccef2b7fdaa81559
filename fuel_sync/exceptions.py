"""
Consolidated exception system with error codes, context, and correlation support.

Every error logs itself on construction and carries an ErrorCode, an
HTTP-style status code, the original cause and a free-form context dict.
Configuration, authentication, station resolution and process misuse
failures each get a dedicated subclass so callers can branch on type.
"""

import threading
import traceback
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

_thread_local = threading.local()


class ErrorCode(str, Enum):
    """Standardized error codes."""

    # System errors (1xxx)
    INTERNAL_ERROR = "1000"
    DATABASE_ERROR = "1001"
    CONNECTION_ERROR = "1002"
    CONFIGURATION_ERROR = "1003"
    TIMEOUT_ERROR = "1004"

    # Validation errors (2xxx)
    VALIDATION_FAILED = "2000"
    INVALID_FORMAT = "2001"
    MISSING_REQUIRED = "2002"
    CONSTRAINT_VIOLATION = "2004"

    # Resource errors (3xxx)
    NOT_FOUND = "3000"
    DUPLICATE = "3001"
    CONFLICT = "3002"
    EXPIRED = "3004"

    # Business logic errors (4xxx)
    INVALID_STATE_TRANSITION = "4001"
    PERMISSION_DENIED = "4003"
    PRECONDITION_FAILED = "4004"

    # External service errors (5xxx)
    EXTERNAL_API_ERROR = "5002"
    INTEGRATION_ERROR = "5003"
    AUTHENTICATION_FAILED = "5005"


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
            status_code: HTTP-style status code
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
        }
        if "correlation_id" in self.context:
            log_data["correlation_id"] = self.context["correlation_id"]

        if self.status_code >= 500:
            logger.error(f"Error {self.error_code.value}: {self.message}", extra=log_data)
        elif self.status_code >= 400:
            logger.warning(f"Client error {self.error_code.value}: {self.message}", extra=log_data)
        else:
            logger.info(f"Error {self.error_code.value}: {self.message}", extra=log_data)

    def to_dict(self, include_cause: bool = False) -> Dict[str, Any]:
        """
        Convert to a JSON-serializable dict.

        Args:
            include_cause: Include cause type and message

        Returns:
            Dictionary representation of the error
        """
        result: Dict[str, Any] = {
            "error": {
                "id": self.error_id,
                "code": self.error_code.value,
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

        return result

    def add_context(self, **kwargs: Any) -> "BaseError":
        """Add additional context to the error (fluent interface)."""
        self.context.update(kwargs)
        return self


# Layer-specific base exceptions
class RepositoryError(BaseError):
    """Persistence layer errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.DATABASE_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context,
    ):
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


# ==================== CONFIGURATION ERRORS ====================


class ConfigurationError(BaseError):
    """Integration is not configured well enough to make a call. Never retried."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.CONFIGURATION_ERROR,
        cause: Optional[Exception] = None,
        **context,
    ):
        super().__init__(message, error_code, 500, cause, **context)


class UnknownDestinationError(ConfigurationError):
    """Raised for a destination outside the closed set the transport serves."""

    def __init__(self, destination: Any, **context):
        super().__init__(f"Unknown destination: {destination}", destination=str(destination), **context)


class BaseUrlMissingError(ConfigurationError):
    """Raised when a destination has no base URL configured."""

    def __init__(self, destination: str, **context):
        super().__init__(
            f"Base URL is not configured for destination '{destination}'",
            error_code=ErrorCode.MISSING_REQUIRED,
            destination=destination,
            **context,
        )


class AuthConfigMissingError(ConfigurationError):
    """Raised when username/password are needed but not configured."""

    def __init__(self, destination: str, **context):
        super().__init__(
            f"Username and password are not configured for destination '{destination}'",
            error_code=ErrorCode.MISSING_REQUIRED,
            destination=destination,
            **context,
        )


# ==================== AUTHENTICATION ERRORS ====================


class RenewalFailedError(ExternalServiceError):
    """Raised when a bearer token renewal exchange does not yield a usable token."""

    def __init__(
        self,
        message: str,
        destination: str,
        status: Optional[int] = None,
        cause: Optional[Exception] = None,
        **context,
    ):
        if status is not None:
            context["http_status"] = status
        super().__init__(
            message,
            service_name=destination,
            error_code=ErrorCode.AUTHENTICATION_FAILED,
            cause=cause,
            **context,
        )


# ==================== STATION RESOLUTION ERRORS ====================


class StationResolutionError(BaseError):
    """Base class for failures mapping a trading point to external identifiers."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.NOT_FOUND,
        status_code: int = 404,
        **context,
    ):
        super().__init__(message, error_code, status_code, None, **context)


class TradingPointNotFoundError(StationResolutionError):
    def __init__(self, trading_point_id: str, **context):
        super().__init__(
            f"Trading point not found: {trading_point_id}",
            trading_point_id=trading_point_id,
            **context,
        )


class NetworkNotFoundError(StationResolutionError):
    def __init__(self, message: str, **context):
        super().__init__(message, **context)


class ExternalIdMissingError(StationResolutionError):
    """Raised when the network or station external identifier is blank."""

    def __init__(self, field: str, trading_point_id: str, **context):
        super().__init__(
            f"External identifier '{field}' is missing for trading point {trading_point_id}",
            error_code=ErrorCode.MISSING_REQUIRED,
            status_code=422,
            field=field,
            trading_point_id=trading_point_id,
            **context,
        )
        self.field = field


# ==================== PROCESS MISUSE ====================


class SyncAlreadyRunningError(BaseError):
    """Raised when a synchronization run is requested while another is active."""

    def __init__(self, message: str = "Synchronization is already running", **context):
        super().__init__(
            message,
            error_code=ErrorCode.INVALID_STATE_TRANSITION,
            status_code=409,
            **context,
        )


# Factory functions for common error patterns
def not_found(
    resource_type: str, cause: Optional[Exception] = None, **identifiers
) -> RepositoryError:
    """
    Factory for not found errors.

    Args:
        resource_type: Type of resource (e.g., 'Operation', 'Network')
        cause: Original exception if any
        **identifiers: Resource identifiers (e.g., operation_id='123')

    Returns:
        Configured RepositoryError instance with 404 status
    """
    id_parts = [f"{k}={v}" for k, v in identifiers.items()]
    message = f"{resource_type} not found"
    if id_parts:
        message += f": {', '.join(id_parts)}"

    return RepositoryError(
        message,
        error_code=ErrorCode.NOT_FOUND,
        status_code=404,
        cause=cause,
        resource_type=resource_type,
        **identifiers,
    )


def is_duplicate_key_error(error: BaseException) -> bool:
    """Check whether a database error reports a unique-key violation."""
    text = str(getattr(error, "orig", None) or error).lower()
    return "duplicate" in text or "unique" in text or "23505" in text


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
