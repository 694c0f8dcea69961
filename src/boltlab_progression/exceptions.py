"""
Custom exceptions for the BoltLab progression engine.

This module defines a hierarchy of exceptions that provide clear error
handling throughout the engine. Each exception includes:
- A descriptive message
- An error code for API responses
- HTTP status code mapping
- Optional details for debugging

Store errors additionally say whether the failed call is safe to retry.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(str, Enum):
    """Error codes for consistent API error responses."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    FEATURE_DISABLED = "FEATURE_DISABLED"

    # Catalog errors
    CATALOG_INVALID = "CATALOG_INVALID"

    # Store errors
    STORE_ERROR = "STORE_ERROR"
    STORE_TIMEOUT = "STORE_TIMEOUT"
    STORE_CONFLICT = "STORE_CONFLICT"
    STORE_PARTIAL_WRITE = "STORE_PARTIAL_WRITE"


class ProgressionError(Exception):
    """
    Base exception for all progression engine errors.

    Attributes:
        message: Human-readable error message
        code: Error code from ErrorCode enum
        status_code: HTTP status code for API responses
        details: Optional dictionary with additional error details
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API response."""
        result: Dict[str, Any] = {
            "error": {
                "code": self.code.value,
                "message": self.message,
            }
        }
        if self.details:
            result["error"]["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"


# ============================================================================
# Validation Errors (400)
# ============================================================================

class ValidationError(ProgressionError):
    """Raised when input validation fails, before any store call."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=error_details,
        )


class FeatureDisabledError(ProgressionError):
    """Raised when an optional feature is used while switched off."""

    def __init__(self, feature: str) -> None:
        super().__init__(
            message=f"Feature '{feature}' is disabled",
            code=ErrorCode.FEATURE_DISABLED,
            status_code=400,
            details={"feature": feature},
        )


class CatalogError(ProgressionError):
    """Raised when the achievement catalog fails validation at load time."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            code=ErrorCode.CATALOG_INVALID,
            status_code=500,
            details=details,
        )


# ============================================================================
# Store Errors
# ============================================================================

class StoreError(ProgressionError):
    """
    Raised when the persistence layer fails.

    The computed-but-unpersisted result of the failing call is discarded.
    `retryable` tells the caller whether repeating the same call may succeed.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        retryable: bool = False,
        code: ErrorCode = ErrorCode.STORE_ERROR,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        if operation:
            error_details["operation"] = operation
        error_details["retryable"] = retryable
        self.operation = operation
        self.retryable = retryable
        super().__init__(
            message=message,
            code=code,
            status_code=status_code or (503 if retryable else 500),
            details=error_details,
        )


class StoreTimeoutError(StoreError):
    """Raised when a store call exceeds its timeout."""

    def __init__(self, operation: str, timeout_seconds: Optional[float] = None) -> None:
        details = {}
        if timeout_seconds is not None:
            details["timeout_seconds"] = timeout_seconds
        super().__init__(
            message=f"Store operation '{operation}' timed out",
            operation=operation,
            retryable=True,
            code=ErrorCode.STORE_TIMEOUT,
            status_code=504,
            details=details,
        )


class StoreConflictError(StoreError):
    """Raised when the store rejects a write because of conflicting state."""

    def __init__(self, message: str, operation: Optional[str] = None) -> None:
        super().__init__(
            message=message,
            operation=operation,
            retryable=False,
            code=ErrorCode.STORE_CONFLICT,
            status_code=409,
        )


class PartialWriteError(StoreError):
    """
    Raised when some writes of one completion event landed and others did not.

    Attributes:
        written: Names of the writes that succeeded
        failed: Names of the writes that did not happen
    """

    def __init__(
        self,
        message: str,
        written: List[str],
        failed: List[str],
        retryable: bool = False,
    ) -> None:
        self.written = list(written)
        self.failed = list(failed)
        super().__init__(
            message=message,
            operation="apply_progression",
            retryable=retryable,
            code=ErrorCode.STORE_PARTIAL_WRITE,
            status_code=500,
            details={"written": self.written, "failed": self.failed},
        )
