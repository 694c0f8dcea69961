"""Retry policy and error classification for store calls.

Store adapters use this module to decide whether a failed backend call is
transient (timeouts, dropped connections, a locked database) or permanent
(constraint violations, bad requests), and to retry idempotent reads with
exponential backoff.

The progression orchestrator itself never retries writes; a partially
applied write is reported to the caller instead.

Usage:
    from boltlab_progression.store.retry import with_retry

    @with_retry(max_retries=2, base_delay=0.2)
    def fetch_profile():
        return client.table("profiles").select("*").execute()
"""

import logging
import random
import sqlite3
import time
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

import httpx

from ..exceptions import ProgressionError, StoreError, StoreTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ============================================================================
# Exception Classifications
# ============================================================================

# Timeouts get their own StoreTimeoutError
TIMEOUT_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    TimeoutError,
    httpx.TimeoutException,
)

# Exceptions that should be retried (transient failures)
RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = TIMEOUT_EXCEPTIONS + (
    sqlite3.OperationalError,  # Database locked, disk I/O error, etc.
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    ConnectionError,
)

# Exceptions that should NOT be retried (permanent failures)
NON_RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    ValueError,
    TypeError,
    KeyError,
    sqlite3.ProgrammingError,
    sqlite3.IntegrityError,
    AttributeError,
)


def is_retryable(exception: Exception) -> bool:
    """Determine if an exception should be retried.

    Args:
        exception: The exception to check.

    Returns:
        True if the exception is transient and should be retried.
    """
    if isinstance(exception, StoreError):
        return exception.retryable

    # Check against known non-retryable exceptions first
    if isinstance(exception, NON_RETRYABLE_EXCEPTIONS):
        return False

    if isinstance(exception, RETRYABLE_EXCEPTIONS):
        return True

    # For unknown exceptions, check the message for hints
    error_msg = str(exception).lower()
    retryable_hints = [
        "timeout",
        "timed out",
        "connection",
        "temporarily",
        "unavailable",
        "busy",
        "locked",
        "network",
    ]
    return any(hint in error_msg for hint in retryable_hints)


def to_store_error(
    operation: str,
    exception: Exception,
    timeout_seconds: Optional[float] = None,
) -> StoreError:
    """Translate a backend exception into a StoreError."""
    if isinstance(exception, StoreError):
        return exception
    if isinstance(exception, TIMEOUT_EXCEPTIONS):
        return StoreTimeoutError(operation, timeout_seconds)
    return StoreError(
        f"Store operation '{operation}' failed: {exception}",
        operation=operation,
        retryable=is_retryable(exception),
        details={"error_type": type(exception).__name__},
    )


# ============================================================================
# Retry Configuration
# ============================================================================


@dataclass
class RetryConfig:
    """Configuration for store retry behavior.

    Attributes:
        max_retries: Maximum number of retry attempts (default 2).
        base_delay: Initial delay between retries in seconds (default 0.2).
        max_delay: Maximum delay between retries in seconds (default 2.0).
        jitter: Whether to add random jitter to delays (default True).
        max_total_time: Maximum total time for all attempts in seconds.
    """

    max_retries: int = 2
    base_delay: float = 0.2
    max_delay: float = 2.0
    jitter: bool = True
    max_total_time: float = 15.0


@dataclass
class RetryMetrics:
    """Attempt counters for one store operation."""

    operation: str
    total_attempts: int = 0
    failed_attempts: int = 0
    last_error: Optional[str] = None
    errors_by_type: dict = field(default_factory=dict)

    def record_failure(self, error: Exception) -> None:
        """Record a failed attempt."""
        self.failed_attempts += 1
        self.last_error = str(error)
        error_type = type(error).__name__
        self.errors_by_type[error_type] = self.errors_by_type.get(error_type, 0) + 1

    def to_dict(self) -> dict:
        """Convert to dictionary for logging."""
        return {
            "operation": self.operation,
            "total_attempts": self.total_attempts,
            "failed_attempts": self.failed_attempts,
            "last_error": self.last_error,
            "errors_by_type": self.errors_by_type,
        }


_retry_metrics: dict[str, RetryMetrics] = {}


def get_retry_metrics(operation: str) -> RetryMetrics:
    """Get or create retry metrics for an operation."""
    if operation not in _retry_metrics:
        _retry_metrics[operation] = RetryMetrics(operation=operation)
    return _retry_metrics[operation]


def reset_retry_metrics() -> None:
    """Reset all retry metrics (for testing)."""
    _retry_metrics.clear()


# ============================================================================
# Retry Execution
# ============================================================================


def call_with_retry(
    func: Callable[[], T],
    operation: str,
    config: Optional[RetryConfig] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run func, retrying transient failures with exponential backoff.

    Args:
        func: Zero-argument callable performing one idempotent store call.
        operation: Name used in logs, metrics and raised errors.
        config: Retry configuration, defaults when not provided.
        sleep: Sleep function (replaceable in tests).

    Returns:
        Whatever func returns.

    Raises:
        StoreError: When the call fails permanently or retries run out.
    """
    config = config or RetryConfig()
    metrics = get_retry_metrics(operation)
    start_time = time.monotonic()

    for attempt in range(config.max_retries + 1):
        metrics.total_attempts += 1
        try:
            result = func()
            if attempt > 0:
                logger.info(f"Store operation {operation} succeeded after {attempt + 1} attempts")
            return result
        except Exception as e:
            if isinstance(e, ProgressionError) and not isinstance(e, StoreError):
                raise
            metrics.record_failure(e)
            should_retry = is_retryable(e)

            elapsed = time.monotonic() - start_time
            if elapsed >= config.max_total_time:
                should_retry = False

            if attempt < config.max_retries and should_retry:
                delay = min(config.base_delay * (2 ** attempt), config.max_delay)
                if config.jitter:
                    delay = delay * (0.5 + random.random() / 2)
                logger.warning(
                    f"Store operation {operation} failed (attempt {attempt + 1}/{config.max_retries + 1}): "
                    f"{type(e).__name__}: {e}. Retrying in {delay:.2f}s..."
                )
                sleep(delay)
                continue

            if should_retry:
                logger.error(
                    f"Store operation {operation} failed after {attempt + 1} attempts: "
                    f"{type(e).__name__}: {e}"
                )
            else:
                logger.error(
                    f"Store operation {operation} failed with non-retryable error: "
                    f"{type(e).__name__}: {e}"
                )
            if isinstance(e, StoreError):
                raise
            raise to_store_error(operation, e) from e

    # Loop always returns or raises
    raise StoreError(f"Store operation '{operation}' failed", operation=operation)


def with_retry(
    max_retries: int = 2,
    base_delay: float = 0.2,
    max_delay: float = 2.0,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator form of call_with_retry, named after the wrapped function."""
    config = RetryConfig(max_retries=max_retries, base_delay=base_delay, max_delay=max_delay)

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            return call_with_retry(lambda: func(*args, **kwargs), func.__name__, config)

        return wrapper

    return decorator
