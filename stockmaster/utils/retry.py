"""
Retry utilities with exponential backoff for collaborator calls.

Used around the completion service so a transient failure gets a second
chance before the recommendation falls back to its template.
"""
import functools
import random
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple, Type
from stockmaster.utils.logger import log


@dataclass
class RetryStats:
    """Tracks retry statistics for a single operation."""
    attempts: int = 0
    total_delay_seconds: float = 0.0
    last_error: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    success: bool = False

    def record_attempt(self, error: Optional[Exception] = None, delay: float = 0.0):
        """Record a retry attempt."""
        self.attempts += 1
        self.total_delay_seconds += delay
        if error:
            error_str = f"{type(error).__name__}: {str(error)}"
            self.last_error = error_str
            self.errors.append(error_str)

    def mark_success(self):
        """Mark the operation as successful."""
        self.success = True


# Default retryable exceptions (network errors)
DEFAULT_RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    ConnectionError,
    TimeoutError,
)


def calculate_backoff(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    jitter: bool = True
) -> float:
    """
    Calculate delay for exponential backoff.

    Args:
        attempt: Current attempt number (1-indexed)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap
        exponential_base: Base for exponential calculation
        jitter: Add 0-25% randomness

    Returns:
        Delay in seconds
    """
    delay = base_delay * (exponential_base ** (attempt - 1))
    delay = min(delay, max_delay)

    if jitter:
        delay += delay * random.uniform(0, 0.25)

    return delay


def is_retryable_error(
    error: Exception,
    retryable_exceptions: Tuple[Type[Exception], ...] = DEFAULT_RETRYABLE_EXCEPTIONS,
    retryable_status_codes: Tuple[int, ...] = (429, 500, 502, 503, 504, 529)
) -> bool:
    """
    Check if an error is retryable.

    Args:
        error: The exception to check
        retryable_exceptions: Exception types that are always retried
        retryable_status_codes: HTTP status codes to retry

    Returns:
        True if error should be retried
    """
    if isinstance(error, retryable_exceptions):
        return True

    status_code = getattr(error, "status_code", None)
    if status_code is not None:
        return status_code in retryable_status_codes

    error_str = str(error).lower()

    if "rate limit" in error_str or "too many requests" in error_str:
        return True

    if "timeout" in error_str or "timed out" in error_str:
        return True

    if "connection" in error_str and ("refused" in error_str or "reset" in error_str or "failed" in error_str):
        return True

    return False


def retry_sync(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    retryable_exceptions: Tuple[Type[Exception], ...] = DEFAULT_RETRYABLE_EXCEPTIONS
):
    """
    Decorator for retrying operations with exponential backoff.

    Non-retryable errors and the final failed attempt re-raise the original
    exception.

    Usage:
        @retry_sync(max_attempts=2)
        def call_api():
            ...
    """
    def decorator(func: Callable):
        last_stats = [None]

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            stats = RetryStats()
            last_stats[0] = stats

            for attempt in range(1, max_attempts + 1):
                try:
                    result = func(*args, **kwargs)
                    stats.record_attempt()
                    stats.mark_success()

                    if attempt > 1:
                        log.info(
                            f"{func.__name__} succeeded on attempt {attempt} "
                            f"after {stats.total_delay_seconds:.1f}s total delay"
                        )

                    return result

                except Exception as e:
                    if attempt >= max_attempts or not is_retryable_error(e, retryable_exceptions):
                        stats.record_attempt(error=e)
                        log.error(
                            f"{func.__name__} failed after {attempt} attempts: {e}"
                        )
                        raise

                    delay = calculate_backoff(
                        attempt,
                        base_delay=base_delay,
                        max_delay=max_delay,
                        exponential_base=exponential_base
                    )

                    stats.record_attempt(error=e, delay=delay)

                    log.warning(
                        f"{func.__name__} attempt {attempt} failed: {e}. "
                        f"Retrying in {delay:.1f}s..."
                    )

                    time.sleep(delay)

            raise RuntimeError("Retry exhausted")

        # Stats from the last call, for tests and monitoring
        wrapper.get_retry_stats = lambda: last_stats[0]
        return wrapper

    return decorator
