"""Deadline and retry helpers for platform calls."""
import asyncio
import logging
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from ..errors import TransientError
from ..platform.faults import classify_fault

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Only classified transient failures are worth another attempt
RETRYABLE_EXCEPTIONS = (TransientError,)


def with_retry(
    max_attempts: int = 3,
    min_wait: float = 1,
    max_wait: float = 10,
    exceptions: tuple = RETRYABLE_EXCEPTIONS,
) -> Callable:
    """Decorator factory for retry logic with exponential backoff.

    Apply only to idempotent reads; mutations are never retried.

    Args:
        max_attempts: Maximum number of attempts
        min_wait: Minimum wait time between retries (seconds)
        max_wait: Maximum wait time between retries (seconds)
        exceptions: Tuple of exception types to retry on
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
            retry=retry_if_exception_type(exceptions),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> T:
            return await func(*args, **kwargs)

        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"with_retry only supports coroutine functions, got {func.__name__}")
        return async_wrapper

    return decorator


async def call_with_deadline(
    operation: str,
    call: Awaitable[T],
    timeout: Optional[float],
) -> T:
    """
    Await a platform call within a deadline, classifying any failure.

    Args:
        operation: Operation name used in error reports
        call: Awaitable platform call
        timeout: Seconds before the call is abandoned (None waits forever)

    Returns:
        The platform call's result

    Raises:
        RemoteCallError: NotFoundError, ConflictError, TransientError or FatalError.
            A missed deadline is a TransientError.
    """
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.warning(f"{operation} exceeded deadline of {timeout}s")
        raise TransientError(
            f"Deadline of {timeout}s exceeded", operation=operation, fault=e
        ) from e
    except Exception as e:
        error = classify_fault(e, operation=operation)
        logger.debug(f"{operation} failed: {error.category}: {e}")
        if error is e:
            raise
        raise error from e
