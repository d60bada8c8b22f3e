"""
Retry utilities with exponential backoff for async functions.

Used by the transactional fleet services (mount/dismount, usage recording,
stock and maintenance writes) to absorb transient store conflicts such as
serialization failures, lock timeouts and unique-index races.
"""

import asyncio
import logging
from functools import wraps
from typing import Any, Callable, Tuple, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class RetryableError(Exception):
    """
    Exception that should be retried with exponential backoff.

    Used for transient failures that may succeed on retry:
    - Serialization failures and deadlocks between concurrent transactions
    - Lock wait timeouts
    - Temporary database unavailability
    """
    pass


class NonRetryableError(Exception):
    """
    Exception that should NOT be retried.

    Used for deterministic failures that won't change on retry:
    - Entities not found
    - Precondition violations (already mounted, wrong state, ...)
    - Validation errors (malformed input)
    """
    pass


DEFAULT_RETRY_ON = (RetryableError, SQLAlchemyError, asyncio.TimeoutError)


def async_retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    retry_on: Tuple[Type[BaseException], ...] = DEFAULT_RETRY_ON,
) -> Callable[[F], F]:
    """Decorator for async functions with exponential backoff retry logic.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        base_delay: Initial delay in seconds between retries (default: 1.0)
        max_delay: Maximum delay in seconds between retries (default: 10.0)
        retry_on: Exception types treated as transient

    Example:
        @async_retry(max_attempts=3, base_delay=0.05, retry_on=(OperationalError,))
        async def mount_once():
            ...

    Error Handling:
    - NonRetryableError: Raised immediately without retry
    - Exceptions in ``retry_on``: Retried up to max_attempts times, the last
      one is re-raised when all attempts fail
    - Anything else: Raised immediately

    Backoff Strategy:
    - delay = base_delay * (2 ^ attempt), capped at max_delay
    - Logs a warning for each retry and an error when attempts are exhausted
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            last_exception = None

            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)

                except NonRetryableError:
                    raise

                except retry_on as e:
                    last_exception = e
                    if attempt < max_attempts - 1:
                        delay = min(base_delay * (2 ** attempt), max_delay)
                        logger.warning(
                            f"Retry attempt {attempt + 1}/{max_attempts} for {func.__name__}. "
                            f"Error: {str(e)}. Waiting {delay:.2f}s..."
                        )
                        await asyncio.sleep(delay)
                    else:
                        logger.error(
                            f"All {max_attempts} attempts failed for {func.__name__}. "
                            f"Final error: {str(e)}"
                        )

            raise last_exception

        return wrapper
    return decorator
