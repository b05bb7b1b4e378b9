"""
Retry decorator for JSON-RPC calls.

Exponential backoff, capped, with an optional predicate deciding which
failures are worth another attempt.
"""

import asyncio
import logging
from functools import wraps
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


def async_retry(
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    max_delay: float = 30.0,
    exceptions: tuple = (Exception,),
    should_retry: Optional[Callable[[Exception], bool]] = None
):
    """
    Retry async function with exponential backoff.

    Args:
        max_attempts: Total attempts, the first call included
        delay: Wait before the second attempt (seconds)
        backoff: Multiplier applied to the wait after each failure
        max_delay: Upper bound for a single wait
        exceptions: Exception types that may be retried
        should_retry: Extra filter; returning False re-raises immediately

    Example:
        @async_retry(max_attempts=3, delay=0.5, exceptions=(aiohttp.ClientError,))
        async def get_block(slot):
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            attempt = 0
            while True:
                attempt += 1
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if should_retry is not None and not should_retry(e):
                        raise
                    if attempt >= max_attempts:
                        logger.error(
                            f"{func.__name__} gave up after {attempt} attempts: {e}",
                            extra={"extra_data": {
                                "function": func.__name__,
                                "attempts": attempt,
                                "error": str(e)
                            }}
                        )
                        raise

                    wait = min(delay * (backoff ** (attempt - 1)), max_delay)
                    logger.warning(
                        f"{func.__name__} attempt {attempt}/{max_attempts} failed, retrying in {wait:.1f}s",
                        extra={"extra_data": {
                            "function": func.__name__,
                            "attempt": attempt,
                            "wait": wait,
                            "error": str(e)
                        }}
                    )
                    await asyncio.sleep(wait)

        return wrapper
    return decorator
