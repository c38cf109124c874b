"""Retry decorator with exponential backoff."""

import asyncio
import logging
from functools import wraps
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)
T = TypeVar("T")


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator for exponential backoff retry logic.

    Attempt counts and delays may be overridden per call with the
    ``retry_attempts`` and ``retry_delay`` keyword arguments, which are
    consumed by the wrapper and not forwarded.

    Args:
        max_attempts: Maximum number of retry attempts
        base_delay: Base delay in seconds (doubles each attempt)
        exceptions: Tuple of exception types to catch

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            attempts = kwargs.pop("retry_attempts", None)
            attempts = max(1, max_attempts if attempts is None else attempts)
            delay_base = kwargs.pop("retry_delay", None)
            if delay_base is None:
                delay_base = base_delay
            last_exception: Exception | None = None

            for attempt in range(attempts):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e
                    if attempt < attempts - 1:
                        delay = delay_base * (2**attempt)
                        logger.warning(
                            f"Attempt {attempt + 1}/{attempts} failed: {e}. "
                            f"Retrying in {delay}s..."
                        )
                        await asyncio.sleep(delay)
                    else:
                        logger.error(f"All {attempts} attempts failed: {e}")

            raise last_exception  # type: ignore

        return wrapper  # type: ignore

    return decorator
