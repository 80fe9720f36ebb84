"""Retry utilities with exponential backoff for storage calls."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def retry_with_exponential_backoff(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    max_retries: int = 3,
    initial_delay: float = 0.5,
    backoff_factor: float = 2.0,
    attempt_timeout: float | None = None,
    retry_on_exceptions: tuple[type[Exception], ...] = (Exception,),
    **kwargs: Any,
) -> T:
    """
    Retry an async function with exponential backoff.

    Args:
        func: Async function to retry
        *args: Positional arguments for the function
        max_retries: Maximum number of retry attempts after the first call
        initial_delay: Initial delay in seconds before first retry
        backoff_factor: Multiplier for delay after each retry (default: 2.0)
        attempt_timeout: Seconds allowed per attempt (None for no limit)
        retry_on_exceptions: Tuple of exception types to retry on
        **kwargs: Keyword arguments for the function

    Returns:
        Result from successful function execution

    Raises:
        The last exception if all retries fail. Timeouts surface as
        asyncio.TimeoutError and are retried like any listed exception.
    """
    delay = initial_delay
    retryable = retry_on_exceptions + (asyncio.TimeoutError,)

    for attempt in range(max_retries + 1):
        try:
            if attempt_timeout is None:
                return await func(*args, **kwargs)
            return await asyncio.wait_for(func(*args, **kwargs), timeout=attempt_timeout)
        except retryable as e:
            if attempt == max_retries:
                logger.error(
                    "retry_exhausted",
                    function=getattr(func, "__name__", repr(func)),
                    attempts=attempt + 1,
                    error=str(e) or type(e).__name__,
                )
                raise

            logger.warning(
                "retry_attempt",
                function=getattr(func, "__name__", repr(func)),
                attempt=attempt + 1,
                max_retries=max_retries,
                delay=delay,
                error=str(e) or type(e).__name__,
            )
            await asyncio.sleep(delay)
            delay *= backoff_factor

    raise RuntimeError("Unexpected retry loop exit")
