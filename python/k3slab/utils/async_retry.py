"""
k3slab/utils/async_retry.py

Provides a decorator to retry an async function a bounded number of times,
sleeping a fixed interval between attempts. This is the only waiting idiom in
k3slab: VM address resolution and node readiness polling both go through it.
"""

import asyncio
import logging
from typing import Any, Callable, Coroutine, Tuple, Type
from typing_extensions import ParamSpec, TypeVar

P = ParamSpec("P")
R = TypeVar("R")

logger = logging.getLogger(__name__)


def async_retry(
    retries: int = 3,
    delay: float = 1.0,
    noisy: bool = False,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> Callable[
    [Callable[P, Coroutine[Any, Any, R]]], Callable[P, Coroutine[Any, Any, R]]
]:
    """Decorates an async function to retry upon failure.

    The decorated function is attempted up to `retries` times in total, with a
    sleep of `delay` seconds between attempts (never after the last one). Only
    exceptions matching `retry_on` trigger another attempt; anything else
    propagates immediately. When every attempt fails, the last exception is
    re-raised unchanged.

    Args:
        retries (int, optional):
            Maximum number of total attempts (not just failures). Defaults to 3.
            Values below 1 are treated as a single attempt.
        delay (float, optional):
            Delay in seconds between attempts. Defaults to 1.0.
        noisy (bool, optional):
            If True, logs a warning on each failure and an error if all attempts fail.
            Defaults to False.
        retry_on (Tuple[Type[BaseException], ...], optional):
            Exception types that count as a retryable failure. Defaults to (Exception,).

    Returns:
        A decorator that, when applied to an async function, returns a wrapped
        version that retries on the selected exceptions.
    """
    total = max(retries, 1)

    def decorator(
        func: Callable[P, Coroutine[Any, Any, R]]
    ) -> Callable[P, Coroutine[Any, Any, R]]:
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            async def attempt(remaining: int, attempt_number: int) -> R:
                try:
                    return await func(*args, **kwargs)
                except retry_on as exc:
                    if noisy:
                        logger.warning(
                            "Attempt %d/%d for %r failed: %s",
                            attempt_number,
                            total,
                            func.__qualname__,
                            exc,
                        )
                    if remaining > 1:
                        await asyncio.sleep(delay)
                        return await attempt(remaining - 1, attempt_number + 1)

                    if noisy:
                        logger.error(
                            "All %d attempts failed for %r", total, func.__qualname__
                        )
                    raise

            return await attempt(total, 1)

        return wrapper

    return decorator
