"""Retry logic with linear backoff.

This module provides:
- retry_with_backoff: Await a coroutine factory, retrying on failure

The delay before retry n (1-based) is backoff * n, so with backoff=5s the
waits are 5s, 10s, 15s, ...
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default retry configuration
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF = 5.0  # seconds


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    max_retries: int = DEFAULT_MAX_RETRIES,
    backoff: float = DEFAULT_BACKOFF,
    retryable_exceptions: tuple[type[Exception], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> T:
    """Execute a coroutine factory with linear backoff retry.

    Args:
        func: Zero-argument callable returning a fresh awaitable per attempt.
        max_retries: Retries after the first attempt (total attempts = max_retries + 1).
        backoff: Base delay in seconds, multiplied by the retry number.
        retryable_exceptions: Exception types that trigger a retry.
        sleep: Awaitable delay function.

    Returns:
        Result of the first successful attempt.

    Raises:
        The last exception if every attempt fails.
    """
    attempt = 0
    while True:
        try:
            return await func()
        except retryable_exceptions as e:
            if attempt >= max_retries:
                if max_retries:
                    logger.error(f"All {max_retries} retries failed: {e}")
                raise
            attempt += 1
            delay = backoff * attempt
            logger.warning(
                f"Attempt {attempt}/{max_retries + 1} failed: {e}. "
                f"Retrying in {delay:.1f}s..."
            )
            await sleep(delay)
