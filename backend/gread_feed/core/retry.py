"""
Retry with Exponential Backoff

Retries async backend calls that fail transiently (transport errors,
timeouts, HTTP 429 and 5xx) with exponential backoff and jitter.

call_with_backoff() takes the retry budget per call; the API client passes
the values from Settings.
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from gread_feed.core.errors import FeedAPIError

logger = logging.getLogger(__name__)


def is_transient_error(exc: BaseException) -> bool:
    """Default retry predicate: FeedAPIError marked transient, or a timeout."""
    if isinstance(exc, FeedAPIError):
        return exc.is_transient
    return isinstance(exc, asyncio.TimeoutError)


def compute_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float = 2.0,
    jitter: bool = True
) -> float:
    """
    Delay before retry number `attempt` (0-based).

    base_delay * exponential_base ** attempt, capped at max_delay, with
    ±20% jitter when enabled. Never negative.
    """
    delay = min(base_delay * (exponential_base ** attempt), max_delay)
    if jitter:
        jitter_amount = delay * 0.2
        delay = delay + random.uniform(-jitter_amount, jitter_amount)
    return max(0.0, delay)


async def call_with_backoff(
    func: Callable[[], Awaitable[Any]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    exceptions: Tuple[Type[BaseException], ...] = (FeedAPIError, asyncio.TimeoutError),
    should_retry: Optional[Callable[[BaseException], bool]] = is_transient_error,
    name: Optional[str] = None,
) -> Any:
    """
    Await `func()` and retry it on transient failures.

    Args:
        func: Zero-argument coroutine factory, called once per attempt
        max_retries: Retries after the first attempt (total = max_retries + 1)
        base_delay: First retry delay in seconds
        max_delay: Upper bound for any single delay
        exponential_base: Growth factor between attempts
        jitter: Add ±20% random jitter to each delay
        exceptions: Exception types eligible for retry
        should_retry: Extra predicate; a matching exception it rejects
            propagates immediately (e.g. HTTP 404)
        name: Label used in log messages

    Returns:
        Whatever `func()` returns on the first successful attempt

    Raises:
        The last exception once retries are exhausted, or immediately for
        non-retryable exceptions.
    """
    label = name or getattr(func, "__name__", "call")

    for attempt in range(max_retries + 1):
        try:
            return await func()

        except exceptions as e:
            if should_retry is not None and not should_retry(e):
                raise

            if attempt == max_retries:
                logger.error(
                    f"{label} failed after {max_retries + 1} attempts: {e}"
                )
                raise

            delay = compute_delay(
                attempt, base_delay, max_delay, exponential_base, jitter
            )

            logger.info(
                f"{label} attempt {attempt + 1}/{max_retries + 1} "
                f"failed with {type(e).__name__}: {e}. "
                f"Retrying in {delay:.2f}s..."
            )

            await asyncio.sleep(delay)

    raise RuntimeError("Unexpected: retry loop exited without return or raise")
