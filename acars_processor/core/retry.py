"""
Retry harness for calls to external services.

Every attempt is bounded by a timeout. Transient failures are retried with
exponential backoff; anything else propagates to the caller immediately.
"""
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

import httpx

from acars_processor.core.exceptions import RetriableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRIABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}


def as_retriable(error: Exception) -> Exception:
    """Wrap transient httpx and timeout errors; return others unchanged."""
    if isinstance(error, RetriableError):
        return error
    if isinstance(error, (httpx.TransportError, asyncio.TimeoutError)):
        return RetriableError(f"Transient error: {type(error).__name__}", original_error=error)
    if isinstance(error, httpx.HTTPStatusError) and error.response.status_code in RETRIABLE_STATUS_CODES:
        return RetriableError(
            f"HTTP {error.response.status_code} from {error.request.url.host}",
            original_error=error,
        )
    return error


def backoff_delay(attempt: int, delay: float, max_delay: float = 60.0) -> float:
    """Delay before the retry following attempt (0-based)."""
    return min(max_delay, delay * (2 ** attempt))


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    attempts: int,
    delay: float,
    timeout: float,
    name: str = "external call",
    max_delay: float = 60.0,
) -> T:
    """
    Call func until it succeeds or attempts are exhausted.

    Args:
        func: Zero-argument coroutine factory, called once per attempt
        attempts: Total number of attempts (at least 1)
        delay: Initial backoff in seconds, doubled after each failure
        timeout: Per-attempt timeout in seconds
        name: Used in log messages
        max_delay: Upper bound for a single backoff

    Raises:
        RetriableError: when every attempt failed transiently
    """
    attempts = max(1, attempts)
    last_error: RetriableError | None = None

    for attempt in range(attempts):
        try:
            return await asyncio.wait_for(func(), timeout=timeout)
        except Exception as e:
            error = as_retriable(e)
            if not isinstance(error, RetriableError):
                raise
            last_error = error
            if attempt + 1 >= attempts:
                break
            wait = backoff_delay(attempt, delay, max_delay)
            logger.warning(
                f"{name} failed (attempt {attempt + 1}/{attempts}): {error}, retrying in {wait:.1f}s"
            )
            await asyncio.sleep(wait)

    logger.warning(f"{name} failed after {attempts} attempt(s): {last_error}")
    raise last_error
