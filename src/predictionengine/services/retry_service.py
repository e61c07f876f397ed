"""Retry service with exponential backoff for provider calls."""

import asyncio
import logging
from typing import Any, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from predictionengine.models.errors import ErrorCode, ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS = 3

# 1 initial attempt + 2 retries, sleeping 1s then 2s
DEFAULT_RETRY_CONFIG = {
    "stop": stop_after_attempt(MAX_ATTEMPTS),
    "wait": wait_exponential(multiplier=1, min=1, max=4),
    "reraise": True,
}


def _is_retryable_error(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and exc.retryable


async def retry_with_backoff(
    func: Callable[..., T],
    *args: Any,
    retry_config: dict[str, Any] | None = None,
    timeout_seconds: float | None = None,
    **kwargs: Any,
) -> T:
    """
    Execute an async function with retry logic and exponential backoff.

    Only ProviderErrors flagged ``retryable`` are retried. When attempts run
    out, the last error is re-raised as a fatal (non-retryable) ProviderError
    carrying the original message.

    Args:
        func: Async function to execute
        *args: Positional arguments for func
        retry_config: Optional tenacity keyword overrides (stop, wait, sleep, ...)
        timeout_seconds: Optional timeout per attempt. If None, no timeout is applied.
        **kwargs: Keyword arguments for func

    Returns:
        Result from func

    Raises:
        ProviderError: Fatal provider failure or exhausted retries
        Exception: Anything else raised by func, untouched
    """
    config = dict(DEFAULT_RETRY_CONFIG)
    config.update(retry_config or {})
    config.setdefault("retry", retry_if_exception(_is_retryable_error))

    async def _execute_with_timeout():
        """Execute func with optional timeout."""
        if timeout_seconds is not None:
            try:
                return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout_seconds)
            except asyncio.TimeoutError as e:
                raise ProviderError(
                    ErrorCode.PROVIDER_TIMEOUT,
                    f"Request timed out after {timeout_seconds}s",
                    original_exception=e,
                )
        else:
            return await func(*args, **kwargs)

    try:
        async for attempt in AsyncRetrying(**config):
            with attempt:
                return await _execute_with_timeout()
    except ProviderError as e:
        if not e.retryable:
            raise
        logger.error(f"❌ [RetryService] Retries exhausted: {e.message}")
        raise ProviderError(
            e.error_code,
            e.message,
            status=e.status,
            retryable=False,
            original_exception=e,
        ) from e
