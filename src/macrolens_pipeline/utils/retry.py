"""
utils/retry.py — Exponential-backoff retry decorator for single async calls.

Used for small auxiliary lookups (series metadata) where a transient
network error should be retried but an HTTP status answer should not.
The multi-endpoint provider fetch has its own loop in sources/fetcher.py.

Usage:
    from macrolens_pipeline.utils.retry import with_retry

    @with_retry(max_attempts=3, base_delay=0.5, retry_on=(httpx.TransportError,))
    async def fetch_title(series_id: str) -> str | None: ...
"""

from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

log = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Coroutine[Any, Any, Any]])


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retry_on: type[Exception] | tuple[type[Exception], ...] = Exception,
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> Callable[[F], F]:
    """
    Decorator that retries an async function with exponential backoff.

    Delays: base_delay * 2^(attempt-1), capped at max_delay.

    Args:
        max_attempts: Total attempts before the last exception is re-raised.
        base_delay:   Initial delay in seconds.
        max_delay:    Maximum delay cap in seconds.
        retry_on:     Exception type(s) that trigger a retry.
        sleep:        Async sleep override (tests pass a recorder).
    """

    def decorator(fn: F) -> F:
        attempt_log = log.bind(function=fn.__qualname__)

        def _log_retry(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            attempt_log.warning(
                "retry_attempt",
                attempt=state.attempt_number,
                max_attempts=max_attempts,
                delay_s=state.next_action.sleep if state.next_action else None,
                error=str(exc) if exc else None,
            )

        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            extra: dict[str, Any] = {"sleep": sleep} if sleep is not None else {}
            retrying = AsyncRetrying(
                stop=stop_after_attempt(max_attempts),
                wait=wait_exponential(multiplier=base_delay, max=max_delay),
                retry=retry_if_exception_type(retry_on),
                before_sleep=_log_retry,
                reraise=True,
                **extra,
            )
            try:
                return await retrying(fn, *args, **kwargs)
            except retry_on as exc:
                attempt_log.error("retry_exhausted", max_attempts=max_attempts, error=str(exc))
                raise

        return wrapper  # type: ignore[return-value]

    return decorator
