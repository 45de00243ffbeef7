"""Async retry decorator with exponential backoff, plus error predicates.

Example:
    from skymount.infra.retry import on_status_code, retry

    @retry(on=on_status_code(429, 503), max_attempts=3)
    async def list_clusters():
        ...

The predicates are also used outside of retrying, to classify remote
failures by their message text.
"""

from __future__ import annotations

import asyncio
import functools
import random
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeAlias, TypeVar

from loguru import logger

P = ParamSpec("P")
T = TypeVar("T")

ErrorPredicate: TypeAlias = Callable[[Exception], bool]


def retry(
    on: type[Exception] | tuple[type[Exception], ...] | ErrorPredicate = Exception,
    max_attempts: int = 5,
    base_delay: float = 1.0,
    exponential_base: float = 2.0,
    max_delay: float = 60.0,
    jitter: bool = True,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator that retries async functions with exponential backoff.

    Args:
        on: Exception class, tuple of classes, or predicate deciding
            whether a failure is retried.
        max_attempts: Maximum number of attempts (including the first one).
        base_delay: Initial delay in seconds before first retry.
        exponential_base: Multiplier for exponential backoff.
        max_delay: Maximum delay cap in seconds.
        jitter: Add up to 10% random jitter to each delay.
    """
    if isinstance(on, type) and issubclass(on, Exception):
        should_retry: ErrorPredicate = lambda e: isinstance(e, on)
    elif isinstance(on, tuple):
        should_retry = lambda e: isinstance(e, on)
    else:
        should_retry = on

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    attempt += 1
                    if attempt >= max_attempts or not should_retry(e):
                        raise

                    delay = min(base_delay * (exponential_base ** (attempt - 1)), max_delay)
                    if jitter:
                        delay += random.uniform(0, delay * 0.1)

                    logger.warning(
                        "Retry {attempt}/{max_attempts} of {fn} after {error}: waiting {delay:.1f}s",
                        attempt=attempt,
                        max_attempts=max_attempts,
                        fn=func.__qualname__,
                        error=type(e).__name__,
                        delay=delay,
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator


# =============================================================================
# Predicates
# =============================================================================


def on_status_code(*codes: int) -> ErrorPredicate:
    """Match exceptions exposing a ``status`` attribute in ``codes``."""

    def predicate(e: Exception) -> bool:
        return getattr(e, "status", None) in codes

    return predicate


def on_exception_message(*patterns: str, case_sensitive: bool = False) -> ErrorPredicate:
    """Match exceptions whose message contains any of ``patterns``."""

    def predicate(e: Exception) -> bool:
        msg = str(e)
        if case_sensitive:
            return any(p in msg for p in patterns)
        msg = msg.lower()
        return any(p.lower() in msg for p in patterns)

    return predicate


def any_of(*predicates: ErrorPredicate) -> ErrorPredicate:
    """Combine predicates with OR logic."""

    def combined(e: Exception) -> bool:
        return any(p(e) for p in predicates)

    return combined
