"""Retry with exponential backoff for background data refreshes.

Only network hiccups and rate limits are retried. Anything else (a bad API
key, an unknown city) fails on the first attempt so the app can log it and
keep showing its cached value.
"""

import asyncio
import functools
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, ParamSpec, TypeVar

from .errors import RateLimitError

P = ParamSpec("P")
R = TypeVar("R")

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """Backoff policy.

    Attributes:
        max_attempts: Attempts including the first one
        base_delay: Seconds before the first retry, doubled after each one
        max_delay: Upper bound for a single wait
        jitter: Randomize each wait to 50-100% of its nominal length
        retryable_exceptions: Errors worth another attempt
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    jitter: bool = True
    retryable_exceptions: tuple[type[Exception], ...] = (ConnectionError, TimeoutError)

    def calculate_delay(self, attempt: int) -> float:
        """Seconds to wait after the given (0-based) failed attempt."""
        delay = min(self.base_delay * 2**attempt, self.max_delay)
        if self.jitter:
            delay *= random.uniform(0.5, 1.0)
        return delay


def async_retry(
    config: RetryConfig | None = None,
    label: Callable[..., str] | None = None,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Retry an async fetch according to config.

    Args:
        config: Backoff policy (defaults to RetryConfig())
        label: Called with the wrapped function's arguments to name what is
            being fetched in log lines, e.g. ``"openweathermap Berlin"``

    Usage:
        @async_retry(RetryConfig(max_attempts=2), label=lambda self: self.describe())
        async def load_data(self): ...
    """
    policy = config or RetryConfig()

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            what = label(*args, **kwargs) if label else func.__qualname__
            context: dict[str, Any] = {"fetch": what}

            for attempt in range(1, policy.max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except RateLimitError as e:
                    if attempt == policy.max_attempts:
                        raise
                    delay = e.retry_after if e.retry_after is not None else policy.calculate_delay(attempt - 1)
                    logger.warning("%s rate limited, retrying in %.1fs", what, delay, extra=context)
                except policy.retryable_exceptions as e:
                    if attempt == policy.max_attempts:
                        logger.error("%s failed after %d attempts", what, attempt, extra=context)
                        raise
                    delay = policy.calculate_delay(attempt - 1)
                    logger.warning(
                        "%s attempt %d/%d failed (%s), retrying in %.1fs",
                        what,
                        attempt,
                        policy.max_attempts,
                        e,
                        delay,
                        extra=context,
                    )
                await asyncio.sleep(delay)

            raise RuntimeError(f"{what}: max_attempts must be at least 1")

        return wrapper

    return decorator
