"""
Bounded retry with fixed or exponential backoff.

The executor only computes delays and waits; callers log failed attempts via
`on_retry` and decide which errors stop the loop early via `should_retry`.
"""
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from .cancellation import CancellationToken
from .errors import is_retryable


class Backoff(str, Enum):
    FIXED = "fixed"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class RetryOptions:
    """Retry policy; `initial_delay` is in seconds."""
    max_retries: int = 3
    initial_delay: float = 1.0
    backoff: Backoff = Backoff.EXPONENTIAL

    @classmethod
    def from_millis(cls, max_retries: int, initial_delay_ms: int, backoff: Backoff = Backoff.EXPONENTIAL) -> "RetryOptions":
        return cls(max_retries=max_retries, initial_delay=initial_delay_ms / 1000.0, backoff=backoff)


def compute_delay(options: RetryOptions, attempt: int) -> float:
    """Delay in seconds after failed attempt number `attempt` (1-based)."""
    if options.backoff == Backoff.EXPONENTIAL:
        return options.initial_delay * (2 ** (attempt - 1))
    return options.initial_delay


async def run_with_retry(
    operation: Callable[[], Awaitable[Any]],
    options: Optional[RetryOptions] = None,
    *,
    should_retry: Optional[Callable[[Exception], bool]] = None,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
    cancel_token: Optional[CancellationToken] = None,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> Any:
    """
    Run `operation` until it succeeds or `max_retries + 1` attempts have failed.

    Args:
        operation: Zero-argument coroutine factory
        options: Retry policy (defaults to 3 retries, 1s, exponential)
        should_retry: Predicate deciding whether an error may be retried
        on_retry: Called with (attempt, error, next_delay) before each wait
        cancel_token: Aborts waits and further attempts when cancelled
        sleep: Awaitable sleep, injectable for tests

    Returns:
        The operation's result

    Raises:
        The last error once attempts are exhausted or the error is not retryable
    """
    options = options or RetryOptions()
    should_retry = should_retry or is_retryable
    attempt = 0

    while True:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        attempt += 1
        try:
            return await operation()
        except Exception as e:
            if attempt > options.max_retries or not should_retry(e):
                raise
            delay = compute_delay(options, attempt)
            if on_retry is not None:
                on_retry(attempt, e, delay)
            if sleep is not None:
                await sleep(delay)
            elif cancel_token is not None:
                await cancel_token.sleep(delay)
            else:
                await asyncio.sleep(delay)
