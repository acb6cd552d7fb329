"""Bounded retry with backoff.

Every bounded retry in the client (synthesis and playback) goes through
``retry_async``.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many attempts to make and how long to wait between them.

    Args:
        max_attempts: Total attempts including the first one
        delay: Wait before the first retry, in seconds
        backoff: Multiplier applied to the delay after every retry
    """

    max_attempts: int = 3
    delay: float = 0.0
    backoff: float = 1.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay < 0:
            raise ValueError("delay cannot be negative")
        if self.backoff < 1.0:
            raise ValueError("backoff must be at least 1.0")

    def delay_before(self, retry: int) -> float:
        """Delay before the given retry (1 for the first retry)."""
        return self.delay * self.backoff ** (retry - 1)


async def retry_async(
    operation: Callable[[int], Awaitable[T]],
    policy: RetryPolicy,
    *,
    should_retry: Callable[[Exception], bool] | None = None,
    delay_for: Callable[[Exception, int], float] | None = None,
    on_retry: Callable[[Exception, int], None] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` until it succeeds or the policy is exhausted.

    Args:
        operation: Coroutine factory called with the 1-based attempt number
        policy: Attempt budget and delays
        should_retry: Decides whether an error may be retried; all errors
            are retryable when omitted
        delay_for: Overrides the policy delay for a given error and retry
        on_retry: Called before sleeping for each retry
        sleep: Awaitable sleep, replaceable in tests

    Returns:
        Result of the first successful attempt

    Raises:
        Exception: The last error when attempts run out or the error is
            not retryable
    """
    attempt = 1
    while True:
        try:
            return await operation(attempt)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if attempt >= policy.max_attempts:
                logger.debug(f"Giving up after {attempt} attempts: {e}")
                raise
            if should_retry is not None and not should_retry(e):
                raise

            wait = delay_for(e, attempt) if delay_for else policy.delay_before(attempt)
            if on_retry is not None:
                on_retry(e, attempt)
            logger.debug(f"Attempt {attempt} failed ({e}), retrying in {wait:.1f}s")
            if wait > 0:
                await sleep(wait)
            attempt += 1
