"""SmartSentry — Retry with exponential backoff"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

from smartsentry.config import BACKOFF_BASE_SECONDS, BACKOFF_FACTOR, DEFAULT_MAX_ATTEMPTS
from smartsentry.errors import ApiError

logger = logging.getLogger("smartsentry.retry")

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """How many attempts to make and how long to wait between them.

    Only errors whose ``retryable`` flag is set are retried; anything else
    propagates on the attempt that raised it.
    """
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = BACKOFF_BASE_SECONDS
    factor: float = BACKOFF_FACTOR
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    def delay_for(self, attempt: int) -> float:
        """Delay after a failed ``attempt`` (1-based): base, base*factor, ..."""
        return self.base_delay * (self.factor ** (attempt - 1))

    def is_retryable(self, exc: BaseException) -> bool:
        return isinstance(exc, ApiError) and exc.retryable


async def with_retry(
    operation: Callable[[int], Awaitable[T]],
    policy: RetryPolicy,
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
) -> T:
    """Run ``operation(attempt)`` until it succeeds, fails terminally, or attempts run out.

    The last retryable error is re-raised once ``policy.max_attempts`` is spent.
    """
    attempts = max(1, policy.max_attempts)
    for attempt in range(1, attempts):
        try:
            return await operation(attempt)
        except Exception as e:
            if not policy.is_retryable(e):
                raise
            delay = policy.delay_for(attempt)
            if on_retry is not None:
                on_retry(attempt, e, delay)
            logger.info(f"Attempt {attempt}/{attempts} failed ({e}); retrying in {delay:.1f}s")
            await policy.sleep(delay)
    return await operation(attempts)
