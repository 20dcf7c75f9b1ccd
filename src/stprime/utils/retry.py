"""
Backoff for read-only lookups.

Only the receipt lookup that follows a receipt-wait timeout goes through
here. Broadcasts are never retried.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from stprime.errors import RpcError
from stprime.utils.logging import get_logger

T = TypeVar("T")

_logger = get_logger(__name__)


@dataclass(frozen=True)
class RetryConfig:
    """
    How often a lookup is attempted and how long to wait in between.

    The wait before retry ``n`` (zero-based) is ``base_delay_ms * 2**n``,
    capped at ``max_delay_ms``. With ``jitter`` the wait is drawn uniformly
    from zero up to that value.
    """

    max_attempts: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 10000
    jitter: bool = True
    retryable_errors: Tuple[Type[Exception], ...] = (RpcError,)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay(self, retry_number: int) -> float:
        """Seconds to wait before retry ``retry_number``."""
        delay_ms = min(self.base_delay_ms * 2**retry_number, self.max_delay_ms)
        if self.jitter:
            delay_ms = random.uniform(0, delay_ms)
        return delay_ms / 1000


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    *,
    operation: str = "lookup",
) -> T:
    """
    Await ``fn()`` until it succeeds or ``config.max_attempts`` is used up.

    Errors outside ``config.retryable_errors`` propagate at once. After the
    last attempt the last retryable error is raised.
    """
    config = config or RetryConfig()
    attempt = 1
    while True:
        try:
            return await fn()
        except config.retryable_errors as e:
            if attempt >= config.max_attempts:
                raise
            wait = config.delay(attempt - 1)
            _logger.debug(
                "Retrying %s",
                operation,
                extra={"attempt": attempt, "wait_seconds": round(wait, 3), "error": str(e)},
            )
            await asyncio.sleep(wait)
        attempt += 1
