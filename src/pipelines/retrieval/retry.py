"""Explicit retry policy for rate-limited collaborator calls."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff.

    ``max_attempts`` counts the first call, so ``max_attempts=1`` never retries.
    The delay before attempt ``n + 1`` is ``base_delay_seconds * multiplier**(n - 1)``
    capped at ``max_delay_seconds``.
    """

    max_attempts: int = 1
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 8.0
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_seconds < 0 or self.max_delay_seconds < 0:
            raise ValueError("retry delays must be non-negative")

    @classmethod
    def no_retry(cls) -> "RetryPolicy":
        return cls(max_attempts=1)

    def delay_for(self, attempt: int) -> float:
        """Delay in seconds after failed attempt number ``attempt`` (1-based)."""
        return min(self.base_delay_seconds * (self.multiplier ** (attempt - 1)), self.max_delay_seconds)

    async def run(
        self,
        func: Callable[[], Awaitable[T]],
        retry_on: Tuple[Type[BaseException], ...],
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> T:
        """Await ``func()`` and retry only on the given exception types.

        The last exception is re-raised once attempts are exhausted; any other
        exception propagates immediately.
        """
        attempt = 1
        while True:
            try:
                return await func()
            except retry_on as e:
                if attempt >= self.max_attempts:
                    raise
                wait_time = self.delay_for(attempt)
                logger.warning(
                    f"Attempt {attempt} failed, retrying in {wait_time:.1f}s: {e}",
                    extra={
                        'extra_fields': {
                            'attempt': attempt,
                            'max_attempts': self.max_attempts,
                            'wait_time_seconds': wait_time,
                            'error_type': type(e).__name__
                        }
                    }
                )
                await sleep(wait_time)
                attempt += 1
