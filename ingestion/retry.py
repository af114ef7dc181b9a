"""
Fixed-backoff retry policy for store writes
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry a failed write up to max_attempts times, waiting a fixed
    backoff between attempts.

    There is no jitter and no exponential growth, and every failure is
    retried the same way. Tests swap in a recording or zero-delay sleep.
    """

    max_attempts: int
    backoff: float
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff < 0:
            raise ValueError("backoff must not be negative")

    def should_retry(self, attempt: int) -> bool:
        """Whether another attempt is allowed after a failed `attempt` (1-based)"""
        return attempt < self.max_attempts

    async def wait(self, attempt: int) -> None:
        await self.sleep(self.backoff)

    @classmethod
    def immediate(cls, max_attempts: int) -> "RetryPolicy":
        """Policy that retries without waiting"""
        return cls(max_attempts=max_attempts, backoff=0.0)
