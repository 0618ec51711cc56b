"""
Retry policy for upstream HTTP calls.

One policy object drives every retried call in the app; call sites only
differ in their constants (attempt budget, first backoff, jitter).
"""

import asyncio
import dataclasses
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Rate limiting and gateway timeouts (524 is Cloudflare's origin timeout)
RETRYABLE_STATUSES = frozenset({429, 502, 503, 504, 524})


class RetryExhausted(Exception):
    """Every attempt failed with a retryable error."""

    def __init__(self, label: str, attempts: int, last_error: Optional[BaseException]):
        super().__init__(f"{label} failed after {attempts} attempts: {last_error}")
        self.label = label
        self.attempts = attempts
        self.last_error = last_error


def is_transport_error(error: BaseException) -> bool:
    """Connection resets, timeouts and other failures below HTTP."""
    return isinstance(error, httpx.TransportError)


@dataclass
class RetryPolicy:
    """
    Retry an async call with exponential backoff.

    Errors accepted by ``retryable`` are retried until ``max_attempts``
    attempts have been made in total. Transport errors wait a fixed
    ``transport_delay``; other retryable errors wait
    ``initial_delay * 2 ** (attempt - 1)``. Errors rejected by ``retryable``
    propagate immediately. No backoff is slept after the final attempt.

    Args:
        max_attempts: Total attempts, including the first
        initial_delay: Backoff after the first failed attempt (seconds)
        transport_delay: Fixed backoff after a transport error (seconds)
        retryable: Predicate deciding whether an error is retried
        jitter: Optional (low, high) random delay slept before every attempt
        sleep: Awaitable sleep, swapped out in tests
    """

    max_attempts: int = 3
    initial_delay: float = 4.0
    transport_delay: float = 1.0
    retryable: Callable[[BaseException], bool] = is_transport_error
    jitter: Optional[Tuple[float, float]] = None
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    def backoff(self, attempt: int, error: BaseException) -> float:
        """Delay to wait after ``attempt`` (1-based) failed with ``error``."""
        if is_transport_error(error):
            return self.transport_delay
        return self.initial_delay * (2 ** (attempt - 1))

    def with_sleep(self, sleep: Callable[[float], Awaitable[None]]) -> "RetryPolicy":
        return dataclasses.replace(self, sleep=sleep)

    async def run(self, call: Callable[[], Awaitable[T]], label: str = "request") -> T:
        """
        Await ``call()`` until it succeeds or the attempt budget is spent.

        Raises:
            RetryExhausted: If every attempt failed with a retryable error
        """
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.max_attempts + 1):
            if self.jitter:
                await self.sleep(random.uniform(*self.jitter))

            try:
                return await call()
            except Exception as e:
                if not self.retryable(e):
                    raise
                last_error = e

            if attempt == self.max_attempts:
                break

            delay = self.backoff(attempt, last_error)
            logger.warning(
                f"{label} failed ({last_error}), retrying in {delay:.1f}s "
                f"(attempt {attempt}/{self.max_attempts})"
            )
            await self.sleep(delay)

        raise RetryExhausted(label, self.max_attempts, last_error)
