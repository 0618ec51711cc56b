"""
Request pacing: random jitter and a bounded worker pool.
"""

import asyncio
import random
from typing import Awaitable, Callable, Iterable, List, Optional, Tuple, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def jitter(
    low: float,
    high: float,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> float:
    """Sleep for a random delay between ``low`` and ``high`` seconds."""
    delay = random.uniform(low, high)
    await sleep(delay)
    return delay


class BoundedPool:
    """
    Run one coroutine per item with at most ``limit`` running at once.

    Each task acquires a permit before calling the worker and releases it
    when done. With ``cooldown`` set, a permit is held for a random delay
    after its task finishes while other items are still waiting, which keeps
    bursts against rate limited upstreams spaced out.
    """

    def __init__(
        self,
        limit: int,
        cooldown: Optional[Tuple[float, float]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if limit < 1:
            raise ValueError("limit must be at least 1")

        self.limit = limit
        self.cooldown = cooldown
        self._sleep = sleep

        # Observed concurrency, for logging and tests
        self.in_flight = 0
        self.peak_in_flight = 0

    async def map(
        self,
        worker: Callable[[T], Awaitable[R]],
        items: Iterable[T],
    ) -> List[R]:
        """
        Apply ``worker`` to every item and return results in input order.

        The first exception raised by a worker propagates to the caller once
        every other task has been cancelled and awaited.
        """
        items = list(items)
        semaphore = asyncio.Semaphore(self.limit)
        waiting = len(items)

        async def run(item: T) -> R:
            nonlocal waiting
            async with semaphore:
                waiting -= 1
                self.in_flight += 1
                self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
                try:
                    result = await worker(item)
                finally:
                    self.in_flight -= 1
                if self.cooldown and waiting > 0:
                    await jitter(*self.cooldown, sleep=self._sleep)
                return result

        if not items:
            return []

        tasks = [asyncio.ensure_future(run(item)) for item in items]
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        for task in tasks:
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()
        return [task.result() for task in tasks]
