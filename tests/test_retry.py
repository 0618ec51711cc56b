"""
Tests for the retry policy and the bounded worker pool.
"""

import asyncio

import httpx
import pytest

from sneaker_sync.marketplace import MarketplaceHTTPError, MarketplaceRateLimitError
from sneaker_sync.marketplace.client import SEARCH_POLICY, is_retryable
from sneaker_sync.utils import BoundedPool, RetryExhausted, RetryPolicy


class FlakyCall:
    """Raises the queued errors in order, then returns "ok"."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


class TestRetryPolicy:
    """Tests for RetryPolicy.run."""

    @pytest.mark.asyncio
    async def test_succeeds_after_rate_limits(self, no_sleep):
        policy = RetryPolicy(max_attempts=3, initial_delay=4.0, retryable=is_retryable, sleep=no_sleep)
        call = FlakyCall(MarketplaceRateLimitError(429), MarketplaceRateLimitError(503))

        assert await policy.run(call) == "ok"
        assert call.calls == 3
        assert no_sleep.delays == [4.0, 8.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, no_sleep):
        policy = RetryPolicy(max_attempts=3, initial_delay=2.0, retryable=is_retryable, sleep=no_sleep)
        call = FlakyCall(*[MarketplaceRateLimitError(429) for _ in range(5)])

        with pytest.raises(RetryExhausted) as exc_info:
            await policy.run(call, label="Search")

        assert call.calls == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, MarketplaceRateLimitError)
        # No wait after the final attempt
        assert no_sleep.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates_immediately(self, no_sleep):
        policy = RetryPolicy(retryable=is_retryable, sleep=no_sleep)
        call = FlakyCall(MarketplaceHTTPError(404, "not found"))

        with pytest.raises(MarketplaceHTTPError):
            await policy.run(call)

        assert call.calls == 1
        assert no_sleep.delays == []

    @pytest.mark.asyncio
    async def test_transport_errors_wait_fixed_delay(self, no_sleep):
        policy = RetryPolicy(initial_delay=4.0, retryable=is_retryable, sleep=no_sleep)
        call = FlakyCall(httpx.ConnectError("reset"), httpx.ReadTimeout("slow"))

        assert await policy.run(call) == "ok"
        assert no_sleep.delays == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_jitter_before_every_attempt(self, no_sleep):
        policy = SEARCH_POLICY.with_sleep(no_sleep)
        call = FlakyCall(MarketplaceRateLimitError(429))

        await policy.run(call)

        jitters = [d for d in no_sleep.delays if d < 1]
        assert len(jitters) == 2
        assert all(0.05 <= d <= 0.1 for d in jitters)
        assert 4.0 in no_sleep.delays


class TestBoundedPool:
    """Tests for BoundedPool.map."""

    @pytest.mark.asyncio
    async def test_never_exceeds_limit_and_keeps_order(self):
        pool = BoundedPool(2)

        async def work(n):
            for _ in range(3):
                await asyncio.sleep(0)
            return n * 10

        results = await pool.map(work, range(7))

        assert results == [0, 10, 20, 30, 40, 50, 60]
        assert pool.peak_in_flight == 2
        assert pool.in_flight == 0

    @pytest.mark.asyncio
    async def test_cooldown_only_while_items_wait(self, no_sleep):
        pool = BoundedPool(1, cooldown=(1.5, 2.0), sleep=no_sleep)

        async def work(n):
            return n

        await pool.map(work, [1, 2, 3])

        assert len(no_sleep.delays) == 2
        assert all(1.5 <= d <= 2.0 for d in no_sleep.delays)

    @pytest.mark.asyncio
    async def test_worker_error_propagates(self):
        pool = BoundedPool(3)

        async def work(n):
            if n == 2:
                raise ValueError("bad item")
            return n

        with pytest.raises(ValueError):
            await pool.map(work, [1, 2, 3])

    def test_limit_must_be_positive(self):
        with pytest.raises(ValueError):
            BoundedPool(0)

    @pytest.mark.asyncio
    async def test_remaining_workers_cancelled_after_error(self):
        pool = BoundedPool(2)
        started = []
        finished = []

        async def work(n):
            started.append(n)
            if n == 0:
                raise ValueError("bad item")
            for _ in range(10):
                await asyncio.sleep(0)
            finished.append(n)
            return n

        with pytest.raises(ValueError):
            await pool.map(work, range(10))

        seen = list(started)
        for _ in range(30):
            await asyncio.sleep(0)

        assert started == seen
        assert finished == []
        assert pool.in_flight == 0
