"""Tests for the sliding window rate limiter."""
import asyncio

import pytest

from tripgate.auth.rate_limit import (
    SlidingWindowRateLimiter,
    get_code_request_limiter,
    get_verify_limiter,
    reset_rate_limiters,
)


@pytest.fixture
def limiter(clock) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(max_events=3, window_seconds=60, clock=clock)


class TestSlidingWindow:

    async def test_allows_up_to_limit(self, limiter):
        assert [await limiter.hit("k") for _ in range(4)] == [True, True, True, False]

    async def test_rejected_hits_are_not_recorded(self, limiter, clock):
        for _ in range(3):
            await limiter.hit("k")
        for _ in range(5):
            assert not await limiter.hit("k")

        clock.advance(seconds=61)
        assert await limiter.hit("k")

    async def test_window_slides(self, limiter, clock):
        await limiter.hit("k")
        clock.advance(seconds=30)
        await limiter.hit("k")
        await limiter.hit("k")

        clock.advance(seconds=31)
        # First event left the window; two remain
        assert await limiter.hit("k")
        assert not await limiter.hit("k")

    async def test_keys_are_independent(self, limiter):
        for _ in range(3):
            await limiter.hit("a")
        assert await limiter.hit("b")

    async def test_retry_after(self, limiter, clock):
        assert await limiter.retry_after("k") == 0

        for _ in range(3):
            await limiter.hit("k")
        clock.advance(seconds=20)

        assert await limiter.retry_after("k") == 40

    async def test_reset(self, limiter):
        for _ in range(3):
            await limiter.hit("k")
        await limiter.reset("k")
        assert await limiter.hit("k")

    async def test_cleanup_drops_idle_keys(self, limiter, clock):
        await limiter.hit("a")
        await limiter.hit("b")
        clock.advance(seconds=30)
        await limiter.hit("c")
        clock.advance(seconds=31)

        assert await limiter.cleanup() == 2
        assert limiter.key_count == 1

    async def test_concurrent_hits_never_exceed_limit(self, limiter):
        results = await asyncio.gather(*(limiter.hit("k") for _ in range(20)))
        assert sum(results) == 3


class TestSingletons:

    def test_limiters_are_singletons(self):
        assert get_code_request_limiter() is get_code_request_limiter()
        assert get_verify_limiter() is get_verify_limiter()
        assert get_code_request_limiter() is not get_verify_limiter()

    def test_reset(self):
        before = get_verify_limiter()
        reset_rate_limiters()
        assert get_verify_limiter() is not before
