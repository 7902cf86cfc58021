"""
Tests for the single-flight dashboard cache.
"""

import asyncio
from datetime import datetime

import pytest

from core.clock import MockClock
from dashboard_aggregation.cache import SingleFlightCache


class Counter:
    """Async factory that counts calls and can be held open."""

    def __init__(self, value="payload", error=None):
        self.calls = 0
        self.value = value
        self.error = error
        self.release = asyncio.Event()

    async def __call__(self):
        self.calls += 1
        await self.release.wait()
        if self.error is not None:
            raise self.error
        return f"{self.value}-{self.calls}"


class TestSingleFlightCache:
    """Tests for hits, dedup, failures and invalidation."""

    @pytest.mark.asyncio
    async def test_hit_returns_same_object(self):
        cache = SingleFlightCache(ttl_seconds=60)
        payload = {"total_wallets": 3}

        first = await cache.get_or_compute("dashboard:p", lambda: payload)
        second = await cache.get_or_compute("dashboard:p", lambda: {"other": True})

        assert first is payload
        assert second is payload
        assert cache.stats()["hits"] == 1

    @pytest.mark.asyncio
    async def test_concurrent_misses_share_one_computation(self):
        cache = SingleFlightCache(ttl_seconds=60)
        factory = Counter()

        tasks = [asyncio.create_task(cache.get_or_compute("k", factory)) for _ in range(10)]
        await asyncio.sleep(0)
        factory.release.set()
        results = await asyncio.gather(*tasks)

        assert factory.calls == 1
        assert set(results) == {"payload-1"}
        assert cache.stats()["computations"] == 1
        assert cache.stats()["in_flight"] == 0

    @pytest.mark.asyncio
    async def test_failure_reaches_every_waiter(self):
        cache = SingleFlightCache(ttl_seconds=60)
        factory = Counter(error=RuntimeError("query failed"))

        tasks = [asyncio.create_task(cache.get_or_compute("k", factory)) for _ in range(3)]
        await asyncio.sleep(0)
        factory.release.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert factory.calls == 1
        assert all(isinstance(r, RuntimeError) for r in results)
        assert cache.peek("k") is None

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_value(self):
        clock = MockClock(datetime(2024, 6, 15))
        cache = SingleFlightCache(ttl_seconds=10, clock=clock)
        await cache.get_or_compute("k", lambda: "old")

        clock.advance(seconds=11)

        def broken():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            await cache.get_or_compute("k", broken)
        assert cache.peek("k") == "old"

    @pytest.mark.asyncio
    async def test_ttl_expiry_recomputes(self):
        clock = MockClock(datetime(2024, 6, 15))
        cache = SingleFlightCache(ttl_seconds=10, clock=clock)
        values = iter(["first", "second"])

        assert await cache.get_or_compute("k", lambda: next(values)) == "first"
        clock.advance(seconds=9)
        assert await cache.get_or_compute("k", lambda: next(values)) == "first"
        clock.advance(seconds=1)
        assert await cache.get_or_compute("k", lambda: next(values)) == "second"

    @pytest.mark.asyncio
    async def test_invalidate_during_flight_discards_result(self):
        cache = SingleFlightCache(ttl_seconds=60)
        factory = Counter()

        task = asyncio.create_task(cache.get_or_compute("dashboard:p", factory))
        await asyncio.sleep(0)
        cache.invalidate("dashboard:p")
        factory.release.set()

        assert await task == "payload-1"
        assert cache.peek("dashboard:p") is None

        assert await cache.get_or_compute("dashboard:p", factory) == "payload-2"
        assert factory.calls == 2

    @pytest.mark.asyncio
    async def test_invalidate_by_prefix(self):
        cache = SingleFlightCache(ttl_seconds=60)
        for key in ("dashboard:a", "timeseries:a:transactions:7", "dashboard:b"):
            await cache.get_or_compute(key, lambda: key)

        assert cache.invalidate("dashboard:") == 2
        assert cache.peek("timeseries:a:transactions:7") is not None
        assert cache.invalidate() == 1
        assert cache.stats()["entries"] == 0
