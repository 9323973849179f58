from __future__ import annotations

import asyncio
import math

import pytest

from errors import InvalidInputError, SourceFailedError
from models import RestaurantPoint, RestaurantSource
from services.nearby_cache import NearbySearchCache, nearby_key

LE_BERNADIN = RestaurantPoint(
    id="nearby-1",
    name="Le Bernadin",
    latitude=40.7615,
    longitude=-73.9818,
    source=RestaurantSource.ON_DEVICE_SEARCH,
)


class FakeNearbySource:
    def __init__(self, results=None, fail_times: int = 0, gate: asyncio.Event | None = None) -> None:
        self.results = results or [LE_BERNADIN]
        self.fail_times = fail_times
        self.gate = gate
        self.calls = 0

    def is_available(self) -> bool:
        return True

    async def search(self, point, radius_m):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.calls <= self.fail_times:
            raise SourceFailedError("upstream 503", source="fake", retryable=True)
        return list(self.results)


def test_key_format():
    assert nearby_key(40.7128, -74.006, 200) == "40.7128:-74.0060:200"
    assert nearby_key(40.71284, -74.00604, 200.0) == "40.7128:-74.0060:200"
    assert nearby_key(0, 0, 150.5) == "0.0000:0.0000:150.5"


def test_concurrent_callers_share_one_request() -> None:
    source = FakeNearbySource()
    cache = NearbySearchCache(source)

    async def run():
        first = cache.get(40.71281, -74.00601, 200)
        second = cache.get(40.71284, -74.00604, 200)
        assert first is second
        return await asyncio.gather(
            cache.search(40.71281, -74.00601, 200),
            cache.search(40.71284, -74.00604, 200),
        )

    first, second = asyncio.run(run())
    assert source.calls == 1
    assert first == second == [LE_BERNADIN]
    assert cache.stats() == {"size": 1, "hits": 3, "misses": 1}


def test_successful_result_stays_cached() -> None:
    source = FakeNearbySource()
    cache = NearbySearchCache(source)

    async def run():
        await cache.search(40.7128, -74.006, 200)
        return await cache.search(40.7128, -74.006, 200)

    assert asyncio.run(run()) == [LE_BERNADIN]
    assert source.calls == 1
    assert "40.7128:-74.0060:200" in cache


def test_different_radius_is_a_different_entry() -> None:
    source = FakeNearbySource()
    cache = NearbySearchCache(source)

    async def run():
        await cache.search(40.7128, -74.006, 200)
        await cache.search(40.7128, -74.006, 500)

    asyncio.run(run())
    assert source.calls == 2
    assert len(cache) == 2


def test_failure_is_evicted_and_retried() -> None:
    source = FakeNearbySource(fail_times=1)
    cache = NearbySearchCache(source)

    async def run():
        with pytest.raises(SourceFailedError):
            await cache.search(40.7128, -74.006, 200)
        assert len(cache) == 0
        return await cache.search(40.7128, -74.006, 200)

    assert asyncio.run(run()) == [LE_BERNADIN]
    assert source.calls == 2


def test_concurrent_callers_all_see_the_failure() -> None:
    source = FakeNearbySource(fail_times=1)
    cache = NearbySearchCache(source)

    async def run():
        return await asyncio.gather(
            cache.search(40.7128, -74.006, 200),
            cache.search(40.7128, -74.006, 200),
            return_exceptions=True,
        )

    outcomes = asyncio.run(run())
    assert all(isinstance(o, SourceFailedError) for o in outcomes)
    assert source.calls == 1
    assert len(cache) == 0


def test_cancelled_caller_does_not_cancel_shared_search() -> None:
    async def run():
        gate = asyncio.Event()
        source = FakeNearbySource(gate=gate)
        cache = NearbySearchCache(source)

        waiter = asyncio.ensure_future(cache.search(40.7128, -74.006, 200))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        assert "40.7128:-74.0060:200" in cache
        gate.set()
        result = await cache.search(40.7128, -74.006, 200)
        return source.calls, result

    calls, result = asyncio.run(run())
    assert calls == 1
    assert result == [LE_BERNADIN]


def test_clear_and_invalidate() -> None:
    cache = NearbySearchCache(FakeNearbySource())

    async def run():
        await cache.search(40.7128, -74.006, 200)
        await cache.search(51.5, -0.12, 200)

    asyncio.run(run())
    cache.invalidate("40.7128:-74.0060:200")
    assert len(cache) == 1
    cache.invalidate("missing")
    cache.clear()
    assert cache.stats() == {"size": 0, "hits": 0, "misses": 0}


def test_invalid_input_rejected() -> None:
    cache = NearbySearchCache(FakeNearbySource())
    with pytest.raises(InvalidInputError):
        cache.get(math.nan, 0.0, 200)
    with pytest.raises(InvalidInputError):
        cache.get(0.0, 0.0, -5)


class StaleThenFreshSource:
    """First search fails once released; later searches succeed once released."""

    def __init__(self) -> None:
        self.calls = 0
        self.fail_gate = asyncio.Event()
        self.ok_gate = asyncio.Event()

    def is_available(self) -> bool:
        return True

    async def search(self, point, radius_m):
        self.calls += 1
        if self.calls == 1:
            await self.fail_gate.wait()
            raise SourceFailedError("stale search failed", source="fake")
        await self.ok_gate.wait()
        return [LE_BERNADIN]


def test_stale_failure_does_not_evict_newer_search() -> None:
    async def run():
        source = StaleThenFreshSource()
        cache = NearbySearchCache(source)

        first = cache.get(1.0, 2.0, 100)
        await asyncio.sleep(0)
        cache.clear()
        second = cache.get(1.0, 2.0, 100)
        await asyncio.sleep(0)

        source.fail_gate.set()
        with pytest.raises(SourceFailedError):
            await first

        third = cache.get(1.0, 2.0, 100)
        assert third is second
        source.ok_gate.set()
        assert await third == [LE_BERNADIN]
        return source.calls

    assert asyncio.run(run()) == 2
