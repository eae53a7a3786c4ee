"""
Unit tests for the cached caller identity
"""

import asyncio

import pytest

from plugins.x.identity import IdentityCache

pytestmark = [pytest.mark.unit]


class CountingResolver:
    def __init__(self, results):
        self.results = list(results)
        self.calls = 0
        self.release = asyncio.Event()

    async def __call__(self):
        self.calls += 1
        await self.release.wait()
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class TestIdentityCache:
    """Test the single-flight user id lookup"""

    @pytest.mark.asyncio
    async def test_resolves_once(self):
        """Test that sequential callers reuse the first result"""
        resolver = CountingResolver(["42"])
        resolver.release.set()
        cache = IdentityCache(resolver)

        assert await cache.get() == "42"
        assert await cache.get() == "42"
        assert resolver.calls == 1
        assert cache.resolved

    @pytest.mark.asyncio
    async def test_concurrent_first_callers_share_lookup(self):
        """Test that concurrent first callers trigger a single lookup"""
        resolver = CountingResolver(["42"])
        cache = IdentityCache(resolver)

        waiters = [asyncio.ensure_future(cache.get()) for _ in range(5)]
        await asyncio.sleep(0)
        resolver.release.set()

        assert await asyncio.gather(*waiters) == ["42"] * 5
        assert resolver.calls == 1

    @pytest.mark.asyncio
    async def test_failure_is_shared_then_forgotten(self):
        """Test that concurrent callers see the same failure and a later call retries"""
        resolver = CountingResolver([RuntimeError("boom"), "42"])
        cache = IdentityCache(resolver)

        waiters = [asyncio.ensure_future(cache.get()) for _ in range(2)]
        await asyncio.sleep(0)
        resolver.release.set()
        results = await asyncio.gather(*waiters, return_exceptions=True)

        assert all(isinstance(r, RuntimeError) for r in results)
        assert resolver.calls == 1
        assert not cache.resolved

        assert await cache.get() == "42"
        assert resolver.calls == 2

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_lookup(self):
        """Test that one caller giving up does not abort the shared lookup"""
        resolver = CountingResolver(["42"])
        cache = IdentityCache(resolver)

        impatient = asyncio.ensure_future(cache.get())
        patient = asyncio.ensure_future(cache.get())
        await asyncio.sleep(0)
        impatient.cancel()
        resolver.release.set()

        assert await patient == "42"
        assert resolver.calls == 1
