"""Tests for the TTL cache with an injected clock."""

import pytest

from app.cache import TTLCache


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class TestTTLCache:

    @pytest.mark.asyncio
    async def test_get_returns_value_before_expiry(self, clock):
        cache = TTLCache(default_ttl=60, clock=clock)
        await cache.set("pair", {"purchase_count": 3})

        clock.advance(59.9)

        assert await cache.get("pair") == {"purchase_count": 3}

    @pytest.mark.asyncio
    async def test_entry_expires_at_ttl(self, clock):
        cache = TTLCache(default_ttl=60, clock=clock)
        await cache.set("pair", "value")

        clock.advance(60)

        assert await cache.get("pair") is None
        assert cache.size() == 0

    @pytest.mark.asyncio
    async def test_per_key_ttl_overrides_default(self, clock):
        cache = TTLCache(default_ttl=60, clock=clock)
        await cache.set("short", "a", ttl=5)
        await cache.set("long", "b")

        clock.advance(10)

        assert await cache.get("short") is None
        assert await cache.get("long") == "b"

    @pytest.mark.asyncio
    async def test_age_follows_clock(self, clock):
        cache = TTLCache(default_ttl=60, clock=clock)
        await cache.set("pair", "value")
        clock.advance(12.5)

        entry = await cache.get_entry("pair")

        assert entry is not None
        assert cache.age(entry) == 12.5

    @pytest.mark.asyncio
    async def test_lru_eviction_beyond_max_size(self, clock):
        cache = TTLCache(default_ttl=60, max_size=2, clock=clock)
        await cache.set("a", 1)
        await cache.set("b", 2)
        # Touch "a" so "b" becomes least recently used
        await cache.get("a")
        await cache.set("c", 3)

        assert await cache.get("a") == 1
        assert await cache.get("b") is None
        assert await cache.get("c") == 3

    @pytest.mark.asyncio
    async def test_clear(self, clock):
        cache = TTLCache(clock=clock)
        await cache.set("a", 1)

        await cache.clear()

        assert cache.size() == 0
        assert await cache.get("a") is None
