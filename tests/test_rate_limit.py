from __future__ import annotations

import asyncio

from cwoprest.adapters.cache import MemoryCache
from cwoprest.clock import to_epoch_ms
from cwoprest.services.rate_limit import RateLimiter, cache_key


def test_unknown_station_is_allowed(cache, clock) -> None:
    limiter = RateLimiter(cache, clock)

    decision = asyncio.run(limiter.check("EW1234"))

    assert decision.allowed
    assert decision.last_sent is None


def test_record_writes_epoch_millis(cache, clock) -> None:
    limiter = RateLimiter(cache, clock)

    asyncio.run(limiter.record("EW1234"))

    assert cache_key("EW1234") == "id=EW1234"
    assert asyncio.run(cache.get("id=EW1234")) == str(to_epoch_ms(clock.now))


def test_cooldown(cache, clock) -> None:
    limiter = RateLimiter(cache, clock)
    asyncio.run(limiter.record("EW1234"))

    clock.advance(100)
    blocked = asyncio.run(limiter.check("EW1234"))
    assert not blocked.allowed
    assert blocked.retry_after_seconds == 190

    clock.advance(189)
    assert not asyncio.run(limiter.check("EW1234")).allowed

    clock.advance(1)
    assert asyncio.run(limiter.check("EW1234")).allowed


def test_stations_are_independent(cache, clock) -> None:
    limiter = RateLimiter(cache, clock)
    asyncio.run(limiter.record("EW1234"))

    assert asyncio.run(limiter.check("CW0001")).allowed
    assert not asyncio.run(limiter.check("EW1234")).allowed


def test_unreadable_record_counts_as_never_sent(cache, clock) -> None:
    asyncio.run(cache.put("id=EW1234", "yesterday"))
    limiter = RateLimiter(cache, clock)

    assert asyncio.run(limiter.check("EW1234")).allowed


def test_custom_cooldown(cache, clock) -> None:
    limiter = RateLimiter(cache, clock, cooldown_seconds=60)
    asyncio.run(limiter.record("EW1234"))
    clock.advance(61)

    assert asyncio.run(limiter.check("EW1234")).allowed


def test_memory_cache_expiry() -> None:
    ticks = [1000.0]
    cache = MemoryCache(ttl=300, time_func=lambda: ticks[0])
    asyncio.run(cache.put("id=EW1234", "1"))

    ticks[0] += 299
    assert asyncio.run(cache.get("id=EW1234")) == "1"

    ticks[0] += 2
    assert asyncio.run(cache.get("id=EW1234")) is None
    assert len(cache) == 0


def test_memory_cache_without_ttl_keeps_entries() -> None:
    cache = MemoryCache()
    asyncio.run(cache.put("k", "v"))

    assert asyncio.run(cache.get("k")) == "v"
    assert asyncio.run(cache.get("missing")) is None


def test_memory_cache_drops_stations_that_never_return() -> None:
    ticks = [1000.0]
    cache = MemoryCache(ttl=300, time_func=lambda: ticks[0])
    asyncio.run(cache.put("id=EW1234", "1"))
    asyncio.run(cache.put("id=EW5678", "2"))

    ticks[0] += 301
    asyncio.run(cache.put("id=EW9999", "3"))

    assert len(cache) == 1
    assert asyncio.run(cache.get("id=EW9999")) == "3"
