"""Integration tests against a real Redis server.

Run with RATEMAN_TEST_REDIS_URL=redis://localhost:6379/15; skipped otherwise.
Keys live under the ``rateman-test`` prefix and are removed before and after
each test.
"""

from __future__ import annotations

import asyncio
import os
import time

import pytest
import pytest_asyncio

from rateman.adapters.store.redis_store import RedisOrderedSetStore
from rateman.core.errors import RateLimitExceededError
from rateman.limiter.gate import RateLimiter

REDIS_URL = os.getenv("RATEMAN_TEST_REDIS_URL")
TEST_KEY_PREFIX = "rateman-test"

pytestmark = pytest.mark.skipif(not REDIS_URL, reason="RATEMAN_TEST_REDIS_URL not set")


async def _clean_up(client) -> None:
    async for key in client.scan_iter(match=f"{TEST_KEY_PREFIX}:*"):
        await client.delete(key)


@pytest_asyncio.fixture
async def redis_client():
    import redis.asyncio as redis

    client = redis.from_url(REDIS_URL, decode_responses=True)
    await _clean_up(client)
    try:
        yield client
    finally:
        await _clean_up(client)
        await client.aclose()


def _limiter(redis_client, *, name: str, windows, **kwargs) -> RateLimiter:
    return RateLimiter(
        name=name,
        windows=windows,
        store=redis_client,
        key_prefix=TEST_KEY_PREFIX,
        **kwargs,
    )


def _now_ms() -> int:
    return round(time.time() * 1000)


@pytest.mark.asyncio
async def test_single_window(redis_client) -> None:
    limiter = _limiter(redis_client, name="single-window", windows={"span": 200, "limit": 3})

    await limiter.attempt("foo", 3)
    await limiter.attempt("bar")
    await limiter.attempt("bar")

    with pytest.raises(RateLimitExceededError):
        await limiter.attempt("foo")

    await asyncio.sleep(0.21)

    await limiter.attempt("foo")
    await asyncio.sleep(0.02)
    await limiter.attempt("foo")
    await asyncio.sleep(0.02)
    await limiter.attempt("foo")
    await asyncio.sleep(0.02)

    await limiter.attempt("bar")
    await limiter.attempt("bar")

    with pytest.raises(RateLimitExceededError):
        await limiter.attempt("foo")


@pytest.mark.asyncio
async def test_multiple_windows_and_reset(redis_client) -> None:
    limiter = _limiter(
        redis_client,
        name="multiple-windows",
        windows=[{"span": 200, "limit": 3}, {"span": 400, "limit": 5}],
    )

    await limiter.attempt("foo", 3)

    with pytest.raises(RateLimitExceededError):
        await limiter.attempt("foo")

    await asyncio.sleep(0.21)

    await limiter.attempt("foo")
    await limiter.attempt("foo")

    with pytest.raises(RateLimitExceededError):
        await limiter.attempt("foo")

    await limiter.reset("foo")

    await limiter.attempt("foo")
    await limiter.attempt("foo")
    await limiter.attempt("foo")

    with pytest.raises(RateLimitExceededError):
        await limiter.attempt("foo")


@pytest.mark.asyncio
async def test_lifts_at_and_throttle(redis_client) -> None:
    limiter = _limiter(redis_client, name="lifts-at", windows={"span": 500, "limit": 3})

    expected_lifts_at = _now_ms() + 500

    await limiter.attempt("foo")
    await asyncio.sleep(0.1)
    await limiter.attempt("foo")
    await asyncio.sleep(0.1)
    await limiter.attempt("foo")
    await asyncio.sleep(0.1)

    with pytest.raises(RateLimitExceededError) as exc_info:
        await limiter.attempt("foo")

    assert abs(exc_info.value.lifts_at - expected_lifts_at) < 10

    await limiter.throttle("foo", 2)

    assert abs(_now_ms() - (expected_lifts_at + 100)) < 20

    with pytest.raises(RateLimitExceededError):
        await limiter.attempt("foo")


@pytest.mark.asyncio
async def test_concurrent_attempts_admit_exactly_the_limit(redis_client) -> None:
    limiter = _limiter(redis_client, name="concurrent", windows={"span": 5_000, "limit": 10})

    results = await asyncio.gather(
        *(limiter.record("foo") for _ in range(25)),
    )

    assert sum(result.allowed for result in results) == 10


@pytest.mark.asyncio
async def test_key_expires_with_widest_window(redis_client) -> None:
    limiter = _limiter(redis_client, name="expiry", windows={"span": 200, "limit": 3})

    await limiter.attempt("foo")

    ttl = await redis_client.pttl(f"{TEST_KEY_PREFIX}:expiry:foo")
    assert 0 < ttl <= 1_200


@pytest.mark.asyncio
async def test_store_from_settings_owns_connection() -> None:
    from rateman.core.config import StoreSettings

    limiter = RateLimiter(
        name="store-options",
        windows={"span": 200, "limit": 1},
        store=StoreSettings(url=REDIS_URL),
        key_prefix=TEST_KEY_PREFIX,
    )

    try:
        assert isinstance(limiter.store, RedisOrderedSetStore)
        assert await limiter.store.ping() is True

        await limiter.attempt("foo")

        with pytest.raises(RateLimitExceededError):
            await limiter.attempt("foo")
    finally:
        await limiter.reset("foo")
        await limiter.aclose()
