"""Redis sorted-set store.

Every attempt runs as one MULTI/EXEC transaction so concurrent callers, in this
process or any other, never observe a half-applied purge/insert. Redis
serializes transactions per server, which is the only synchronization the
limiter relies on.
"""

from __future__ import annotations

import logging
from typing import Any

import redis.asyncio as redis

from rateman.adapters.store.base import OrderedSetStore
from rateman.core.config import StoreSettings
from rateman.core.logging import hash_key

logger = logging.getLogger(__name__)


def _decode(member: str | bytes) -> str:
    if isinstance(member, bytes):
        return member.decode("utf-8")
    return member


class RedisOrderedSetStore(OrderedSetStore):
    """Ordered-set store backed by Redis sorted sets.

    Args:
        client: A ``redis.asyncio.Redis`` client, possibly shared with other
            limiters or application code.
        owns_client: Close the client in ``close()``. Only set for clients this
            store created itself.
    """

    def __init__(self, client: Any, *, owns_client: bool = False) -> None:
        self._client = client
        self._owns_client = owns_client

    @classmethod
    def from_settings(cls, settings: StoreSettings) -> "RedisOrderedSetStore":
        client = redis.from_url(
            settings.url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=settings.socket_connect_timeout_seconds,
            socket_timeout=settings.socket_timeout_seconds,
            health_check_interval=settings.health_check_interval_seconds,
        )
        return cls(client, owns_client=True)

    @property
    def client(self) -> Any:
        return self._client

    async def record_and_fetch(
        self,
        key: str,
        *,
        member: str,
        score: int,
        purge_before: int,
        ttl_ms: int,
    ) -> list[str]:
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(key, "-inf", f"({purge_before}")
            pipe.zadd(key, {member: score})
            pipe.pexpire(key, ttl_ms)
            pipe.zrange(key, 0, -1)
            purged, _, _, members = await pipe.execute()

        if purged:
            logger.debug(
                "store.purged",
                extra={"key_hash": hash_key(key), "purged": purged},
            )
        return [_decode(m) for m in members]

    async def remove(self, key: str, member: str) -> None:
        await self._client.zrem(key, member)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
