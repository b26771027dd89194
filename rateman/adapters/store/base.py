"""Ordered-set store interface.

The limiter depends on this abstraction only, so the shared backend (Redis in
production, an in-process set for single-worker use and tests) can be swapped
without touching the recording algorithm.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class OrderedSetStore(ABC):
    """Per-key sorted sets of unique string members scored by integers."""

    @abstractmethod
    async def record_and_fetch(
        self,
        key: str,
        *,
        member: str,
        score: int,
        purge_before: int,
        ttl_ms: int,
    ) -> list[str]:
        """Atomically purge, insert and read back one key.

        As a single indivisible unit: remove every member scored strictly below
        ``purge_before``, add ``member`` at ``score``, expire the key after
        ``ttl_ms`` of inactivity, and return all remaining members ordered by
        ascending score.

        Args:
            key: Namespaced store key.
            member: Encoded attempt record to insert.
            score: Sort score of the new member (epoch milliseconds).
            purge_before: Exclusive score bound for the staleness purge.
            ttl_ms: Key expiry in milliseconds.

        Returns:
            Members ordered by score ascending, the new one included.
        """
        raise NotImplementedError

    @abstractmethod
    async def remove(self, key: str, member: str) -> None:
        """Remove one member from the key, if present."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Drop the key and every member under it."""
        raise NotImplementedError

    async def ping(self) -> bool:
        """Return True when the store is reachable."""
        return True

    async def close(self) -> None:
        """Release any connection owned by this store."""
        return None
