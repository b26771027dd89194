"""In-memory ordered-set store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Atomic per batch: an asyncio lock serializes every operation.
- Key expiry is evaluated lazily against the scores it was refreshed with.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from rateman.adapters.store.base import OrderedSetStore


@dataclass
class _SortedSet:
    members: dict[str, int] = field(default_factory=dict)
    expires_at: int | None = None


class InMemoryOrderedSetStore(OrderedSetStore):
    """Ordered-set store kept in a dict of member->score maps.

    Expiry is tracked on the same millisecond timeline as the scores, so a key
    is dropped once a later batch arrives with ``score`` past its expiry.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._sets: dict[str, _SortedSet] = {}

    def _get_live_set(self, key: str, now: int) -> _SortedSet:
        entry = self._sets.get(key)
        if entry is None or (entry.expires_at is not None and entry.expires_at <= now):
            entry = _SortedSet()
            self._sets[key] = entry
        return entry

    async def record_and_fetch(
        self,
        key: str,
        *,
        member: str,
        score: int,
        purge_before: int,
        ttl_ms: int,
    ) -> list[str]:
        async with self._lock:
            entry = self._get_live_set(key, score)

            stale = [m for m, s in entry.members.items() if s < purge_before]
            for stale_member in stale:
                del entry.members[stale_member]

            entry.members[member] = score
            entry.expires_at = score + ttl_ms

            ordered = sorted(entry.members.items(), key=lambda item: (item[1], item[0]))
            return [m for m, _ in ordered]

    async def remove(self, key: str, member: str) -> None:
        async with self._lock:
            entry = self._sets.get(key)
            if entry is None:
                return
            entry.members.pop(member, None)
            if not entry.members:
                del self._sets[key]

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._sets.pop(key, None)

    def keys(self) -> list[str]:
        """Keys currently held, for inspection in tests and diagnostics."""
        return list(self._sets)

    def members(self, key: str) -> list[str]:
        """Members of ``key`` ordered by score, without purging or expiry."""
        entry = self._sets.get(key)
        if entry is None:
            return []
        return [m for m, _ in sorted(entry.members.items(), key=lambda item: (item[1], item[0]))]
