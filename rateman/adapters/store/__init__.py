"""Ordered-set store adapters.

The limiter talks to its shared state only through ``OrderedSetStore``; Redis
is the production backend and the in-memory store covers single-process use.
"""

from rateman.adapters.store.base import OrderedSetStore
from rateman.adapters.store.factory import create_store
from rateman.adapters.store.in_memory import InMemoryOrderedSetStore
from rateman.adapters.store.redis_store import RedisOrderedSetStore

__all__ = [
    "InMemoryOrderedSetStore",
    "OrderedSetStore",
    "RedisOrderedSetStore",
    "create_store",
]
