"""Factory for resolving the store handle a limiter is constructed with."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from rateman.adapters.store.base import OrderedSetStore
from rateman.adapters.store.in_memory import InMemoryOrderedSetStore
from rateman.adapters.store.redis_store import RedisOrderedSetStore
from rateman.core.config import StoreSettings

logger = logging.getLogger(__name__)

StoreInput = OrderedSetStore | StoreSettings | Mapping[str, Any] | str | Any


def create_store(store: StoreInput = None) -> OrderedSetStore:
    """Turn a connection or its configuration into an ``OrderedSetStore``.

    Accepted forms:
    - an ``OrderedSetStore``: used as is
    - ``StoreSettings``, a mapping of its fields or a store URL: a new store
      is built
    - ``None``: ``StoreSettings`` loaded from the environment
    - an object with a ``pipeline`` method: treated as a
      ``redis.asyncio.Redis`` client and shared

    Stores built here own their connection; a passed-in client is never
    closed by the limiter.

    Raises:
        TypeError: If ``store`` is none of the above.
    """

    if isinstance(store, OrderedSetStore):
        return store

    if store is None:
        store = StoreSettings()  # type: ignore[call-arg]
    elif isinstance(store, str):
        store = StoreSettings(url=store)
    elif isinstance(store, Mapping):
        store = StoreSettings(**store)

    if isinstance(store, StoreSettings):
        if store.is_memory:
            logger.info("store.created", extra={"backend": "memory"})
            return InMemoryOrderedSetStore()
        logger.info("store.created", extra={"backend": "redis"})
        return RedisOrderedSetStore.from_settings(store)

    if not callable(getattr(store, "pipeline", None)):
        raise TypeError(
            f"Cannot build a rate limit store from {type(store).__name__!r}; pass an "
            "OrderedSetStore, a redis.asyncio client, StoreSettings, a mapping or a URL."
        )

    return RedisOrderedSetStore(store)
