"""Multi-window rate limiter over a shared ordered-set store.

``attempt`` fails fast with ``RateLimitExceededError``; ``throttle`` waits
until the attempt is admitted, sleeping until the millisecond after the
computed lift time between retries. Neither takes a client-side lock:
ordering between concurrent callers comes from the store alone.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Generic, Sequence, TypeVar

from rateman.adapters.store.base import OrderedSetStore
from rateman.adapters.store.factory import StoreInput, create_store
from rateman.core.config import DEFAULT_KEY_PREFIX, Settings, get_settings
from rateman.core.errors import RateLimitExceededError
from rateman.core.logging import hash_key
from rateman.limiter.recorder import Recorder, RecordResult
from rateman.limiter.windows import RateLimitWindow, WindowInput, WindowSet, build_window_set

logger = logging.getLogger(__name__)

TIdentifier = TypeVar("TIdentifier")


class RateLimiter(Generic[TIdentifier]):
    """Per-identifier quota enforced across one or more sliding windows.

    Attributes:
        name: Limiter name, part of every store key.
        window_set: Validated windows, narrowest first.
        record_throttled: Whether rejected ``attempt`` calls keep occupying
            quota. ``throttle`` always rolls its rejected retries back.
        key_prefix: First segment of every store key.

    Raises:
        RateLimitConfigError: On construction, if the windows are invalid.
    """

    def __init__(
        self,
        *,
        name: str,
        windows: WindowInput | Sequence[WindowInput],
        store: StoreInput = None,
        record_throttled: bool = False,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        stringify_identifier: Callable[[TIdentifier], str] = str,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.name = name
        self.window_set: WindowSet = build_window_set(windows)
        self.record_throttled = record_throttled
        self.key_prefix = key_prefix
        self.store: OrderedSetStore = create_store(store)

        self._stringify_identifier = stringify_identifier
        self._sleep = sleep
        self._recorder = Recorder(
            name=name,
            window_set=self.window_set,
            store=self.store,
            clock=clock,
        )

    @property
    def windows(self) -> tuple[RateLimitWindow, ...]:
        return self.window_set.windows

    @property
    def min_window_limit(self) -> int:
        return self.window_set.min_window_limit

    @property
    def max_window_span(self) -> int:
        return self.window_set.max_window_span

    def stringify_identifier(self, identifier: TIdentifier) -> str:
        return self._stringify_identifier(identifier)

    def get_key(self, identifier: TIdentifier) -> str:
        return f"{self.key_prefix}:{self.name}:{self.stringify_identifier(identifier)}"

    async def record(
        self,
        identifier: TIdentifier,
        weight: int = 1,
        *,
        record_throttled: bool | None = None,
    ) -> RecordResult:
        """Record a new attempt and report whether it was admitted.

        Args:
            identifier: Who the attempt is accounted to.
            weight: Units the attempt consumes, all or nothing.
            record_throttled: Per-call override of the limiter's policy.
        """

        if record_throttled is None:
            record_throttled = self.record_throttled
        return await self._recorder.record(
            self.get_key(identifier),
            weight,
            record_throttled=record_throttled,
        )

    async def attempt(self, identifier: TIdentifier, weight: int = 1) -> None:
        """Record a new attempt, raise if the rate limit is exceeded.

        Raises:
            RateLimitExceededError: Carrying the lift time in epoch milliseconds.
            WeightValidationError: If ``weight`` is unusable.
        """

        result = await self.record(identifier, weight)

        # A rejection always carries its lift time.
        if result.allowed or result.lifts_at is None:
            return

        raise RateLimitExceededError(
            limiter_name=self.name,
            identifier=self.stringify_identifier(identifier),
            lifts_at=result.lifts_at,
        )

    async def throttle(self, identifier: TIdentifier, weight: int = 1) -> None:
        """Record a new attempt, waiting until the rate limit lifts if reached.

        Rejected retries are always rolled back so waiting callers never eat
        into the quota themselves. There is no built-in deadline; wrap the call
        in ``asyncio.timeout`` to bound the wait.
        """

        while True:
            result = await self.record(identifier, weight, record_throttled=False)

            if result.allowed or result.lifts_at is None:
                return

            # ``lifts_at`` is still rejected; wake on the first admitting tick.
            delay = max(0, result.lifts_at + 1 - self._recorder.now())

            logger.debug(
                "rate_limit.throttle_wait",
                extra={
                    "limiter": self.name,
                    "key_hash": hash_key(self.get_key(identifier)),
                    "delay_ms": delay,
                },
            )

            await self._sleep(delay / 1000)

    async def reset(self, identifier: TIdentifier) -> None:
        """Discard every recorded attempt of ``identifier``."""

        key = self.get_key(identifier)
        await self.store.delete(key)
        logger.info("rate_limit.reset", extra={"limiter": self.name, "key_hash": hash_key(key)})

    async def aclose(self) -> None:
        """Close the store connection if the limiter created it."""
        await self.store.close()


def create_rate_limiter(
    name: str,
    windows: WindowInput | Sequence[WindowInput],
    *,
    settings: Settings | None = None,
    store: StoreInput = None,
    **kwargs,
) -> RateLimiter:
    """Build a limiter with defaults taken from settings.

    ``key_prefix`` and ``record_throttled`` come from ``settings.limiter``, the
    store from ``settings.store`` unless one is passed. Extra keyword arguments
    go to ``RateLimiter`` and win over settings.
    """

    cfg = settings or get_settings()
    kwargs.setdefault("key_prefix", cfg.limiter.key_prefix)
    kwargs.setdefault("record_throttled", cfg.limiter.record_throttled)

    return RateLimiter(
        name=name,
        windows=windows,
        store=store if store is not None else cfg.store,
        **kwargs,
    )
