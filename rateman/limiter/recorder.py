"""Attempt recording and multi-window evaluation.

One call to ``Recorder.record`` is one round trip to the store (two when a
rejected attempt is rolled back):

1. Purge records older than the widest window, insert the new record and read
   everything back, atomically.
2. Expand weighted records into per-unit timestamps, most recent first.
3. Walk the windows narrowest to widest, counting the timestamps inside each
   window with a single forward scan shared by all windows.

Rollback of a rejected record is a separate command. Between the batch and the
removal, concurrent callers on the same key can see the rejected record and
count it; this window is small but not closed.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from rateman.adapters.store.base import OrderedSetStore
from rateman.core.errors import RecorderInvariantError, WeightValidationError
from rateman.core.logging import hash_key
from rateman.limiter.records import AttemptRecord, expand_timestamps
from rateman.limiter.windows import RateLimitWindow, WindowSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordResult:
    """Outcome of one recorded attempt.

    Attributes:
        allowed: Whether the attempt was admitted.
        lifts_at: Last epoch millisecond at which the same attempt is still
            rejected. None exactly when allowed.
        window: The window that rejected the attempt (None when allowed).
    """

    allowed: bool
    lifts_at: int | None = None
    window: RateLimitWindow | None = None


ADMITTED = RecordResult(allowed=True)

# Keys outlive their newest record by the widest span plus this margin.
KEY_TTL_SLACK_MS = 1000


def epoch_ms(clock: Callable[[], float]) -> int:
    return round(clock() * 1000)


def validate_weight(weight: Any, min_window_limit: int) -> int:
    """Check a per-attempt weight before anything touches the store.

    Raises:
        WeightValidationError: With code ``weight_not_integer``,
            ``weight_not_positive`` or ``weight_exceeds_min_window_limit``.
    """

    if isinstance(weight, bool) or not isinstance(weight, int):
        raise WeightValidationError(
            code="weight_not_integer",
            message="Option `weight` must be an integer.",
            details={"weight": weight},
        )
    if weight <= 0:
        raise WeightValidationError(
            code="weight_not_positive",
            message="Option `weight` must be greater than zero.",
            details={"weight": weight},
        )
    if weight > min_window_limit:
        raise WeightValidationError(
            code="weight_exceeds_min_window_limit",
            message="Option `weight` cannot be greater than the minimum window limit.",
            details={"weight": weight, "min_window_limit": min_window_limit},
        )
    return weight


def find_relevant(timestamps: list[int], start: int, relevant_since: int) -> int:
    """Index of the first timestamp at or after ``start`` older than ``relevant_since``.

    ``timestamps`` is ordered most recent first, so the result is also the
    number of timestamps inside the window. Returns ``len(timestamps)`` when
    every remaining timestamp is still relevant.
    """

    for index in range(start, len(timestamps)):
        if timestamps[index] < relevant_since:
            return index
    return len(timestamps)


class Recorder:
    """Records attempts for one limiter and evaluates them against its windows."""

    def __init__(
        self,
        *,
        name: str,
        window_set: WindowSet,
        store: OrderedSetStore,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._name = name
        self._window_set = window_set
        self._store = store
        self._clock = clock

    @property
    def window_set(self) -> WindowSet:
        return self._window_set

    def now(self) -> int:
        """Current instant in epoch milliseconds."""
        return epoch_ms(self._clock)

    async def record(self, key: str, weight: Any = 1, *, record_throttled: bool) -> RecordResult:
        """Record one attempt of ``weight`` units under ``key``.

        Args:
            key: Namespaced store key of the identifier.
            weight: Units consumed by the attempt.
            record_throttled: Keep the record in the store when rejected.

        Returns:
            ``ADMITTED`` or a rejected ``RecordResult`` carrying ``lifts_at``.

        Raises:
            WeightValidationError: If ``weight`` is unusable.
            RecorderInvariantError: If no window reached a decision.
        """

        window_set = self._window_set
        weight = validate_weight(weight, window_set.min_window_limit)

        now = self.now()
        record = AttemptRecord.new(now, weight)
        member = record.encode()

        members = await self._store.record_and_fetch(
            key,
            member=member,
            score=record.score,
            purge_before=now - window_set.max_window_span,
            ttl_ms=window_set.max_window_span + KEY_TTL_SLACK_MS,
        )

        timestamps = expand_timestamps(members)
        total = len(timestamps)

        start = 0

        for window in window_set.windows:
            if total <= window.limit:
                # Wider windows have greater limits, so they are satisfied too.
                logger.debug(
                    "rate_limit.admitted",
                    extra={
                        "limiter": self._name,
                        "key_hash": hash_key(key),
                        "weight": weight,
                        "total": total,
                    },
                )
                return ADMITTED

            relevant = find_relevant(timestamps, start, now - window.span)

            if relevant > window.limit:
                if not record_throttled:
                    await self._store.remove(key, member)
                    logger.debug(
                        "rate_limit.rolled_back",
                        extra={"limiter": self._name, "key_hash": hash_key(key)},
                    )

                # With n new units in front, the window frees up for all of
                # them once the entry at index ``limit`` ages out.
                lifts_at = timestamps[window.limit] + window.span

                logger.info(
                    "rate_limit.rejected",
                    extra={
                        "limiter": self._name,
                        "key_hash": hash_key(key),
                        "weight": weight,
                        "span": window.span,
                        "limit": window.limit,
                        "relevant": relevant,
                        "lifts_at": lifts_at,
                        "recorded": record_throttled,
                    },
                )
                return RecordResult(allowed=False, lifts_at=lifts_at, window=window)

            # The next window starts further back in time, so every timestamp
            # before ``relevant`` is inside it as well.
            start = relevant

        raise RecorderInvariantError(
            code="recorder_no_decision",
            message=f'No window of limiter "{self._name}" reached a decision.',
            details={"limiter": self._name, "context": {"total": total}},
        )
