"""Sliding-window rate limiting over a shared ordered-set store."""

from rateman.limiter.gate import RateLimiter, create_rate_limiter
from rateman.limiter.recorder import Recorder, RecordResult
from rateman.limiter.records import AttemptRecord
from rateman.limiter.windows import RateLimitWindow, WindowSet, build_window_set

__all__ = [
    "AttemptRecord",
    "RateLimitWindow",
    "RateLimiter",
    "RecordResult",
    "Recorder",
    "WindowSet",
    "build_window_set",
    "create_rate_limiter",
]
