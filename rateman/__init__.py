"""rateman: multi-window sliding rate limiting shared through Redis."""

from rateman.adapters.store import (
    InMemoryOrderedSetStore,
    OrderedSetStore,
    RedisOrderedSetStore,
    create_store,
)
from rateman.core.config import Settings, StoreSettings, get_settings
from rateman.core.errors import (
    AppError,
    RateLimitConfigError,
    RateLimitExceededError,
    RecorderInvariantError,
    ValidationAppError,
    WeightValidationError,
)
from rateman.limiter import (
    RateLimiter,
    RateLimitWindow,
    RecordResult,
    WindowSet,
    build_window_set,
    create_rate_limiter,
)

__all__ = [
    "AppError",
    "InMemoryOrderedSetStore",
    "OrderedSetStore",
    "RateLimitConfigError",
    "RateLimitExceededError",
    "RateLimitWindow",
    "RateLimiter",
    "RecordResult",
    "RecorderInvariantError",
    "RedisOrderedSetStore",
    "Settings",
    "StoreSettings",
    "ValidationAppError",
    "WeightValidationError",
    "WindowSet",
    "build_window_set",
    "create_rate_limiter",
    "create_store",
    "get_settings",
]
