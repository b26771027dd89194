"""Library-level exception types.

Quota violations, bad limiter configuration and bad per-call input each get a
distinct class so callers can branch on the kind of failure. Store failures
(network, protocol) are never wrapped and surface as the client's own errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    limiter: str
    identifier: str
    lifts_at: int
    span: int
    limit: int
    previous_limit: int
    weight: Any
    min_window_limit: int
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for rateman failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when per-call input validation fails."""


class WeightValidationError(ValidationAppError):
    """Raised when an attempt weight is not a usable positive integer."""


class RateLimitConfigError(AppError):
    """Raised when a limiter is constructed with an invalid window set."""


class RecorderInvariantError(AppError):
    """Raised when window evaluation finishes without reaching a decision."""


class RateLimitExceededError(AppError):
    """Raised by ``RateLimiter.attempt`` when an attempt is rejected.

    Attributes:
        limiter_name: Name of the limiter that rejected the attempt.
        identifier: Stringified identifier the attempt was recorded for.
        lifts_at: Last epoch millisecond at which the same attempt is still
            rejected; it is admitted from ``admits_at`` on.
    """

    def __init__(self, *, limiter_name: str, identifier: str, lifts_at: int) -> None:
        self.limiter_name = limiter_name
        self.identifier = identifier
        self.lifts_at = lifts_at
        super().__init__(
            code="rate_limit_exceeded",
            message=f'Rate limit "{limiter_name}" exceeded for identifier "{identifier}".',
            details={
                "limiter": limiter_name,
                "identifier": identifier,
                "lifts_at": lifts_at,
            },
        )

    @property
    def admits_at(self) -> int:
        """First epoch millisecond at which the same attempt can be admitted."""
        return self.lifts_at + 1

    def retry_after_seconds(self, now_ms: int) -> float:
        """Seconds left until ``admits_at`` as seen from ``now_ms``, never negative."""
        return max(0, self.admits_at - now_ms) / 1000
