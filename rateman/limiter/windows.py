"""Window tiers and their construction-time validation."""

from __future__ import annotations

import math
from dataclasses import dataclass
from fractions import Fraction
from typing import Any, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError

from rateman.core.errors import RateLimitConfigError


class RateLimitWindow(BaseModel):
    """One quota rule: at most ``limit`` units within any ``span`` milliseconds."""

    model_config = ConfigDict(frozen=True)

    span: StrictInt = Field(..., gt=0, description="Window span in milliseconds")
    limit: StrictInt = Field(..., gt=0, description="Units admitted per span")

    @property
    def rate(self) -> Fraction:
        return Fraction(self.limit, self.span)


WindowInput = RateLimitWindow | Mapping[str, Any]


@dataclass(frozen=True)
class WindowSet:
    """Validated tiers, narrowest first.

    Attributes:
        windows: Tiers sorted by ascending span.
        min_window_limit: Limit of the narrowest tier; caps a single attempt's weight.
        max_window_span: Span of the widest tier; older records are purged.
    """

    windows: tuple[RateLimitWindow, ...]
    min_window_limit: int
    max_window_span: int


def _coerce_window(window: WindowInput) -> RateLimitWindow:
    if isinstance(window, RateLimitWindow):
        return window
    try:
        return RateLimitWindow.model_validate(window)
    except ValidationError as exc:
        raise RateLimitConfigError(
            code="window_invalid",
            message="Window `span` and `limit` must be positive integers.",
            details={"context": {"errors": exc.errors(include_url=False)}},
        ) from exc


def build_window_set(windows: WindowInput | Sequence[WindowInput]) -> WindowSet:
    """Normalize one or more tiers into a ``WindowSet``.

    Tiers are sorted by span, then checked pairwise: each wider tier must admit
    strictly more units than the narrower one, at a strictly lower rate.
    Otherwise the narrower tier would either block the wider one entirely or
    never bind at all.

    Raises:
        RateLimitConfigError: On the first broken invariant; no partial result.
    """

    if isinstance(windows, (RateLimitWindow, Mapping)):
        windows = [windows]

    normalized = sorted((_coerce_window(window) for window in windows), key=lambda w: w.span)

    if not normalized:
        raise RateLimitConfigError(
            code="window_invalid",
            message="At least one window is required.",
        )

    previous_limit = 0
    previous_rate: Fraction | float = math.inf

    for window in normalized:
        if window.limit <= previous_limit:
            raise RateLimitConfigError(
                code="window_limit_not_increasing",
                message="It is required for window with greater `span` to have greater `limit`.",
                details={
                    "span": window.span,
                    "limit": window.limit,
                    "previous_limit": previous_limit,
                },
            )

        if window.rate >= previous_rate:
            raise RateLimitConfigError(
                code="window_rate_not_decreasing",
                message=(
                    "Narrower window with equal or greater `limit / span` rate "
                    "than wider ones is useless."
                ),
                details={"span": window.span, "limit": window.limit},
            )

        previous_limit = window.limit
        previous_rate = window.rate

    return WindowSet(
        windows=tuple(normalized),
        min_window_limit=normalized[0].limit,
        max_window_span=normalized[-1].span,
    )
