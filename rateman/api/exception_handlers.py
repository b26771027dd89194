"""Exception handlers mapping rateman errors to HTTP responses.

Design:
- RateLimitExceededError → 429 with Retry-After / X-RateLimit-Reset
- ValidationAppError → 400 (bad weight from the route configuration or caller)
- Other AppError → 500 (limiter misconfiguration, invariant failures)
- Unexpected Exception → generic 500 (safety net, store outages included)
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from rateman.core.errors import AppError, RateLimitExceededError, ValidationAppError
from rateman.core.logging import hash_key

logger = logging.getLogger(__name__)

RATE_LIMIT_EXCEEDED_MESSAGE = "Rate limit exceeded. Try again later."


def _error_content(exc: AppError) -> dict:
    content: dict = {"code": exc.code, "message": exc.message}
    return {"error": content}


def make_rate_limit_exceeded_handler(
    *,
    include_headers: bool = True,
    clock: Callable[[], float] = time.time,
):
    """Build the 429 handler.

    Args:
        include_headers: Add Retry-After (whole seconds, rounded up) and
            X-RateLimit-Reset (epoch seconds) headers.
        clock: Time source in epoch seconds.
    """

    async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
        retry_after = exc.retry_after_seconds(round(clock() * 1000))

        logger.warning(
            "rate_limit.exceeded",
            extra={
                "limiter": exc.limiter_name,
                "key_hash": hash_key(exc.identifier),
                "retry_after_s": retry_after,
                "request_path": request.url.path,
            },
        )

        headers: dict[str, str] = {}
        if include_headers:
            headers["Retry-After"] = str(math.ceil(retry_after))
            headers["X-RateLimit-Reset"] = str(math.ceil(exc.admits_at / 1000))

        # The exception message names the identifier, which may be a credential.
        content = {
            "error": {
                "code": exc.code,
                "message": RATE_LIMIT_EXCEEDED_MESSAGE,
                "retry_after_seconds": retry_after,
            }
        }

        return JSONResponse(status_code=429, content=content, headers=headers or None)

    return rate_limit_exceeded_handler


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle other rateman errors with a consistent JSON body.

    Validation errors are the caller's fault (400); everything else means the
    limiter itself is misconfigured or broken (500).
    """

    status_code = 400 if isinstance(exc, ValidationAppError) else 500

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "request_path": request.url.path,
        },
    )

    return JSONResponse(status_code=status_code, content=_error_content(exc))


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors, e.g. the store being unreachable.

    Logs the failure for debugging while returning a generic message.
    """

    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
            }
        },
    )


def setup_exception_handlers(
    app: FastAPI,
    *,
    include_headers: bool = True,
    clock: Callable[[], float] = time.time,
) -> None:
    """Register rateman exception handlers with a FastAPI app.

    Example:
        >>> app = FastAPI()
        >>> setup_exception_handlers(app, include_headers=settings.limiter.include_headers)
    """
    app.exception_handler(RateLimitExceededError)(
        make_rate_limit_exceeded_handler(include_headers=include_headers, clock=clock)
    )
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
