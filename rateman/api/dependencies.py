"""Rate limiting dependency for FastAPI routes.

This module wires a ``RateLimiter`` into the HTTP layer.

Identifier strategy:
- Per API key when an X-API-Key header is present, hashed so the raw key
  never reaches the store or an error message.
- Otherwise fall back to the client IP.

Rejections surface as ``RateLimitExceededError`` and are turned into HTTP 429
by the handlers in ``rateman.api.exception_handlers``.
"""

from __future__ import annotations

from typing import Awaitable, Callable

from fastapi import Request

from rateman.core.logging import hash_key
from rateman.limiter.gate import RateLimiter

API_KEY_HEADER = "X-API-Key"


def client_identifier(request: Request) -> str:
    """Build the limiter identifier for the current request.

    Args:
        request: FastAPI request.

    Returns:
        str: Namespaced identifier, ``api_key:<key hash>`` or ``ip:<host>``.
    """

    api_key = request.headers.get(API_KEY_HEADER)
    if api_key:
        return f"api_key:{hash_key(api_key)}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


def rate_limit_dependency(
    limiter: RateLimiter,
    *,
    identifier: Callable[[Request], str] = client_identifier,
    weight: int = 1,
    wait: bool = False,
) -> Callable[[Request], Awaitable[None]]:
    """Create a FastAPI dependency enforcing ``limiter`` on a route.

    Args:
        limiter: Limiter to record attempts with.
        identifier: Maps the request to the identifier attempts are counted for.
        weight: Units each request consumes.
        wait: Hold the request with ``throttle`` until admitted instead of
            rejecting it.

    Returns:
        An async dependency for ``Depends(...)``.

    Example:
        >>> search_limit = rate_limit_dependency(limiter, weight=2)
        >>> @app.get("/search", dependencies=[Depends(search_limit)])
        ... async def search(): ...
    """

    async def enforce_rate_limit(request: Request) -> None:
        ident = identifier(request)
        if wait:
            await limiter.throttle(ident, weight)
        else:
            await limiter.attempt(ident, weight)

    return enforce_rate_limit
