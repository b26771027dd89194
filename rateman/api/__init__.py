"""FastAPI integration: per-route limiter dependency and 429 handling."""

from rateman.api.dependencies import client_identifier, rate_limit_dependency
from rateman.api.exception_handlers import setup_exception_handlers

__all__ = ["client_identifier", "rate_limit_dependency", "setup_exception_handlers"]
