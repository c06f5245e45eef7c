"""
API Dependencies package.

Cross-cutting concerns: rate limiting and request size limits.
"""

from .rate_limit import (
    RateLimiter,
    enforce_rate_limit,
    get_client_id,
    get_rate_limiter,
    reset_rate_limiter,
)
from .request_size import limit_request_size

__all__ = [
    "RateLimiter",
    "enforce_rate_limit",
    "get_client_id",
    "get_rate_limiter",
    "reset_rate_limiter",
    "limit_request_size",
]
