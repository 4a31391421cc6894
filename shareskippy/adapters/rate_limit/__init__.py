"""Rate limiting adapters.

This package provides a small abstraction layer so the service can start with
an in-memory sliding-window limiter and later migrate to a shared store
without changing the API layer.
"""

from shareskippy.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitDecision,
    RateLimitError,
    RateLimitOptions,
)
from shareskippy.adapters.rate_limit.in_memory import (
    InMemorySlidingWindowRateLimiter,
    create_limiter,
    default_key_generator,
)

__all__ = [
    "AbstractRateLimiter",
    "InMemorySlidingWindowRateLimiter",
    "RateLimitDecision",
    "RateLimitError",
    "RateLimitOptions",
    "create_limiter",
    "default_key_generator",
]
