"""Pre-configured limiter profiles used by the API.

Profiles are plain options; callers build their own limiter instances from
them so no quota state is shared through module globals.
"""

from __future__ import annotations

from shareskippy.adapters.rate_limit.base import HeaderSource, RateLimitOptions
from shareskippy.adapters.rate_limit.in_memory import default_key_generator

FIFTEEN_MINUTES_MS = 15 * 60 * 1000
TEN_MINUTES_MS = 10 * 60 * 1000
ONE_MINUTE_MS = 60 * 1000


def contact_key_generator(request: HeaderSource) -> str:
    """Namespace contact form submissions per client address."""
    return f"contact:submit:{default_key_generator(request)}"


AUTH_RATE_LIMIT = RateLimitOptions(
    window_ms=FIFTEEN_MINUTES_MS,
    max_requests=5,
    message="Too many authentication attempts, please try again later.",
)

API_RATE_LIMIT = RateLimitOptions(
    window_ms=FIFTEEN_MINUTES_MS,
    max_requests=100,
    message="Too many API requests, please try again later.",
)

STRICT_RATE_LIMIT = RateLimitOptions(
    window_ms=ONE_MINUTE_MS,
    max_requests=10,
    message="Too many requests, please slow down.",
)

CONTACT_RATE_LIMIT = RateLimitOptions(
    window_ms=TEN_MINUTES_MS,
    max_requests=5,
    message="Too many requests. Please try again later.",
    key_generator=contact_key_generator,
)

PROFILES: dict[str, RateLimitOptions] = {
    "auth": AUTH_RATE_LIMIT,
    "api": API_RATE_LIMIT,
    "strict": STRICT_RATE_LIMIT,
    "contact": CONTACT_RATE_LIMIT,
}
