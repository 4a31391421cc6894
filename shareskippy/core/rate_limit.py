"""Rate limiting dependencies for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer and is the
only place that translates a rejected decision into a 429 response.

Design goals:
- Minimal coupling: routes depend on ``rate_limit_dependency(profile)`` or
  call ``enforce_rate_limit(profile, request)`` once their own checks pass.
- Swap-friendly: the storage backend sits behind ``AbstractRateLimiter``.
- One limiter per profile, so profiles never share quota.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from dataclasses import replace
from typing import Awaitable, Callable

from fastapi import Request

from shareskippy.adapters.rate_limit.base import AbstractRateLimiter, RateLimitOptions
from shareskippy.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from shareskippy.adapters.rate_limit.profiles import PROFILES
from shareskippy.core.config import settings
from shareskippy.core.errors import ErrorDetails, RateLimitAppError

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_limiters: dict[str, tuple[RateLimitOptions, AbstractRateLimiter]] = {}


def _resolve_options(profile: str) -> RateLimitOptions:
    """Overlay the configured window/quota on the profile's defaults."""
    try:
        base = PROFILES[profile]
    except KeyError as exc:
        raise ValueError(f"unknown rate limit profile: {profile!r}") from exc

    return replace(
        base,
        window_ms=getattr(settings.app, f"{profile}_rate_limit_window_ms"),
        max_requests=getattr(settings.app, f"{profile}_rate_limit_max"),
    )


def _cached_limiter(profile: str) -> tuple[RateLimitOptions, AbstractRateLimiter]:
    options = _resolve_options(profile)
    with _lock:
        cached = _limiters.get(profile)
        if cached is None or cached[0] != options:
            cached = (options, InMemorySlidingWindowRateLimiter(options))
            _limiters[profile] = cached
            logger.info(
                "rate_limit.configured",
                extra={
                    "profile": profile,
                    "window_ms": options.window_ms,
                    "max_requests": options.max_requests,
                },
            )
        return cached


def get_rate_limiter(profile: str) -> AbstractRateLimiter:
    """Return the process-wide limiter for a profile.

    The instance is cached to preserve state across requests. If the
    profile's configuration changes (primarily in tests), it is rebuilt.

    Raises:
        ValueError: If the profile is unknown.
    """

    return _cached_limiter(profile)[1]

def reset_rate_limiters() -> None:
    """Drop all cached limiters (and their quota state)."""
    with _lock:
        _limiters.clear()


def _hash_limiter_key(key: str) -> str:
    """Hash the limiter key for logging without exposing client addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def enforce_rate_limit(profile: str, request: Request) -> None:
    """Consume one unit of the profile's quota for this request.

    Routes that must validate or filter a submission before it counts call
    this directly instead of using ``rate_limit_dependency``.

    Raises:
        RateLimitAppError: When the client exceeded the profile's quota.
        ValueError: If the profile is unknown.
    """

    if not settings.app.rate_limit_enabled:
        return

    options, limiter = _cached_limiter(profile)
    key = limiter.key_for(request)
    decision = limiter.consume(key)
    if decision.success or decision.error is None:
        return

    logger.warning(
        "rate_limit.exceeded",
        extra={
            "profile": profile,
            "key_hash": _hash_limiter_key(key),
            "limit": options.max_requests,
            "window_ms": options.window_ms,
            "retry_after_s": decision.error.retry_after,
        },
    )

    details: ErrorDetails = {"retry_after": decision.error.retry_after}
    if settings.app.rate_limit_include_headers:
        details["limit"] = options.max_requests
    raise RateLimitAppError(
        code="rate_limit_exceeded",
        message=decision.error.message,
        details=details,
    )


def rate_limit_dependency(profile: str) -> Callable[[Request], Awaitable[None]]:
    """Build a FastAPI dependency enforcing the given profile.

    The dependency runs before body validation, so every request reaching
    the route counts against the quota.

    Usage:
        app.include_router(router, dependencies=[Depends(rate_limit_dependency("api"))])

    Raises:
        ValueError: If the profile is unknown.
    """

    _resolve_options(profile)

    async def enforce_profile_rate_limit(request: Request) -> None:
        enforce_rate_limit(profile, request)

    enforce_profile_rate_limit.__name__ = f"enforce_{profile}_rate_limit"
    return enforce_profile_rate_limit
