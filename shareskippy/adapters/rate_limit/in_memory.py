"""In-memory sliding-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around the registry and per-key timestamps.
- Each limiter owns its registry, so differently configured limiters never
  share quota even when their keys collide.
"""

from __future__ import annotations

import logging
import math
import random as _random
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable

from shareskippy.adapters.rate_limit.base import (
    AbstractRateLimiter,
    HeaderSource,
    RateLimitDecision,
    RateLimitOptions,
    describe_options,
)

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def default_key_generator(request: HeaderSource) -> str:
    """Derive the bucket key from the client address headers.

    Uses the first entry of ``X-Forwarded-For`` when present, then
    ``X-Real-IP``, then the literal ``"unknown"``.
    """

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0]
    return request.headers.get("x-real-ip") or UNKNOWN_CLIENT


@dataclass
class RateLimitEntry:
    """Sliding-window state for one key."""

    reset_time: int
    timestamps: list[int] = field(default_factory=list)


class InMemorySlidingWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting admitted calls inside a trailing time window.

    A call is admitted when fewer than ``max_requests`` calls for the same key
    were admitted in ``(now - window_ms, now]``. Stale timestamps are pruned
    lazily on the next access for the key; long-idle keys are dropped by an
    occasional registry sweep.

    Important:
        This limiter is per-process only. If the API runs with multiple
        workers, each worker enforces its own independent limits.
    """

    def __init__(
        self,
        options: RateLimitOptions | None = None,
        *,
        clock: Callable[[], int] = _now_ms,
        random: Callable[[], float] = _random.random,
        sweep_probability: float = 0.01,
    ) -> None:
        """Initialize the limiter.

        Args:
            options: Window, quota, message and key derivation.
            clock: Time source returning UNIX time in milliseconds.
            random: Source of uniform floats in ``[0, 1)`` deciding sweeps.
            sweep_probability: Chance per call of sweeping idle keys.

        Raises:
            ValueError: If window, quota or sweep probability are invalid.
        """
        options = options or RateLimitOptions()
        if options.window_ms < 1:
            raise ValueError("window_ms must be >= 1")
        if options.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if not 0.0 <= sweep_probability <= 1.0:
            raise ValueError("sweep_probability must be between 0 and 1")

        self._options = options
        self._key_generator = options.key_generator or default_key_generator
        self._clock = clock
        self._random = random
        self._sweep_probability = sweep_probability
        self._lock = threading.RLock()
        self._entries: dict[str, RateLimitEntry] = {}

        logger.debug("rate_limit.limiter_created", extra=dict(describe_options(options)))

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemorySlidingWindowRateLimiter(window_ms={self._options.window_ms}, "
            f"max_requests={self._options.max_requests}, keys={len(self._entries)})"
        )

    @property
    def options(self) -> RateLimitOptions:
        return self._options

    def key_for(self, request: HeaderSource) -> str:
        return self._key_generator(request)

    def consume(self, key: str) -> RateLimitDecision:
        """Admit or reject one call for ``key``, recording it when admitted.

        Returns:
            RateLimitDecision; rejections carry the configured message and
            the seconds until the oldest counted call leaves the window.
        """
        window_ms = self._options.window_ms

        with self._lock:
            now = self._clock()
            window_start = now - window_ms

            entry = self._entries.get(key)
            if entry is None:
                entry = RateLimitEntry(reset_time=now + window_ms)

            entry.timestamps = [ts for ts in entry.timestamps if ts > window_start]

            if len(entry.timestamps) >= self._options.max_requests:
                decision = RateLimitDecision.rejected(
                    self._options.message,
                    self._retry_after(entry.timestamps[0], now),
                )
            else:
                entry.timestamps.append(now)
                decision = RateLimitDecision.allowed()
            self._entries[key] = entry

            if self._random() < self._sweep_probability:
                self._sweep_locked(now)

        return decision

    def stats(self) -> dict[str, Any]:
        """Return lightweight limiter metrics without exposing keys."""

        with self._lock:
            return {
                "keys": len(self._entries),
                "window_ms": self._options.window_ms,
                "max_requests": self._options.max_requests,
            }

    def _retry_after(self, oldest: int, now: int) -> int:
        # Clamped: clock skew must not produce a negative hint.
        return max(0, math.ceil((oldest + self._options.window_ms - now) / 1000))

    def _sweep_locked(self, now: int) -> None:
        window_start = now - self._options.window_ms
        idle_keys = [
            key
            for key, entry in self._entries.items()
            if entry.reset_time < now and not any(ts > window_start for ts in entry.timestamps)
        ]
        for key in idle_keys:
            del self._entries[key]

        if idle_keys:
            logger.debug(
                "rate_limit.swept",
                extra={"removed": len(idle_keys), "remaining": len(self._entries)},
            )


def create_limiter(
    options: RateLimitOptions | None = None, **overrides: Any
) -> InMemorySlidingWindowRateLimiter:
    """Build a limiter callable as ``limiter(request) -> RateLimitDecision``.

    Args:
        options: Base configuration (defaults: 15 minutes, 100 requests).
        **overrides: ``RateLimitOptions`` fields replacing those of ``options``
            plus the limiter keyword arguments (``clock``, ``random``,
            ``sweep_probability``).

    Example:
        >>> limiter = create_limiter(max_requests=5)
        >>> limiter(request).success
        True
    """

    limiter_kwargs = {
        name: overrides.pop(name)
        for name in ("clock", "random", "sweep_probability")
        if name in overrides
    }
    resolved = replace(options or RateLimitOptions(), **overrides)
    return InMemorySlidingWindowRateLimiter(resolved, **limiter_kwargs)
