"""Rate limiter interfaces.

The HTTP layer should depend on this abstraction (not the concrete
implementation) so the storage backend can be swapped later (e.g., a shared
key-value store) with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol


DEFAULT_WINDOW_MS = 15 * 60 * 1000
DEFAULT_MAX_REQUESTS = 100
DEFAULT_MESSAGE = "Too many requests from this IP, please try again later."


class _Headers(Protocol):
    def get(self, key: str) -> str | None: ...


class HeaderSource(Protocol):
    """Anything exposing case-insensitive ``headers.get(name)``.

    Starlette's ``Request`` satisfies this protocol.
    """

    @property
    def headers(self) -> _Headers: ...


KeyGenerator = Callable[[HeaderSource], str]


@dataclass(frozen=True)
class RateLimitOptions:
    """Configuration for a sliding-window limiter.

    Attributes:
        window_ms: Width of the trailing window in milliseconds.
        max_requests: Max admitted calls per key inside any trailing window.
        message: Human-readable explanation returned on rejection.
        key_generator: Derives the bucket key from a request. ``None`` uses
            the forwarded-address based default.
    """

    window_ms: int = DEFAULT_WINDOW_MS
    max_requests: int = DEFAULT_MAX_REQUESTS
    message: str = DEFAULT_MESSAGE
    key_generator: KeyGenerator | None = None


@dataclass(frozen=True)
class RateLimitError:
    """Rejection payload: message plus whole seconds until capacity frees."""

    message: str
    retry_after: int


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a rate limit check.

    Attributes:
        success: Whether the call was admitted (and recorded).
        error: Rejection details, only present when ``success`` is False.
    """

    success: bool
    error: RateLimitError | None = None

    @classmethod
    def allowed(cls) -> "RateLimitDecision":
        return cls(success=True)

    @classmethod
    def rejected(cls, message: str, retry_after: int) -> "RateLimitDecision":
        return cls(success=False, error=RateLimitError(message=message, retry_after=retry_after))

    def to_dict(self) -> dict[str, Any]:
        """Render the decision in its wire shape (``retryAfter`` in camelCase)."""
        if self.success or self.error is None:
            return {"success": True}
        return {
            "success": False,
            "error": {"message": self.error.message, "retryAfter": self.error.retry_after},
        }


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def key_for(self, request: HeaderSource) -> str:
        """Derive the quota bucket key for a request."""
        raise NotImplementedError

    @abstractmethod
    def consume(self, key: str) -> RateLimitDecision:
        """Admit or reject one call for an already derived key.

        Args:
            key: Bucket key (e.g., client address).

        Returns:
            RateLimitDecision describing whether it was admitted.
        """
        raise NotImplementedError

    def check(self, request: HeaderSource) -> RateLimitDecision:
        """Decide whether to admit the given request.

        Args:
            request: Object exposing case-insensitive header lookup.

        Returns:
            RateLimitDecision describing whether it was admitted.
        """
        return self.consume(self.key_for(request))

    def __call__(self, request: HeaderSource) -> RateLimitDecision:
        return self.check(request)


def describe_options(options: RateLimitOptions) -> Mapping[str, Any]:
    """Return loggable option values (the key generator is not serializable)."""
    return {
        "window_ms": options.window_ms,
        "max_requests": options.max_requests,
        "custom_key": options.key_generator is not None,
    }
