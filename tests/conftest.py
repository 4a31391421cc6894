"""Pytest configuration and fixtures shared across all test modules.

Environment defaults must be in place before any module imports settings.
"""

import os

os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from types import SimpleNamespace

import pytest
from starlette.datastructures import Headers

from shareskippy.core.rate_limit import reset_rate_limiters


class FakeClock:
    """Deterministic millisecond clock used to drive window expiry."""

    def __init__(self, start: int = 1_735_725_600_000) -> None:
        self.current = start

    def __call__(self) -> int:
        return self.current

    def advance(self, ms: int) -> None:
        self.current += ms


def make_request(ip: str | None = None, headers: dict[str, str] | None = None) -> SimpleNamespace:
    """Build a request-like object with case-insensitive header lookup."""

    raw = dict(headers or {})
    if ip is not None:
        raw.setdefault("X-Real-IP", ip)
    return SimpleNamespace(headers=Headers(headers=raw))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _fresh_rate_limiters():
    reset_rate_limiters()
    yield
    reset_rate_limiters()
