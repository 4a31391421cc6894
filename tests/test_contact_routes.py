"""Tests for the contact endpoint and HTTP rate limiting.

The limiter cache is reset before every test (see conftest.py), so each test
starts with a fresh quota for every profile.
"""

import logging
from dataclasses import replace
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from conftest import make_request
from shareskippy.adapters.rate_limit import InMemorySlidingWindowRateLimiter
from shareskippy.adapters.rate_limit.profiles import PROFILES
from shareskippy.core.config import settings
from shareskippy.core.errors import RateLimitAppError
from shareskippy.core.rate_limit import enforce_rate_limit, get_rate_limiter, rate_limit_dependency
from shareskippy.main import app


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def contact_payload() -> dict[str, str]:
    return {
        "name": "Jane Walker",
        "email": "jane@example.com",
        "category": "general",
        "subject": "Volunteering",
        "message": "I would love to walk dogs on weekends.",
    }


def _post(client: TestClient, payload: dict, ip: str = "1.2.3.4"):
    return client.post("/v1/contact", json=payload, headers={"X-Forwarded-For": ip})


def test_accepts_valid_submission(client: TestClient, contact_payload: dict) -> None:
    resp = _post(client, contact_payload)

    assert resp.status_code == 200
    assert resp.json() == {"ok": True}


def test_honeypot_submission_is_acknowledged(client: TestClient, contact_payload: dict) -> None:
    resp = _post(client, {**contact_payload, "hp": "http://spam.example"})

    assert resp.status_code == 200
    assert resp.json() == {"ok": True}


@pytest.mark.parametrize(
    "override",
    [
        {"name": "J"},
        {"email": "not-an-email"},
        {"category": "billing"},
        {"subject": "Hi"},
        {"message": "hey"},
        {"message": "x" * 2001},
    ],
)
def test_rejects_invalid_payload(client: TestClient, contact_payload: dict, override: dict) -> None:
    resp = _post(client, {**contact_payload, **override})

    assert resp.status_code == 422


def test_sixth_submission_is_throttled(client: TestClient, contact_payload: dict) -> None:
    for _ in range(5):
        assert _post(client, contact_payload).status_code == 200

    resp = _post(client, contact_payload)

    assert resp.status_code == 429
    assert resp.headers["Retry-After"] == "600"
    assert resp.headers["X-RateLimit-Limit"] == "5"
    error = resp.json()["error"]
    assert error["code"] == "rate_limit_exceeded"
    assert error["message"] == "Too many requests. Please try again later."
    assert error["details"]["retry_after"] == 600


def test_throttling_is_per_client(client: TestClient, contact_payload: dict) -> None:
    for _ in range(5):
        _post(client, contact_payload, ip="1.2.3.4")
    assert _post(client, contact_payload, ip="1.2.3.4").status_code == 429

    assert _post(client, contact_payload, ip="5.6.7.8").status_code == 200


def test_forwarded_chain_uses_first_hop(client: TestClient, contact_payload: dict) -> None:
    for _ in range(5):
        _post(client, contact_payload, ip="1.2.3.4, 10.0.0.1")

    assert _post(client, contact_payload, ip="1.2.3.4, 10.0.0.2").status_code == 429


def test_api_profile_applies_to_v1_routes(
    client: TestClient, contact_payload: dict, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(settings.app, "api_rate_limit_max", 2)

    assert _post(client, contact_payload).status_code == 200
    assert _post(client, contact_payload).status_code == 200

    resp = _post(client, contact_payload)
    assert resp.status_code == 429
    assert resp.json()["error"]["message"] == "Too many API requests, please try again later."
    assert resp.headers["Retry-After"] == "900"


def test_health_is_not_rate_limited(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings.app, "api_rate_limit_max", 1)

    for _ in range(5):
        assert client.get("/health").status_code == 200


def test_disabled_rate_limiting_admits_everything(
    client: TestClient, contact_payload: dict, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(settings.app, "rate_limit_enabled", False)

    for _ in range(10):
        assert _post(client, contact_payload).status_code == 200


def test_limit_header_can_be_disabled(
    client: TestClient, contact_payload: dict, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(settings.app, "rate_limit_include_headers", False)
    monkeypatch.setattr(settings.app, "contact_rate_limit_max", 1)

    _post(client, contact_payload)
    resp = _post(client, contact_payload)

    assert resp.status_code == 429
    assert "Retry-After" in resp.headers
    assert "X-RateLimit-Limit" not in resp.headers


def test_exceeded_log_hashes_client_key(
    client: TestClient,
    contact_payload: dict,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    monkeypatch.setattr(settings.app, "contact_rate_limit_max", 1)

    _post(client, contact_payload, ip="203.0.113.7")
    with caplog.at_level(logging.WARNING, logger="shareskippy.core.rate_limit"):
        _post(client, contact_payload, ip="203.0.113.7")

    records = [r for r in caplog.records if r.getMessage() == "rate_limit.exceeded"]
    assert len(records) == 1
    assert records[0].profile == "contact"
    assert "203.0.113.7" not in records[0].key_hash


def test_limiter_rebuilt_when_settings_change(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_rate_limiter("strict")
    assert get_rate_limiter("strict") is first

    monkeypatch.setattr(settings.app, "strict_rate_limit_max", 3)
    rebuilt = get_rate_limiter("strict")

    assert rebuilt is not first
    assert isinstance(rebuilt, InMemorySlidingWindowRateLimiter)
    assert rebuilt.options.max_requests == 3


def test_unknown_profile_is_rejected() -> None:
    with pytest.raises(ValueError):
        rate_limit_dependency("nope")


def test_honeypot_and_invalid_posts_do_not_spend_contact_quota(
    client: TestClient, contact_payload: dict
) -> None:
    for _ in range(5):
        assert _post(client, {**contact_payload, "hp": "spam"}, ip="7.7.7.7").status_code == 200
    for _ in range(5):
        assert _post(client, {**contact_payload, "name": "J"}, ip="7.7.7.7").status_code == 422

    assert _post(client, contact_payload, ip="7.7.7.7").status_code == 200


def test_received_log_omits_sender_email(
    client: TestClient, contact_payload: dict, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.INFO, logger="shareskippy.api.routes.contact"):
        _post(client, contact_payload)

    records = [r for r in caplog.records if r.getMessage() == "contact.received"]
    assert len(records) == 1
    assert not hasattr(records[0], "email")
    assert records[0].sender_hash


def test_rejection_derives_key_once(monkeypatch: pytest.MonkeyPatch) -> None:
    key_generator = Mock(return_value="client-key")
    monkeypatch.setitem(PROFILES, "strict", replace(PROFILES["strict"], key_generator=key_generator))
    monkeypatch.setattr(settings.app, "strict_rate_limit_max", 1)
    request = make_request("1.1.1.1")

    enforce_rate_limit("strict", request)
    with pytest.raises(RateLimitAppError) as exc_info:
        enforce_rate_limit("strict", request)

    assert key_generator.call_count == 2
    assert exc_info.value.retry_after == 60
    assert exc_info.value.message == "Too many requests, please slow down."
