"""Tests for the chat endpoint.

Drives the full pipeline (method → rate limit → auth → payload → gateway)
through the FastAPI test client with the OpenAI SDK call patched out.
"""

from typing import Iterator
from unittest.mock import AsyncMock, MagicMock, Mock

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from openai import APIConnectionError, APIStatusError, APITimeoutError

from conftest import make_completion
from flashcard_api.adapters.rate_limit.in_memory import FixedWindowRateLimiter
from flashcard_api.api.routes.chat import get_completion_gateway
from flashcard_api.core.config import settings
from flashcard_api.core.rate_limit import get_rate_limiter
from flashcard_api.services.completion_service import SYSTEM_PROMPT

UPSTREAM_URL = "https://api.openai.com/v1/chat/completions"


def _headers(auth_headers: dict[str, str], ip: str) -> dict[str, str]:
    return {**auth_headers, "x-forwarded-for": ip}


@pytest.fixture
def spy_gateway(app: FastAPI, client: TestClient) -> MagicMock:
    gateway = MagicMock()
    gateway.complete = AsyncMock(return_value="unused")
    app.dependency_overrides[get_completion_gateway] = lambda: gateway
    return gateway


class TestMethodValidation:
    @pytest.mark.parametrize("method", ["GET", "PUT", "PATCH", "DELETE", "TRACE", "PROPFIND"])
    def test_rejects_non_post(self, client: TestClient, upstream_create: AsyncMock, auth_headers, method: str):
        response = client.request(method, "/api/chat", headers=auth_headers, json={"message": "hola"})

        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}
        assert "X-RateLimit-Limit" not in response.headers
        upstream_create.assert_not_awaited()

    def test_rejected_methods_do_not_consume_quota(self, client: TestClient, upstream_create: AsyncMock, auth_headers):
        upstream_create.return_value = make_completion("Hello")
        headers = _headers(auth_headers, "192.168.5.5")

        client.get("/api/chat", headers=headers)
        response = client.post("/api/chat", headers=headers, json={"message": "hola"})

        assert response.headers["X-RateLimit-Remaining"] == "99"


class TestRateLimiting:
    def test_allows_requests_under_limit(self, client: TestClient, upstream_create: AsyncMock, auth_headers):
        upstream_create.return_value = make_completion("Hello in English")

        response = client.post(
            "/api/chat", headers=_headers(auth_headers, "192.168.1.1"), json={"message": "hola"}
        )

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit"] == "100"
        assert response.headers["X-RateLimit-Remaining"] == "99"
        assert int(response.headers["X-RateLimit-Reset"]) > 0

    def test_rejects_requests_over_limit(self, client: TestClient, upstream_create: AsyncMock, auth_headers):
        upstream_create.return_value = make_completion("Response")
        headers = _headers(auth_headers, "192.168.1.2")

        for n in range(1, 101):
            response = client.post("/api/chat", headers=headers, json={"message": "test"})
            assert response.status_code == 200
            assert response.headers["X-RateLimit-Remaining"] == str(100 - n)

        response = client.post("/api/chat", headers=headers, json={"message": "test"})

        assert response.status_code == 429
        body = response.json()
        assert body["error"] == "Rate limit exceeded"
        assert body["resetTime"] == int(response.headers["X-RateLimit-Reset"])
        assert body["message"].startswith("Too many requests. Rate limit resets at ")
        assert body["message"].endswith("Z")
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert "Retry-After" in response.headers
        assert upstream_create.await_count == 100

    def test_rate_limit_checked_before_auth(self, app: FastAPI, client: TestClient, upstream_create: AsyncMock):
        limiter = FixedWindowRateLimiter(max_requests=1, window_ms=60_000)
        app.dependency_overrides[get_rate_limiter] = lambda: limiter
        headers = {"x-forwarded-for": "172.16.0.1"}

        first = client.post("/api/chat", headers=headers, json={"message": "hola"})
        second = client.post("/api/chat", headers=headers, json={"message": "hola"})

        assert first.status_code == 401
        assert second.status_code == 429

    def test_new_window_after_reset(self, app: FastAPI, client: TestClient, upstream_create: AsyncMock, auth_headers):
        upstream_create.return_value = make_completion("Hi")
        clock = Mock(return_value=1_000.0)
        limiter = FixedWindowRateLimiter(max_requests=2, window_ms=60_000, clock=clock)
        app.dependency_overrides[get_rate_limiter] = lambda: limiter
        headers = _headers(auth_headers, "10.1.1.1")

        assert client.post("/api/chat", headers=headers, json={"message": "a"}).status_code == 200
        assert client.post("/api/chat", headers=headers, json={"message": "b"}).status_code == 200
        denied = client.post("/api/chat", headers=headers, json={"message": "c"})
        assert denied.status_code == 429
        assert denied.json()["resetTime"] == 1_060_000

        clock.return_value = 1_061.0
        response = client.post("/api/chat", headers=headers, json={"message": "d"})

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Remaining"] == "1"
        assert response.headers["X-RateLimit-Reset"] == str(1_061_000 + 60_000)

    def test_first_forwarded_for_entry_is_the_client(self, app: FastAPI, client: TestClient, upstream_create: AsyncMock, auth_headers):
        upstream_create.return_value = make_completion("ok")
        limiter = FixedWindowRateLimiter(max_requests=1, window_ms=60_000)
        app.dependency_overrides[get_rate_limiter] = lambda: limiter

        first = client.post(
            "/api/chat",
            headers={**auth_headers, "x-forwarded-for": "203.0.113.7, 10.0.0.1"},
            json={"message": "hola"},
        )
        same_client = client.post(
            "/api/chat",
            headers={**auth_headers, "x-forwarded-for": "203.0.113.7, 10.0.0.2"},
            json={"message": "hola"},
        )
        proxy_hop = client.post(
            "/api/chat",
            headers={**auth_headers, "x-forwarded-for": "10.0.0.1"},
            json={"message": "hola"},
        )

        assert first.status_code == 200
        assert same_client.status_code == 429
        assert proxy_hop.status_code == 200

    def test_real_ip_then_peer_address(self, app: FastAPI, client: TestClient, upstream_create: AsyncMock, auth_headers):
        upstream_create.return_value = make_completion("ok")
        limiter = FixedWindowRateLimiter(max_requests=1, window_ms=60_000)
        app.dependency_overrides[get_rate_limiter] = lambda: limiter

        real_ip = client.post("/api/chat", headers={**auth_headers, "x-real-ip": "198.51.100.4"}, json={"message": "a"})
        peer = client.post("/api/chat", headers=auth_headers, json={"message": "a"})
        peer_again = client.post("/api/chat", headers=auth_headers, json={"message": "a"})
        real_ip_again = client.post("/api/chat", headers={**auth_headers, "x-real-ip": "198.51.100.4"}, json={"message": "a"})

        assert real_ip.status_code == 200
        assert peer.status_code == 200
        assert peer_again.status_code == 429
        assert real_ip_again.status_code == 429


class TestAuthentication:
    def test_missing_authorization_header(self, client: TestClient, upstream_create: AsyncMock):
        response = client.post("/api/chat", json={"message": "hola"})

        assert response.status_code == 401
        assert response.json() == {"error": "Authorization header required"}
        upstream_create.assert_not_awaited()

    def test_invalid_api_key(self, client: TestClient, upstream_create: AsyncMock):
        response = client.post(
            "/api/chat",
            headers={"authorization": "Bearer invalid-key", "x-forwarded-for": "192.168.1.3"},
            json={"message": "hola"},
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid API key"}
        upstream_create.assert_not_awaited()

    def test_malformed_authorization_header(self, client: TestClient, upstream_create: AsyncMock):
        response = client.post(
            "/api/chat",
            headers={"authorization": "InvalidFormat test-api-key-123", "x-forwarded-for": "192.168.1.4"},
            json={"message": "hola"},
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Authorization header required"}

    def test_valid_api_key(self, client: TestClient, upstream_create: AsyncMock, auth_headers):
        upstream_create.return_value = make_completion('It means "hello" in English.')

        response = client.post(
            "/api/chat", headers=_headers(auth_headers, "10.0.0.1"), json={"message": "hola"}
        )

        assert response.status_code == 200
        assert response.json() == {"response": 'It means "hello" in English.'}

    def test_auth_failures_still_carry_rate_limit_headers(self, client: TestClient, upstream_create: AsyncMock, auth_headers):
        upstream_create.return_value = make_completion("ok")
        ip = "192.168.7.7"

        ok = client.post("/api/chat", headers=_headers(auth_headers, ip), json={"message": "hola"})
        missing = client.post("/api/chat", headers={"x-forwarded-for": ip}, json={"message": "hola"})
        wrong = client.post(
            "/api/chat",
            headers={"authorization": "Bearer nope", "x-forwarded-for": ip},
            json={"message": "hola"},
        )

        assert [r.headers["X-RateLimit-Remaining"] for r in (ok, missing, wrong)] == ["99", "98", "97"]
        assert {r.headers["X-RateLimit-Limit"] for r in (ok, missing, wrong)} == {"100"}
        assert len({r.headers["X-RateLimit-Reset"] for r in (ok, missing, wrong)}) == 1


class TestMessageValidation:
    HEADERS = {"x-forwarded-for": "192.168.1.6"}

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"message": ""},
            {"message": None},
            {"message": 42},
            {"text": "hola"},
        ],
    )
    def test_rejects_missing_or_empty_message(self, client: TestClient, spy_gateway: MagicMock, auth_headers, body):
        response = client.post("/api/chat", headers={**auth_headers, **self.HEADERS}, json=body)

        assert response.status_code == 400
        assert response.json() == {"error": "Message is required"}
        assert response.headers["X-RateLimit-Remaining"] == "99"
        spy_gateway.complete.assert_not_awaited()

    @pytest.mark.parametrize("raw", [b"", b"not json", b"[\"hola\"]", b"\"hola\""])
    def test_rejects_unusable_body(self, client: TestClient, spy_gateway: MagicMock, auth_headers, raw: bytes):
        response = client.post(
            "/api/chat",
            headers={**auth_headers, **self.HEADERS, "content-type": "application/json"},
            content=raw,
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Message is required"}
        spy_gateway.complete.assert_not_awaited()

    def test_auth_is_checked_before_payload(self, client: TestClient, spy_gateway: MagicMock):
        response = client.post("/api/chat", headers=self.HEADERS, json={})

        assert response.status_code == 401
        spy_gateway.complete.assert_not_awaited()


class TestUpstreamIntegration:
    @pytest.fixture
    def headers(self, auth_headers) -> dict[str, str]:
        return _headers(auth_headers, "10.0.0.7")

    def test_successful_response_is_returned_verbatim(self, client: TestClient, upstream_create: AsyncMock, headers):
        content = '  It means "cat" in English.\n'
        upstream_create.return_value = make_completion(content)

        response = client.post("/api/chat", headers=headers, json={"message": "gato"})

        assert response.status_code == 200
        assert response.json() == {"response": content}
        upstream_create.assert_awaited_once_with(
            model="gpt-4o-mini",
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": "gato"},
            ],
            max_tokens=500,
            temperature=0.7,
        )

    @pytest.mark.parametrize(
        "side_effect",
        [
            APIStatusError(
                "Unauthorized",
                response=httpx.Response(401, request=httpx.Request("POST", UPSTREAM_URL)),
                body=None,
            ),
            APIStatusError(
                "Service Unavailable",
                response=httpx.Response(503, request=httpx.Request("POST", UPSTREAM_URL)),
                body=None,
            ),
            APIConnectionError(request=httpx.Request("POST", UPSTREAM_URL)),
            APITimeoutError(request=httpx.Request("POST", UPSTREAM_URL)),
            RuntimeError("Network error"),
        ],
        ids=["status-401", "status-503", "connection", "timeout", "unexpected"],
    )
    def test_upstream_failures_collapse_to_one_error(
        self, client: TestClient, upstream_create: AsyncMock, headers, side_effect
    ):
        upstream_create.side_effect = side_effect

        response = client.post("/api/chat", headers=headers, json={"message": "gato"})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to get response from AI"}
        assert response.headers["X-RateLimit-Remaining"] == "99"

    @pytest.mark.parametrize("content", [None, ""])
    def test_empty_content(self, client: TestClient, upstream_create: AsyncMock, headers, content):
        upstream_create.return_value = make_completion(content)

        response = client.post("/api/chat", headers=headers, json={"message": "gato"})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to get response from AI"}

    def test_no_choices(self, client: TestClient, upstream_create: AsyncMock, headers):
        completion = MagicMock()
        completion.choices = []
        upstream_create.return_value = completion

        response = client.post("/api/chat", headers=headers, json={"message": "gato"})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to get response from AI"}

    def test_upstream_is_called_once_per_request(self, client: TestClient, upstream_create: AsyncMock, headers):
        upstream_create.side_effect = APIConnectionError(request=httpx.Request("POST", UPSTREAM_URL))

        client.post("/api/chat", headers=headers, json={"message": "gato"})

        assert upstream_create.await_count == 1


class TestMissingUpstreamKey:
    @pytest.fixture
    def keyless_client(self, app: FastAPI, monkeypatch) -> Iterator[TestClient]:
        monkeypatch.setattr(settings.llm, "api_key", None)
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        get_completion_gateway.cache_clear()
        yield TestClient(app)
        get_completion_gateway.cache_clear()

    def test_valid_request_reports_upstream_failure(self, keyless_client: TestClient, auth_headers):
        response = keyless_client.post(
            "/api/chat", headers=_headers(auth_headers, "10.0.0.20"), json={"message": "hola"}
        )

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to get response from AI"}
        assert response.headers["X-RateLimit-Remaining"] == "99"

    def test_empty_message_still_rejected_first(self, keyless_client: TestClient, auth_headers):
        response = keyless_client.post(
            "/api/chat", headers=_headers(auth_headers, "10.0.0.21"), json={"message": ""}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Message is required"}
