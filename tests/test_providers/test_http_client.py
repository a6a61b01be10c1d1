"""Tests for the retrying HTTP client."""

import httpx
import pytest
import respx

from community_pulse.providers.http_client import (
    HTTPClient,
    HTTPClientError,
    RateLimitError,
    RetryConfig,
)

URL = "https://upstream.test/resource"


def _client(max_retries: int = 2) -> HTTPClient:
    return HTTPClient(retry_config=RetryConfig(max_retries=max_retries, base_delay=0.0))


class TestRetryConfig:
    def test_backoff_grows_and_caps(self):
        config = RetryConfig(base_delay=1.0, max_backoff_seconds=4.0, jitter_factor=0.0)

        assert config.calculate_backoff(0) == 1.0
        assert config.calculate_backoff(1) == 2.0
        assert config.calculate_backoff(5) == 4.0

    def test_retry_after_honoured_and_capped(self):
        config = RetryConfig(max_backoff_seconds=10.0)

        assert config.calculate_backoff(0, retry_after=3.0) == 3.0
        assert config.calculate_backoff(0, retry_after=99.0) == 10.0

    def test_retryable_statuses(self):
        config = RetryConfig()
        assert config.is_retryable_status(429)
        assert config.is_retryable_status(503)
        assert not config.is_retryable_status(404)


class TestHTTPClient:
    @respx.mock
    async def test_success(self):
        respx.get(URL).mock(return_value=httpx.Response(200, json={"ok": True}))

        async with _client() as client:
            response = await client.get(URL)

        assert response.json() == {"ok": True}

    @respx.mock
    async def test_retries_then_succeeds(self):
        route = respx.get(URL).mock(side_effect=[
            httpx.Response(503),
            httpx.Response(200, json={"ok": True}),
        ])

        async with _client() as client:
            response = await client.get(URL)

        assert response.status_code == 200
        assert route.call_count == 2

    @respx.mock
    async def test_rate_limit_exhausted(self):
        respx.get(URL).mock(return_value=httpx.Response(429, headers={"Retry-After": "0"}))

        async with _client(max_retries=1) as client:
            with pytest.raises(RateLimitError) as exc_info:
                await client.get(URL)

        assert exc_info.value.status_code == 429
        assert not exc_info.value.is_client_error

    @respx.mock
    async def test_client_error_not_retried(self):
        route = respx.get(URL).mock(return_value=httpx.Response(404, text="Unknown Invite"))

        async with _client() as client:
            with pytest.raises(HTTPClientError) as exc_info:
                await client.get(URL)

        assert route.call_count == 1
        assert exc_info.value.is_client_error
        assert exc_info.value.response_body == "Unknown Invite"

    @respx.mock
    async def test_transport_error_retried(self):
        route = respx.get(URL).mock(side_effect=[
            httpx.ConnectError("refused"),
            httpx.Response(200, json={}),
        ])

        async with _client() as client:
            response = await client.get(URL)

        assert response.status_code == 200
        assert route.call_count == 2

    async def test_get_requires_open(self):
        with pytest.raises(RuntimeError, match="not open"):
            await _client().get(URL)
