"""
HTTP layer for upstream provider calls.

Provides:
- RetryConfig: Exponential backoff configuration
- HTTPClient: Async httpx client with automatic retry on 429/5xx and
  transient transport errors

Retries stay inside one provider call. The fetch cycle wraps the whole
call in its own bounded wait, so a slow retry loop is still cut off and
reported as a FetchError.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """
    Exponential backoff configuration for HTTP retries.

    Formula: min(max_backoff, base_delay * 2^attempt) * (1 + random(0, jitter_factor))
    """

    max_retries: int = 3
    max_backoff_seconds: float = 30.0
    base_delay: float = 0.5
    jitter_factor: float = 0.1

    def calculate_backoff(self, attempt: int, retry_after: float | None = None) -> float:
        """
        Calculate backoff duration for a given retry attempt.

        Args:
            attempt: The retry attempt number (0-indexed)
            retry_after: Server-provided delay (429 responses), honoured
                when present and capped at max_backoff_seconds

        Returns:
            Backoff duration in seconds with jitter applied
        """
        if retry_after is not None:
            return min(retry_after, self.max_backoff_seconds)

        delay = min(self.base_delay * (2**attempt), self.max_backoff_seconds)
        return delay + delay * self.jitter_factor * random.random()

    def is_retryable_status(self, status_code: int) -> bool:
        """429 and the transient 5xx family are retried."""
        return status_code in {429, 500, 502, 503, 504}

    def is_retryable_exception(self, exc: Exception) -> bool:
        return isinstance(
            exc,
            (
                httpx.TimeoutException,
                httpx.ConnectError,
                httpx.ReadError,
            ),
        )


class HTTPClientError(Exception):
    """Base exception for HTTP client errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body

    @property
    def is_client_error(self) -> bool:
        """4xx other than 429: the request itself is wrong, upstream is fine."""
        return (
            self.status_code is not None
            and 400 <= self.status_code < 500
            and self.status_code != 429
        )


class RateLimitError(HTTPClientError):
    """Raised when rate limit is hit and all retries exhausted."""


class HTTPClient:
    """
    Async HTTP client with retry logic.

    Can be used as an async context manager or opened once and kept for
    the lifetime of a provider:

        client = HTTPClient(RetryConfig(max_retries=2), headers={...})
        await client.open()
        response = await client.get("https://discord.com/api/v10/invites/abc")
        await client.close()
    """

    def __init__(
        self,
        retry_config: RetryConfig | None = None,
        timeout: float = 10.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self._headers = headers or {}
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=self._headers,
                transport=self._transport,
            )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HTTPClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """
        Perform GET request with retry logic.

        Raises:
            HTTPClientError: On non-retryable errors or after retries exhausted
            RateLimitError: When rate limited and retries exhausted
        """
        if not self._client:
            raise RuntimeError("HTTPClient is not open")

        last_exception: Exception | None = None

        for attempt in range(self.retry_config.max_retries + 1):
            try:
                response = await self._client.get(url, params=params)
            except Exception as e:
                if not self.retry_config.is_retryable_exception(e):
                    raise HTTPClientError(f"Request to {url} failed: {e}") from e

                last_exception = e
                if attempt < self.retry_config.max_retries:
                    backoff = self.retry_config.calculate_backoff(attempt)
                    logger.warning(
                        "Transport error from %s (%s), attempt %d/%d, backing off %.2fs",
                        url, type(e).__name__, attempt + 1,
                        self.retry_config.max_retries + 1, backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                break

            if self.retry_config.is_retryable_status(response.status_code):
                if attempt < self.retry_config.max_retries:
                    backoff = self.retry_config.calculate_backoff(
                        attempt, _retry_after(response),
                    )
                    logger.warning(
                        "Retryable status %d from %s, attempt %d/%d, backing off %.2fs",
                        response.status_code, url, attempt + 1,
                        self.retry_config.max_retries + 1, backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue

                error_cls = RateLimitError if response.status_code == 429 else HTTPClientError
                raise error_cls(
                    f"Request failed with status {response.status_code} after {attempt + 1} attempts",
                    status_code=response.status_code,
                    response_body=response.text,
                )

            if response.status_code >= 400:
                raise HTTPClientError(
                    f"Request failed with status {response.status_code}",
                    status_code=response.status_code,
                    response_body=response.text,
                )

            return response

        raise HTTPClientError(
            f"Request to {url} failed after {self.retry_config.max_retries + 1} attempts: "
            f"{last_exception}"
        ) from last_exception


def _retry_after(response: httpx.Response) -> float | None:
    """Parse a Retry-After header (seconds) if present."""
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None
