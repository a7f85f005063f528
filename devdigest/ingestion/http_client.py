"""
Shared HTTP client for the fetchers.

Fetch strategies already give coarse retries (a failed strategy just moves
the ladder on), so this layer only smooths over short blips: one retry by
default, on 429, transient 5xx and connection-level errors. Anything else
is raised straight away as ``HTTPClientError`` for the strategy to record.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from devdigest.config.settings import Settings

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})
RETRYABLE_EXCEPTIONS = (httpx.TimeoutException, httpx.ConnectError, httpx.ReadError)


@dataclass
class RetryConfig:
    """Backoff is ``min(max_backoff, base_delay * 2^attempt)`` plus up to ``jitter_factor`` of jitter."""

    max_retries: int = 1
    max_backoff_seconds: float = 10.0
    base_delay: float = 0.5
    jitter_factor: float = 0.1

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RetryConfig":
        return cls(
            max_retries=settings.max_http_retries,
            max_backoff_seconds=settings.max_backoff_seconds,
        )

    def calculate_backoff(self, attempt: int) -> float:
        delay = min(self.base_delay * (2**attempt), self.max_backoff_seconds)
        return delay + delay * self.jitter_factor * random.random()

    def is_retryable_status(self, status_code: int) -> bool:
        return status_code in RETRYABLE_STATUSES

    def is_retryable_exception(self, exc: Exception) -> bool:
        return isinstance(exc, RETRYABLE_EXCEPTIONS)


class HTTPClientError(Exception):
    """A request that failed for good. ``status_code`` is None for transport errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class RateLimitError(HTTPClientError):
    """Still rate limited (429) after the last retry."""


class HTTPClient:
    """
    Async client with small-scale retries and per-request timeouts.

    One instance is shared by every fetcher in a refresh run. Strategies
    escalate timeouts per request, which is why ``timeout`` can be passed
    on each call.

    Example:
        async with HTTPClient(RetryConfig(max_retries=1)) as client:
            response = await client.get(
                "https://hnrss.org/frontpage",
                headers={"User-Agent": "DevDigest/1.0.0"},
                timeout=20.0,
            )
    """

    def __init__(
        self,
        retry_config: RetryConfig | None = None,
        timeout: float = 30.0,
    ):
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HTTPClient":
        self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        return await self.request(
            "GET", url, params=params or None, headers=headers or None, timeout=timeout
        )

    async def post(
        self,
        url: str,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        auth: tuple[str, str] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Form-encoded POST, used for the Reddit token exchange."""
        return await self.request(
            "POST", url, data=data, headers=headers or None, auth=auth, timeout=timeout
        )

    async def request(
        self, method: str, url: str, timeout: float | None = None, **kwargs: Any
    ) -> httpx.Response:
        """
        Send one request, retrying transient failures.

        Raises:
            RateLimitError: Still 429 after the last attempt.
            HTTPClientError: Any other status >= 400, or a transport error
                after the last attempt.
        """
        if not self._client:
            raise RuntimeError("HTTPClient must be used as async context manager")

        config = self.retry_config
        attempts = config.max_retries + 1
        request_timeout = timeout if timeout is not None else self.timeout

        for attempt in range(attempts):
            final = attempt == attempts - 1
            try:
                response = await self._client.request(
                    method, url, timeout=request_timeout, **kwargs
                )
            except RETRYABLE_EXCEPTIONS as e:
                if final:
                    raise HTTPClientError(
                        f"{method} {url} failed after {attempts} attempts: {e}"
                    ) from e
                await self._backoff(attempt, url, type(e).__name__)
                continue
            except httpx.HTTPError as e:
                raise HTTPClientError(f"{method} {url} failed: {e}") from e

            status = response.status_code
            if config.is_retryable_status(status) and not final:
                await self._backoff(attempt, url, f"status {status}")
                continue

            if status == 429:
                raise RateLimitError(
                    f"Rate limited by {url} after {attempt + 1} attempts",
                    status_code=status,
                    response_body=response.text,
                )
            if status >= 400:
                raise HTTPClientError(
                    f"{method} {url} returned {status}",
                    status_code=status,
                    response_body=response.text,
                )
            return response

        raise HTTPClientError(f"{method} {url} was not attempted (max_retries < 0)")

    async def _backoff(self, attempt: int, url: str, reason: str) -> None:
        delay = self.retry_config.calculate_backoff(attempt)
        logger.warning(
            f"Retrying {url} after {reason} "
            f"(attempt {attempt + 1}/{self.retry_config.max_retries + 1}, sleeping {delay:.2f}s)"
        )
        await asyncio.sleep(delay)
