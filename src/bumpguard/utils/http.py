"""Async HTTP client with rate limiting and retries."""

import asyncio
import time
from typing import Any

import httpx

from bumpguard.errors import NetworkError, RateLimitError
from bumpguard.utils.logging import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """Token bucket shared by every request made to one service."""

    def __init__(self, requests_per_window: int, window_seconds: float) -> None:
        """Initialize the rate limiter.

        Args:
            requests_per_window: Maximum requests allowed per window.
            window_seconds: Time window in seconds.
        """
        self.requests_per_window = requests_per_window
        self.window_seconds = window_seconds
        self.tokens = float(requests_per_window)
        self._refill_rate = requests_per_window / window_seconds
        self._last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        earned = (now - self._last_refill) * self._refill_rate
        self.tokens = min(float(self.requests_per_window), self.tokens + earned)
        self._last_refill = now

    async def acquire(self) -> None:
        """Take one token, sleeping until one is available."""
        async with self._lock:
            self._refill()
            if self.tokens < 1:
                wait_time = (1 - self.tokens) / self._refill_rate
                logger.debug("Rate limit reached, sleeping %.2fs", wait_time)
                await asyncio.sleep(wait_time)
                self._refill()
            self.tokens -= 1


def _parse_retry_after(response: httpx.Response) -> int | None:
    value = response.headers.get("Retry-After", "")
    return int(value) if value.isdigit() else None


class AsyncHttpClient:
    """Async HTTP client with retry and rate limiting support.

    Transport failures surface as ``NetworkError`` and exhausted 429
    responses as ``RateLimitError`` so evidence strategies only need to
    handle the bumpguard error hierarchy.
    """

    DEFAULT_TIMEOUT = 30.0
    DEFAULT_RETRIES = 2
    RETRY_DELAYS = [1.0, 2.0, 4.0]
    MAX_RETRY_AFTER = 60.0

    def __init__(
        self,
        service: str,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_RETRIES,
        rate_limiter: RateLimiter | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Initialize the HTTP client.

        Args:
            service: Human readable service name used in errors and logs.
            base_url: Base URL for requests.
            timeout: Request timeout in seconds.
            max_retries: Maximum number of retries.
            rate_limiter: Optional rate limiter instance.
            headers: Default headers for all requests.
        """
        self.service = service
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.rate_limiter = rate_limiter
        self.default_headers = headers or {}
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "AsyncHttpClient":
        """Enter async context."""
        self._client = httpx.AsyncClient(
            base_url=self.base_url or "",
            timeout=self.timeout,
            headers=self.default_headers,
            follow_redirects=True,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Exit async context."""
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying client if open."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the underlying httpx client."""
        if self._client is None:
            raise RuntimeError("Client not initialized. Use async with statement.")
        return self._client

    def _retry_delay(self, attempt: int) -> float:
        return self.RETRY_DELAYS[min(attempt, len(self.RETRY_DELAYS) - 1)]

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, retrying throttled, failed and unreachable attempts.

        Raises:
            httpx.HTTPStatusError: For non-retryable 4xx responses.
            RateLimitError: If the service keeps answering 429.
            NetworkError: If the service is unreachable after all retries.
        """
        attempt = 0
        while True:
            if self.rate_limiter:
                await self.rate_limiter.acquire()

            try:
                response = await self.client.request(method, url, **kwargs)
            except (httpx.ConnectError, httpx.TimeoutException) as e:
                if attempt >= self.max_retries:
                    raise NetworkError(self.service, e) from e
                delay = self._retry_delay(attempt)
                logger.warning("%s unreachable (%s), retrying in %.1fs", self.service, e, delay)
            except httpx.HTTPError as e:
                raise NetworkError(self.service, e) from e
            else:
                status = response.status_code
                if status == 429:
                    retry_after = _parse_retry_after(response)
                    if attempt >= self.max_retries:
                        raise RateLimitError(self.service, retry_after)
                    if retry_after is None:
                        delay = self._retry_delay(attempt)
                    else:
                        delay = min(float(retry_after), self.MAX_RETRY_AFTER)
                    logger.warning("%s rate limited, waiting %.1fs", self.service, delay)
                elif status >= 500:
                    error = httpx.HTTPStatusError(
                        f"{self.service} answered {status}",
                        request=response.request,
                        response=response,
                    )
                    if attempt >= self.max_retries:
                        raise NetworkError(self.service, error) from error
                    delay = self._retry_delay(attempt)
                    logger.warning("%s server error %d, retrying in %.1fs", self.service, status, delay)
                else:
                    response.raise_for_status()
                    return response

            await asyncio.sleep(delay)
            attempt += 1

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Make a GET request.

        Args:
            url: Request URL.
            params: Query parameters.
            headers: Additional headers.

        Returns:
            HTTP response.
        """
        return await self._request("GET", url, params=params, headers=headers)

    async def get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Make a GET request and parse JSON response.

        Args:
            url: Request URL.
            params: Query parameters.
            headers: Additional headers.

        Returns:
            Parsed JSON data.
        """
        response = await self.get(url, params=params, headers=headers)
        return response.json()

    async def get_json_or_none(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Like ``get_json`` but returns None for a 404 response."""
        try:
            return await self.get_json(url, params=params, headers=headers)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            raise NetworkError(self.service, e) from e


def create_github_rate_limiter(authenticated: bool = False) -> RateLimiter:
    """Create a rate limiter configured for the GitHub REST API.

    Args:
        authenticated: Whether requests carry a token.

    Returns:
        Configured rate limiter.
    """
    if authenticated:
        return RateLimiter(requests_per_window=5000, window_seconds=3600)
    return RateLimiter(requests_per_window=60, window_seconds=3600)
