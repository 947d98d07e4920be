"""
Static HTTP crawler for sources that need no JavaScript rendering.

Used by the public-data XML API adapter. Provides rate limiting, connection
pooling and bounded retries with exponential backoff.
"""

import asyncio
import time
from typing import Optional, Dict, Any, Callable, Awaitable
import httpx
import logging

from ..utils.retry import retry_async, exponential_delay

logger = logging.getLogger(__name__)


def is_retryable_http_error(exc: BaseException) -> bool:
    """Transport failures and 5xx/429 responses are worth another attempt."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status >= 500 or status == 429
    return isinstance(exc, httpx.HTTPError)


class StaticCrawler:
    """
    Wrapper for fetching documents over plain HTTP.

    Uses httpx for async requests. The transport is injectable so tests can
    serve canned responses through httpx.MockTransport.
    """

    def __init__(
        self,
        rate_limit: float = 0.5,
        timeout: float = 30.0,
        max_retries: int = 3,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize the static crawler.

        Args:
            rate_limit: Minimum seconds between requests
            timeout: Request timeout in seconds
            max_retries: Total attempts per request
            headers: Custom HTTP headers
            transport: Optional httpx transport (tests)
            sleep: Awaitable sleep used for rate limiting and backoff
        """
        self.rate_limit = rate_limit
        self.timeout = timeout
        self.max_retries = max_retries
        self.headers = headers or {
            'User-Agent': 'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
            'Accept': 'application/xml,text/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'ko-KR,ko;q=0.9',
        }
        self.transport = transport
        self._sleep = sleep
        self._last_request_time = 0.0
        self._client: Optional[httpx.AsyncClient] = None

    async def _wait_for_rate_limit(self):
        """Wait to respect rate limit."""
        now = time.monotonic()
        elapsed = now - self._last_request_time
        if self._last_request_time and elapsed < self.rate_limit:
            await self._sleep(self.rate_limit - elapsed)
        self._last_request_time = time.monotonic()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create reusable HTTP client with connection pooling."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                follow_redirects=True,
                timeout=self.timeout,
                headers=self.headers,
                transport=self.transport,
                limits=httpx.Limits(
                    max_keepalive_connections=5,
                    max_connections=10,
                    keepalive_expiry=30.0
                )
            )
        return self._client

    async def close(self):
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str, params: Optional[Dict[str, Any]] = None) -> str:
        """
        Fetch a URL and return the body text.

        Args:
            url: URL to fetch
            params: Query parameters

        Returns:
            Response body as string

        Raises:
            httpx.HTTPError: On request failure after retries
        """
        logger.debug(f"StaticCrawler fetching: {url}")
        await self._wait_for_rate_limit()
        client = await self._get_client()

        async def attempt() -> str:
            response = await client.get(url, params=params)
            response.raise_for_status()
            return response.text

        return await retry_async(
            attempt,
            max_attempts=self.max_retries,
            delay_fn=exponential_delay(1.0),
            is_retryable=is_retryable_http_error,
            sleep=self._sleep,
            label=url,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
