"""Async HTTP plumbing shared by the HTTP-backed adapters."""

import asyncio
import logging
import time
from typing import Any

import httpx

from ..settings import MAX_RETRIES, RETRY_BACKOFF_FACTOR

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = (429, 500, 502, 503, 504)


class RateLimiter:
    """Minimum-interval rate limiter shared by concurrent callers."""

    def __init__(self, requests_per_second: float):
        self.requests_per_second = requests_per_second
        self.min_interval = 1.0 / requests_per_second if requests_per_second > 0 else 0.0
        self.last_request_time = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until we can make another request."""
        async with self._lock:
            now = time.monotonic()
            time_since_last = now - self.last_request_time
            if time_since_last < self.min_interval:
                await asyncio.sleep(self.min_interval - time_since_last)
            self.last_request_time = time.monotonic()


class HttpClient:
    """
    Thin async wrapper over ``httpx.AsyncClient`` with rate limiting and retry.

    Retries are short: the caller (the adapter boundary) already bounds the
    whole call with a timeout, so a slow backend is cut off there.
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        requests_per_second: float = 0.0,
        timeout: float = 10.0,
        max_retries: int = MAX_RETRIES,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = headers or {}
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.rate_limiter = RateLimiter(requests_per_second) if requests_per_second > 0 else None
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HttpClient":
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "Client not initialized. Use 'async with' context manager."
            )
        return self._client

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Make a request with rate limiting and exponential backoff retry."""
        last_exception: Exception | None = None

        for attempt in range(self.max_retries):
            if self.rate_limiter:
                await self.rate_limiter.acquire()
            logger.debug(f"Request attempt {attempt + 1}/{self.max_retries}: {method} {url}")

            try:
                response = await self.client.request(method, url, **kwargs)
            except (httpx.ConnectError, httpx.ReadTimeout) as e:
                last_exception = e
                backoff = RETRY_BACKOFF_FACTOR * (2 ** attempt)
                logger.warning(f"Connection error: {e}, backoff {backoff}s")
                await asyncio.sleep(backoff)
                continue

            if response.status_code in RETRYABLE_STATUS and attempt + 1 < self.max_retries:
                retry_after = response.headers.get("Retry-After", "0")
                backoff = max(
                    float(retry_after) if retry_after.isdigit() else 0.0,
                    RETRY_BACKOFF_FACTOR * (2 ** attempt),
                )
                logger.warning(f"HTTP {response.status_code} from {url}, retrying in {backoff}s")
                await asyncio.sleep(backoff)
                continue

            response.raise_for_status()
            return response

        logger.error(f"Request failed after {self.max_retries} attempts: {method} {url}")
        if last_exception:
            raise last_exception
        raise httpx.TransportError(f"Request failed after {self.max_retries} attempts: {url}")

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        """GET a URL and decode the JSON body."""
        response = await self.request("GET", url, **kwargs)
        return response.json()
