"""Optional enrichment of top results with their full page text."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import httpx
from bs4 import BeautifulSoup

from ..sources.models import ContentKind, SearchResult

if TYPE_CHECKING:
    from .protocols import PageFetcher

logger = logging.getLogger(__name__)

ENRICHABLE_KINDS = (ContentKind.WEB_PAGE, ContentKind.NEWS, None)


def extract_text(html: str) -> str:
    """Extract clean text from HTML."""
    soup = BeautifulSoup(html, "html.parser")

    # Remove script and style elements
    for element in soup(["script", "style", "nav", "footer", "header", "aside", "form"]):
        element.decompose()

    text = soup.get_text(separator="\n")
    lines = [line.strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


class HttpPageFetcher:
    """
    Fetches a page over HTTP and reduces it to plain text.

    Usage:
        async with HttpPageFetcher() as fetcher:
            text = await fetcher.fetch("https://example.org/artikel")
    """

    def __init__(self, timeout: float = 4.0, user_agent: str = "searchloop/0.1"):
        self.timeout = timeout
        self.headers = {"User-Agent": user_agent}
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> HttpPageFetcher:
        self._client = httpx.AsyncClient(headers=self.headers, timeout=self.timeout, follow_redirects=True)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str) -> str | None:
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")
        response = await self._client.get(url)
        response.raise_for_status()
        content_type = response.headers.get("content-type", "")
        if "html" not in content_type and "text" not in content_type:
            logger.debug(f"Skipping non-text content ({content_type}) at {url}")
            return None
        text = extract_text(response.text) if "html" in content_type else response.text
        return text or None


class ContentEnricher:
    """
    Fills ``crawled_body`` for the top web results.

    Each fetch is time-bounded and failures leave the result unchanged.
    """

    def __init__(
        self,
        fetcher: PageFetcher | None,
        top_n: int = 3,
        max_chars: int = 4000,
        timeout: float = 4.0,
        concurrency: int = 3,
    ):
        self.fetcher = fetcher
        self.top_n = top_n
        self.max_chars = max_chars
        self.timeout = timeout
        self.concurrency = max(1, concurrency)

    async def _enrich_one(self, result: SearchResult, semaphore: asyncio.Semaphore) -> SearchResult:
        async with semaphore:
            try:
                text = await asyncio.wait_for(self.fetcher.fetch(result.url), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Fetching {result.url} timed out after {self.timeout}s")
                return result
            except Exception as e:
                logger.warning(f"Fetching {result.url} failed: {e}")
                return result

        if not text:
            return result
        return result.model_copy(update={"crawled_body": text[:self.max_chars]})

    async def enrich(self, results: list[SearchResult]) -> list[SearchResult]:
        """
        Enrich the first ``top_n`` eligible results, keeping order.

        Args:
            results: Final ranked results

        Returns:
            Results with ``crawled_body`` filled where a fetch succeeded
        """
        if self.fetcher is None or self.top_n <= 0:
            return list(results)

        targets = [
            i for i, r in enumerate(results)
            if r.url and r.crawled_body is None and r.content_kind in ENRICHABLE_KINDS
        ][:self.top_n]
        if not targets:
            return list(results)

        semaphore = asyncio.Semaphore(self.concurrency)
        enriched = await asyncio.gather(*(self._enrich_one(results[i], semaphore) for i in targets))

        updated = list(results)
        for i, result in zip(targets, enriched):
            updated[i] = result
        count = sum(1 for r in enriched if r.crawled_body)
        logger.info(f"Enriched {count}/{len(targets)} results with page text")
        return updated
