"""SearxNG web search adapter."""

from __future__ import annotations

import hashlib
import logging
import re

import httpx
from pydantic import BaseModel, Field

from ..settings import SEARXNG_BASE_URL, SEARXNG_LANGUAGE
from .base import BaseSourceAdapter
from .http import HttpClient
from .models import ContentKind, SearchResult, SourceQuery

logger = logging.getLogger(__name__)

_YEAR_RE = re.compile(r"^(19|20)\d{2}$")


class SearxngHit(BaseModel):
    """One entry of the SearxNG ``results`` array."""

    url: str
    title: str | None = None
    content: str | None = None
    engine: str | None = None
    score: float | None = None
    category: str | None = None
    published_date: str | None = Field(None, alias="publishedDate")

    model_config = {"populate_by_name": True}


class SearxngResponse(BaseModel):
    """Response of the SearxNG JSON API."""

    results: list[SearxngHit] = Field(default_factory=list)
    number_of_results: float | None = None


def searxng_time_range(hint: str | None) -> str | None:
    """Map a time range hint onto SearxNG's ``time_range`` parameter."""
    if not hint:
        return None
    if hint in ("day", "week", "month", "year"):
        return hint
    if _YEAR_RE.match(hint):
        return "year"
    return None


class SearxngAdapter(BaseSourceAdapter):
    """
    Adapter for a self-hosted SearxNG instance (JSON output format).

    Usage:
        async with SearxngAdapter(base_url="http://localhost:8888") as web:
            outcome = await web.search(SourceQuery(text="Bahnausbau Förderung"))
    """

    def __init__(
        self,
        base_url: str | None = None,
        language: str | None = None,
        categories: str = "general",
        source_tag: str = "web",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the SearxNG adapter.

        Args:
            base_url: SearxNG instance URL. Defaults to SEARXNG_BASE_URL.
            language: Search language, e.g. "de-DE"
            categories: SearxNG categories to query
            source_tag: Tag stamped on every result
            transport: Optional httpx transport (used by tests)
        """
        self.source_tag = source_tag
        self.language = language or SEARXNG_LANGUAGE
        self.categories = categories
        self._http = HttpClient(base_url or SEARXNG_BASE_URL, transport=transport)

    async def __aenter__(self) -> SearxngAdapter:
        await self._http.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self._http.__aexit__(exc_type, exc_val, exc_tb)

    async def _search(self, query: SourceQuery, limit: int) -> list[SearchResult]:
        params: dict[str, str | int] = {
            "q": query.text,
            "format": "json",
            "language": self.language,
            "categories": self.categories,
            "safesearch": 0,
            "pageno": 1,
        }
        time_range = searxng_time_range(query.time_range_hint)
        if time_range:
            params["time_range"] = time_range

        data = await self._http.get_json("/search", params=params)
        response = SearxngResponse.model_validate(data)

        results: list[SearchResult] = []
        for position, hit in enumerate(response.results[:limit]):
            results.append(
                SearchResult(
                    id=f"{self.source_tag}:{hashlib.sha1(hit.url.encode()).hexdigest()[:16]}",
                    title=(hit.title or hit.url).strip(),
                    body=(hit.content or "").strip(),
                    url=hit.url,
                    source_tag=self.source_tag,
                    # SearxNG scores are unbounded; fall back to position decay.
                    score=1.0 / (position + 1),
                    content_kind=ContentKind.NEWS if hit.category == "news" else ContentKind.WEB_PAGE,
                )
            )

        logger.info(f"SearxNG returned {len(results)} results for '{query.text}'")
        return results
