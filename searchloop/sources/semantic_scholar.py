"""Semantic Scholar paper search adapter."""

from __future__ import annotations

import logging

import httpx
from pydantic import BaseModel, Field

from ..settings import (
    RATE_LIMIT_REQUESTS_PER_SECOND,
    RATE_LIMIT_REQUESTS_PER_SECOND_NO_KEY,
    SEMANTIC_SCHOLAR_API_KEY,
    SEMANTIC_SCHOLAR_BASE_URL,
)
from .base import BaseSourceAdapter
from .http import HttpClient
from .models import ContentKind, SearchResult, SourceQuery

logger = logging.getLogger(__name__)

SEARCH_FIELDS = "paperId,title,abstract,year,url,citationCount,authors"


class Author(BaseModel):
    """Author information."""

    author_id: str | None = Field(None, alias="authorId")
    name: str | None = None


class PaperHit(BaseModel):
    """Paper metadata returned from the search endpoint."""

    paper_id: str = Field(..., alias="paperId")
    title: str | None = None
    abstract: str | None = None
    authors: list[Author] = Field(default_factory=list)
    year: int | None = None
    url: str | None = None
    citation_count: int | None = Field(None, alias="citationCount")

    model_config = {"populate_by_name": True}


class PaperSearchResponse(BaseModel):
    """Search endpoint response."""

    total: int = 0
    offset: int = 0
    data: list[PaperHit] = Field(default_factory=list)


def year_filter(hint: str | None) -> str | None:
    """Map a time range hint onto the ``year`` search parameter."""
    if hint and hint.isdigit():
        return f"{hint}-"
    return None


class SemanticScholarAdapter(BaseSourceAdapter):
    """
    Adapter for the Semantic Scholar graph API.

    Usage:
        async with SemanticScholarAdapter() as papers:
            outcome = await papers.search(SourceQuery(text="Wärmepumpen Effizienz"))
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        source_tag: str = "semantic_scholar",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.source_tag = source_tag
        self.api_key = api_key or SEMANTIC_SCHOLAR_API_KEY

        # Set rate limit based on whether we have an API key
        rate_limit = (
            RATE_LIMIT_REQUESTS_PER_SECOND
            if self.api_key
            else RATE_LIMIT_REQUESTS_PER_SECOND_NO_KEY
        )
        headers: dict[str, str] = {}
        if self.api_key:
            headers["x-api-key"] = self.api_key
        else:
            logger.warning("No Semantic Scholar API key provided - rate limiting will be strict")

        self._http = HttpClient(
            base_url or SEMANTIC_SCHOLAR_BASE_URL,
            headers=headers,
            requests_per_second=rate_limit,
            transport=transport,
        )

    async def __aenter__(self) -> SemanticScholarAdapter:
        await self._http.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self._http.__aexit__(exc_type, exc_val, exc_tb)

    async def _search(self, query: SourceQuery, limit: int) -> list[SearchResult]:
        params: dict[str, str | int] = {
            "query": query.text,
            "limit": min(limit, 100),
            "fields": SEARCH_FIELDS,
        }
        year = year_filter(query.time_range_hint)
        if year:
            params["year"] = year

        data = await self._http.get_json("/paper/search", params=params)
        response = PaperSearchResponse.model_validate(data)

        results = []
        for position, paper in enumerate(response.data[:limit]):
            authors = ", ".join(a.name for a in paper.authors[:3] if a.name)
            byline = f"{authors} ({paper.year})" if paper.year else authors
            body = paper.abstract or ""
            if byline:
                body = f"{byline}. {body}".strip()
            results.append(
                SearchResult(
                    id=f"{self.source_tag}:{paper.paper_id}",
                    title=paper.title or "Untitled",
                    body=body,
                    url=paper.url or f"https://www.semanticscholar.org/paper/{paper.paper_id}",
                    source_tag=self.source_tag,
                    score=1.0 / (position + 1),
                    content_kind=ContentKind.PAPER,
                    document_id=paper.paper_id,
                )
            )

        logger.info(f"Semantic Scholar returned {len(results)} of {response.total} papers for '{query.text}'")
        return results
