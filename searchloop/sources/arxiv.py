"""arXiv paper search adapter built on the ``arxiv`` library."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import arxiv

from ..settings import ARXIV_RATE_LIMIT_SECONDS
from .base import BaseSourceAdapter
from .http import RateLimiter
from .models import ContentKind, SearchResult, SourceQuery

logger = logging.getLogger(__name__)


class ArxivAdapter(BaseSourceAdapter):
    """
    Adapter for arXiv search.

    The ``arxiv`` library is synchronous, so each search runs in a worker
    thread. A minimum interval between requests is enforced here rather than
    by the library (arXiv asks for one request every three seconds).
    """

    def __init__(
        self,
        rate_limit_seconds: float = ARXIV_RATE_LIMIT_SECONDS,
        categories: list[str] | None = None,
        source_tag: str = "arxiv",
        client: Any = None,
    ):
        """
        Initialize the arXiv adapter.

        Args:
            rate_limit_seconds: Minimum seconds between requests
            categories: Optional arXiv categories to filter (e.g., ["cs.LG"])
            source_tag: Tag stamped on every result
            client: Optional object with a ``results(search)`` method, defaults
                to an ``arxiv.Client``
        """
        self.source_tag = source_tag
        self.categories = categories or []
        self._rate_limiter = RateLimiter(1.0 / rate_limit_seconds) if rate_limit_seconds > 0 else None
        self._client = client or arxiv.Client(
            page_size=50,
            delay_seconds=0,  # We handle rate limiting ourselves
            num_retries=1,
        )

    def build_query(self, text: str) -> str:
        """Build the arXiv query string with the optional category filter."""
        if not self.categories:
            return text
        cat_query = " OR ".join(f"cat:{cat}" for cat in self.categories)
        return f"({text}) AND ({cat_query})"

    async def _search(self, query: SourceQuery, limit: int) -> list[SearchResult]:
        recent = query.time_range_hint is not None
        search = arxiv.Search(
            query=self.build_query(query.text),
            max_results=limit,
            sort_by=arxiv.SortCriterion.SubmittedDate if recent else arxiv.SortCriterion.Relevance,
            sort_order=arxiv.SortOrder.Descending,
        )

        if self._rate_limiter:
            await self._rate_limiter.acquire()
        # Run in thread pool since arxiv.py is synchronous
        papers = await asyncio.to_thread(lambda: list(self._client.results(search)))

        results = []
        for position, paper in enumerate(papers[:limit]):
            arxiv_id = paper.get_short_id()
            authors = ", ".join(str(a) for a in paper.authors[:3])
            summary = " ".join(paper.summary.split())
            results.append(
                SearchResult(
                    id=f"{self.source_tag}:{arxiv_id}",
                    title=" ".join(paper.title.split()),
                    body=f"{authors} ({paper.published.year}). {summary}" if authors else summary,
                    url=paper.entry_id,
                    source_tag=self.source_tag,
                    score=1.0 / (position + 1),
                    content_kind=ContentKind.PAPER,
                    document_id=arxiv_id,
                )
            )

        logger.info(f"arXiv returned {len(results)} papers for '{query.text}'")
        return results
