"""Protocol definitions for the oracles and event listeners."""

from typing import Protocol, runtime_checkable

from ..sources.models import SearchResult
from .models import EngineEvent, QualityVerdict


@runtime_checkable
class RelevanceOracle(Protocol):
    """Scores candidates against a query.

    Implementations raise ``OracleError`` on failure; callers recover.
    """

    async def score(self, query: str, candidates: list[SearchResult]) -> dict[int, float]:
        """
        Score candidates for relevance.

        Args:
            query: The search query
            candidates: Candidates, addressed by their 0-based position

        Returns:
            Mapping of candidate position to a raw score on the 1-5 scale
        """
        ...


@runtime_checkable
class SufficiencyOracle(Protocol):
    """Judges whether a result summary answers a query."""

    async def assess_sufficiency(self, query: str, summary: str) -> QualityVerdict:
        """
        Judge a compact summary of the current results.

        Args:
            query: The query the results were retrieved for
            summary: Numbered titles and truncated bodies

        Returns:
            QualityVerdict (score not yet clamped by the caller)
        """
        ...


@runtime_checkable
class ExpansionOracle(Protocol):
    """Proposes alternative phrasings of a query."""

    async def expand_query(self, query: str) -> list[str]:
        """Return alternative queries (may contain duplicates of the input)."""
        ...


@runtime_checkable
class PageFetcher(Protocol):
    """Fetches the full text of a page for enrichment."""

    async def fetch(self, url: str) -> str | None:
        """Return the page text, or None when nothing usable was found."""
        ...


@runtime_checkable
class EventListener(Protocol):
    """Receives orchestrator progress events. May be sync or async."""

    def __call__(self, event: EngineEvent) -> object:
        ...
