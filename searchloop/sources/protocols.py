"""Protocol definitions for retrieval backends."""

from typing import Any, Protocol, runtime_checkable

from .models import AdapterOutcome, SourceQuery


@runtime_checkable
class SourceAdapter(Protocol):
    """Protocol for source adapters.

    Implement this protocol to add support for a new retrieval backend.
    Implementations must never raise from ``search``; every failure is
    reported through ``AdapterOutcome.error``.
    """

    source_tag: str

    async def search(
        self,
        query: SourceQuery,
        limit: int = 10,
        timeout: float = 4.0,
    ) -> AdapterOutcome:
        """
        Search the backend for a query.

        Args:
            query: The query to run
            limit: Maximum number of results to return
            timeout: Seconds before the call is abandoned

        Returns:
            AdapterOutcome with results, or with a tagged error
        """
        ...


@runtime_checkable
class DocumentIndex(Protocol):
    """Protocol for a document index backend (vector or keyword store).

    Hits are plain dicts with at least ``content`` and ``score`` keys and
    optionally ``title``, ``url``, ``document_id`` and ``chunk_index``.
    """

    async def query(self, text: str, limit: int) -> list[dict[str, Any]]:
        """
        Return the best matching chunks for ``text``.

        Args:
            text: Query text
            limit: Maximum hits

        Returns:
            List of hit dicts, best first
        """
        ...
