"""Base class enforcing the never-raise contract for source adapters."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod

import httpx
from pydantic import ValidationError

from .models import AdapterErrorKind, AdapterOutcome, SearchResult, SourceQuery

logger = logging.getLogger(__name__)

# Exceptions that mean "the backend answered, but not in a shape we understand".
MALFORMED_ERRORS = (ValidationError, KeyError, TypeError, ValueError, json.JSONDecodeError)


class BaseSourceAdapter(ABC):
    """
    Shared boundary for all source adapters.

    Subclasses implement ``_search`` and may raise anything; ``search``
    bounds the call with a timeout and converts every failure into a tagged
    ``AdapterError``. Adapters that hold connections override ``__aenter__``
    and ``__aexit__``.

    Usage:
        async with SearxngAdapter() as web:
            outcome = await web.search(SourceQuery(text="Bahnausbau"), limit=5)
            if outcome.ok:
                ...
    """

    source_tag: str = "source"

    async def __aenter__(self) -> BaseSourceAdapter:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    @abstractmethod
    async def _search(self, query: SourceQuery, limit: int) -> list[SearchResult]:
        """Run the backend query. May raise."""

    async def search(
        self,
        query: SourceQuery,
        limit: int = 10,
        timeout: float = 4.0,
    ) -> AdapterOutcome:
        """Search the backend; never raises (except on cancellation)."""
        start = time.monotonic()

        def elapsed() -> int:
            return int((time.monotonic() - start) * 1000)

        try:
            results = await asyncio.wait_for(self._search(query, limit), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[{self.source_tag}] timed out after {timeout}s for '{query.text}'")
            return AdapterOutcome.failure(
                self.source_tag, AdapterErrorKind.TIMEOUT, f"no response within {timeout}s", elapsed()
            )
        except RuntimeError as e:
            # Raised by adapters used outside their async context.
            logger.warning(f"[{self.source_tag}] not ready: {e}")
            return AdapterOutcome.failure(self.source_tag, AdapterErrorKind.NOT_READY, str(e), elapsed())
        except httpx.HTTPError as e:
            logger.warning(f"[{self.source_tag}] backend error for '{query.text}': {e}")
            return AdapterOutcome.failure(
                self.source_tag, AdapterErrorKind.BACKEND_ERROR, f"{type(e).__name__}: {e}", elapsed()
            )
        except MALFORMED_ERRORS as e:
            logger.warning(f"[{self.source_tag}] malformed response for '{query.text}': {e}")
            return AdapterOutcome.failure(
                self.source_tag, AdapterErrorKind.MALFORMED_RESPONSE, f"{type(e).__name__}: {e}", elapsed()
            )
        except Exception as e:
            logger.warning(f"[{self.source_tag}] failed for '{query.text}': {e}")
            return AdapterOutcome.failure(
                self.source_tag, AdapterErrorKind.BACKEND_ERROR, f"{type(e).__name__}: {e}", elapsed()
            )

        results = results[:limit]
        logger.debug(f"[{self.source_tag}] {len(results)} results for '{query.text}' in {elapsed()}ms")
        return AdapterOutcome.success(self.source_tag, results, elapsed())
