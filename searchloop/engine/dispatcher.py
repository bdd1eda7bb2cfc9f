"""Parallel fan-out of queries to source adapters."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from ..sources.deduplication import deduplicate_results
from ..sources.models import AdapterErrorKind, AdapterOutcome, SearchResult, SourceQuery
from .models import AdapterRun, DispatchBatch

if TYPE_CHECKING:
    from ..sources.protocols import SourceAdapter

logger = logging.getLogger(__name__)

# Weights of the raw heuristic score.
ADAPTER_RANK_WEIGHT = 0.5
ADAPTER_SCORE_WEIGHT = 0.3
POSITION_WEIGHT = 0.2

# Extra time granted before an adapter that ignores its own timeout is abandoned.
TIMEOUT_GRACE_SECONDS = 0.5


def heuristic_score(adapter_rank: int, adapter_score: float, position: int) -> float:
    """Blend adapter priority, the adapter's own score and in-adapter position."""
    return (
        ADAPTER_RANK_WEIGHT / (adapter_rank + 1)
        + ADAPTER_SCORE_WEIGHT * adapter_score
        + POSITION_WEIGHT / (position + 1)
    )


class Dispatcher:
    """
    Fans every query out to every adapter concurrently and merges the results.

    A failing or slow adapter only costs its own results: every pair is
    independently time-bounded and failures are recorded in the batch.

    Usage:
        dispatcher = Dispatcher(per_adapter_limit=5)
        batch = await dispatcher.dispatch([SourceQuery(text="Mietpreisbremse")], adapters)
    """

    def __init__(
        self,
        per_adapter_limit: int = 5,
        adapter_timeout: float = 4.0,
        similarity_threshold: float = 0.92,
    ):
        """
        Initialize the dispatcher.

        Args:
            per_adapter_limit: Results requested from each adapter per query
            adapter_timeout: Seconds each adapter call may take
            similarity_threshold: Content similarity at which URL-less results
                count as duplicates
        """
        self.per_adapter_limit = per_adapter_limit
        self.adapter_timeout = adapter_timeout
        self.similarity_threshold = similarity_threshold

    async def _call(self, adapter: SourceAdapter, query: SourceQuery, limit: int) -> AdapterOutcome:
        """Call one adapter, guarding against implementations that break the contract."""
        try:
            return await asyncio.wait_for(
                adapter.search(query, limit=limit, timeout=self.adapter_timeout),
                timeout=self.adapter_timeout + TIMEOUT_GRACE_SECONDS,
            )
        except asyncio.TimeoutError:
            return AdapterOutcome.failure(
                adapter.source_tag, AdapterErrorKind.TIMEOUT, f"no response within {self.adapter_timeout}s"
            )
        except Exception as e:
            logger.warning(f"Adapter {adapter.source_tag} raised instead of returning an error: {e}")
            return AdapterOutcome.failure(
                adapter.source_tag, AdapterErrorKind.BACKEND_ERROR, f"{type(e).__name__}: {e}"
            )

    async def dispatch(
        self,
        queries: list[SourceQuery],
        adapters: list[SourceAdapter],
        iteration: int = 1,
        per_adapter_limit: int | None = None,
    ) -> DispatchBatch:
        """
        Run every (query, adapter) pair and merge the outcomes.

        Args:
            queries: Queries to run, original first
            adapters: Adapters in priority order
            iteration: Iteration number recorded on the batch
            per_adapter_limit: Override of the configured per-adapter limit

        Returns:
            DispatchBatch with deduplicated results sorted by heuristic score
        """
        limit = per_adapter_limit or self.per_adapter_limit
        pairs = [(rank, adapter, query) for rank, adapter in enumerate(adapters) for query in queries]
        if not pairs:
            logger.warning("Dispatch with no adapters or no queries")
            return DispatchBatch(iteration=iteration, queries=tuple(queries), results=())

        logger.info(f"Dispatching {len(queries)} queries to {len(adapters)} adapters (iteration {iteration})")
        outcomes = await asyncio.gather(*(self._call(adapter, query, limit) for _, adapter, query in pairs))

        # Pair order (adapter priority, then query order) fixes the merge order,
        # whatever the completion order was.
        runs: list[AdapterRun] = []
        merged: list[SearchResult] = []
        for (rank, adapter, query), outcome in zip(pairs, outcomes):
            runs.append(
                AdapterRun(
                    query_id=query.id,
                    source_tag=adapter.source_tag,
                    ok=outcome.ok,
                    result_count=len(outcome.results),
                    error=outcome.error,
                    elapsed_ms=outcome.elapsed_ms,
                )
            )
            if not outcome.ok:
                logger.warning(f"Adapter failed: {outcome.error}")
                continue
            for position, result in enumerate(outcome.results[:limit]):
                merged.append(result.with_score(heuristic_score(rank, result.score, position)))

        unique = deduplicate_results(merged, self.similarity_threshold)
        unique.sort(key=lambda r: -r.score)  # stable: ties keep merge order

        ceiling = max(1, len(adapters)) * limit
        results = unique[:ceiling]

        failed = sum(1 for run in runs if not run.ok)
        logger.info(f"Dispatch complete: {len(results)} results, {failed}/{len(runs)} calls failed")
        return DispatchBatch(
            iteration=iteration,
            queries=tuple(queries),
            results=tuple(results),
            runs=tuple(runs),
        )
