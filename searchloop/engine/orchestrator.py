"""
Search orchestration: the classify -> dispatch -> rank -> quality-check loop.

The orchestrator is an explicit state machine over ``Stage``. Each stage
handler receives the current ``OrchestratorState`` and returns a new one
(``dataclasses.replace``); no stage mutates shared state. The loop back to
dispatching is bounded twice: by the transition rule and by a hard step limit.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from typing import TYPE_CHECKING, Awaitable, Callable

from ..errors import BUDGET_EXCEEDED, FatalOrchestratorError
from ..sources.deduplication import deduplicate_results
from ..sources.models import SearchResult, SourceQuery
from . import events
from .citations import CitationExtractor
from .classifier import classify
from .dispatcher import Dispatcher
from .events import EventEmitter
from .models import NO_DATA_MESSAGE, EngineResult, OrchestratorState, RankedSet, Stage
from .ranker import RelevanceRanker
from .quality_gate import QualityGate

if TYPE_CHECKING:
    from ..sources.protocols import SourceAdapter
    from .enricher import ContentEnricher
    from .expander import QueryExpander
    from .protocols import EventListener

logger = logging.getLogger(__name__)

StageHandler = Callable[["SearchEngine", "_Run", OrchestratorState], Awaitable[OrchestratorState]]


class _Run:
    """Per-call context: lives exactly as long as one ``run()``."""

    def __init__(
        self,
        adapters: list[SourceAdapter],
        emitter: EventEmitter,
        per_adapter_limit: int | None,
    ):
        self.adapters = adapters
        self.emitter = emitter
        self.per_adapter_limit = per_adapter_limit
        self.final_results: list[SearchResult] = []
        self.citations: list = []
        self.errors: list[FatalOrchestratorError] = []
        self.ranked_iteration = 0
        self.classification = None


class SearchEngine:
    """
    Runs the bounded, iterative multi-source search.

    Usage:
        async with SearchEngine(adapters=[web, documents], ranker=..., quality_gate=...) as engine:
            result = await engine.run("Wie steht die Partei zur Mietpreisbremse?")
            for citation in result.citations:
                print(citation.index, citation.document_title)
    """

    def __init__(
        self,
        adapters: list[SourceAdapter],
        dispatcher: Dispatcher | None = None,
        ranker: RelevanceRanker | None = None,
        quality_gate: QualityGate | None = None,
        expander: QueryExpander | None = None,
        enricher: ContentEnricher | None = None,
        citation_extractor: CitationExtractor | None = None,
        max_iterations: int = 3,
        stage_timeout: float = 20.0,
        classify_queries: bool = True,
        listener: EventListener | None = None,
        resources: list | None = None,
    ):
        """
        Initialize the engine.

        Args:
            adapters: Source adapters in priority order
            dispatcher: Fan-out dispatcher (default settings if omitted)
            ranker: Relevance ranker (no oracle scoring if omitted)
            quality_gate: Quality gate (never loops if omitted)
            expander: Query expander used on the first iteration
            enricher: Optional page text enricher for the final results
            citation_extractor: Citation extractor for the final results
            max_iterations: Default iteration budget
            stage_timeout: Seconds any single stage may take
            classify_queries: Strip task phrasing and derive hints from the query
            listener: Default progress event listener
            resources: Extra async context managers (LLM provider, page fetcher)
                entered and exited together with the adapters
        """
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.adapters = list(adapters)
        self.dispatcher = dispatcher or Dispatcher()
        self.ranker = ranker or RelevanceRanker(oracle=None)
        self.quality_gate = quality_gate or QualityGate(oracle=None)
        self.expander = expander
        self.enricher = enricher
        self.citation_extractor = citation_extractor or CitationExtractor()
        self.max_iterations = max_iterations
        self.stage_timeout = stage_timeout
        self.classify_queries = classify_queries
        self.listener = listener
        self.resources = list(resources or [])

        self._handlers: dict[Stage, StageHandler] = {
            Stage.CLASSIFYING: SearchEngine._classify,
            Stage.DISPATCHING: SearchEngine._dispatch,
            Stage.RANKING: SearchEngine._rank,
            Stage.QUALITY_CHECKING: SearchEngine._check_quality,
            Stage.AGGREGATING: SearchEngine._aggregate,
            Stage.CITING: SearchEngine._cite,
        }

    async def __aenter__(self) -> SearchEngine:
        """Enter async context for all resources and adapters."""
        for resource in self.resources + self.adapters:
            if hasattr(resource, "__aenter__"):
                await resource.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context for all adapters and resources."""
        for resource in reversed(self.resources + self.adapters):
            if hasattr(resource, "__aexit__"):
                await resource.__aexit__(exc_type, exc_val, exc_tb)

    def select_adapters(self, source_selection: list[str] | None) -> list[SourceAdapter]:
        """Adapters matching the selected source tags, priority order kept."""
        if not source_selection:
            return list(self.adapters)
        wanted = set(source_selection)
        selected = [a for a in self.adapters if a.source_tag in wanted]
        unknown = wanted - {a.source_tag for a in selected}
        if unknown:
            logger.warning(f"Unknown sources ignored: {sorted(unknown)}")
        return selected

    async def run(
        self,
        query: str,
        max_iterations: int | None = None,
        per_iteration_limit: int | None = None,
        source_selection: list[str] | None = None,
        listener: EventListener | None = None,
    ) -> EngineResult:
        """
        Run a search.

        Args:
            query: The user query
            max_iterations: Iteration budget for this run (default: configured)
            per_iteration_limit: Results requested per adapter and query
            source_selection: Source tags to use (default: all adapters)
            listener: Progress event listener for this run

        Returns:
            EngineResult; never raises except on cancellation
        """
        start = time.monotonic()
        budget = max(1, max_iterations or self.max_iterations)
        run = _Run(
            adapters=self.select_adapters(source_selection),
            emitter=EventEmitter(listener or self.listener),
            per_adapter_limit=per_iteration_limit,
        )
        state = OrchestratorState(original_query=query, current_query=query, max_iterations=budget)

        # classify, 3 stages per iteration, aggregate, cite, plus the step that sees DONE
        max_steps = 4 + 3 * budget
        for _ in range(max_steps):
            if state.stage is Stage.DONE:
                break
            state = await self._run_stage(run, state)
        else:
            logger.error(f"Step limit reached in stage {state.stage.value}, stopping")

        state = replace(state, elapsed_ms=int((time.monotonic() - start) * 1000))
        result = self._build_result(run, state)
        await run.emitter.emit(
            events.DONE, state.iteration, result_count=len(result.results), no_data_found=result.no_data_found
        )
        return result

    async def _run_stage(self, run: _Run, state: OrchestratorState) -> OrchestratorState:
        """Run the handler of the current stage under the stage timeout."""
        stage = state.stage
        handler = self._handlers[stage]
        try:
            return await asyncio.wait_for(handler(self, run, state), timeout=self.stage_timeout)
        except Exception as e:
            error = FatalOrchestratorError(stage.value, state.iteration, state.current_query, e)
            logger.error(
                f"Stage {stage.value} failed (iteration={state.iteration}, "
                f"query='{state.current_query}'): {type(e).__name__}: {e}"
            )
            run.errors.append(error)
            await run.emitter.emit(events.ERROR, state.iteration, stage=stage.value, message=str(error))
            return replace(state, stage=self._recovery_stage(stage))

    @staticmethod
    def _recovery_stage(failed: Stage) -> Stage:
        if failed is Stage.AGGREGATING:
            return Stage.CITING
        if failed is Stage.CITING:
            return Stage.DONE
        return Stage.AGGREGATING

    # Stage handlers. Each returns the next state, including the next stage.

    async def _classify(self, run: _Run, state: OrchestratorState) -> OrchestratorState:
        if not self.classify_queries:
            return replace(state, stage=Stage.DISPATCHING)
        classification = classify(state.original_query)
        run.classification = classification
        await run.emitter.emit(
            events.CLASSIFIED,
            state.iteration,
            search_query=classification.search_query,
            time_range_hint=classification.time_range_hint,
            complexity=classification.complexity.value,
        )
        return replace(
            state,
            stage=Stage.DISPATCHING,
            current_query=classification.search_query,
            time_range_hint=classification.time_range_hint,
        )

    async def _dispatch(self, run: _Run, state: OrchestratorState) -> OrchestratorState:
        iteration = state.iteration + 1
        if iteration > state.max_iterations:
            return replace(state, stage=Stage.AGGREGATING, terminal_reason=BUDGET_EXCEEDED)

        primary = SourceQuery(text=state.current_query, time_range_hint=state.time_range_hint)
        queries = [primary]
        if iteration == 1 and self.expander is not None:
            queries += [primary.variant(text) for text in await self.expander.expand(state.current_query)]

        await run.emitter.emit(
            events.DISPATCH_START, iteration, queries=[q.text for q in queries], sources=[a.source_tag for a in run.adapters]
        )
        batch = await self.dispatcher.dispatch(
            queries, run.adapters, iteration=iteration, per_adapter_limit=run.per_adapter_limit
        )
        await run.emitter.emit(
            events.DISPATCH_COMPLETE, iteration, count=len(batch.results), failed=len(batch.failed_runs)
        )

        accumulated = deduplicate_results(
            list(state.accumulated_results) + list(batch.results), self.dispatcher.similarity_threshold
        )
        return replace(
            state,
            stage=Stage.RANKING,
            iteration=iteration,
            batches=state.batches + (batch,),
            accumulated_results=tuple(accumulated),
            queries_used=state.queries_used + tuple(q.text for q in queries),
        )

    async def _rank(self, run: _Run, state: OrchestratorState) -> OrchestratorState:
        # New results first, then what the previous iteration ranked highest.
        latest = list(state.batches[-1].results) if state.batches else []
        previous = list(state.ranked.results) if state.ranked else []
        candidates = deduplicate_results(latest + previous, self.dispatcher.similarity_threshold)

        ranked = await self.ranker.rank(state.current_query, candidates)
        run.ranked_iteration = state.iteration
        await run.emitter.emit(events.RANKED, state.iteration, count=len(ranked))
        return replace(state, stage=Stage.QUALITY_CHECKING, ranked=ranked)

    async def _check_quality(self, run: _Run, state: OrchestratorState) -> OrchestratorState:
        ranked = state.ranked or RankedSet()
        verdict = await self.quality_gate.assess(
            state.current_query, ranked, state.iteration, state.max_iterations
        )
        await run.emitter.emit(
            events.QUALITY_CHECKED, state.iteration, score=verdict.score, sufficient=verdict.sufficient
        )

        if not verdict.sufficient and state.iteration < state.max_iterations and verdict.refined_query:
            logger.info(f"Results insufficient (score {verdict.score}), searching again: '{verdict.refined_query}'")
            return replace(
                state,
                stage=Stage.DISPATCHING,
                last_verdict=verdict,
                current_query=verdict.refined_query,
            )

        if state.iteration >= state.max_iterations:
            reason = BUDGET_EXCEEDED
        elif verdict.sufficient:
            reason = "sufficient"
        else:
            reason = "no_refinement"
        return replace(state, stage=Stage.AGGREGATING, last_verdict=verdict, terminal_reason=reason)

    async def _aggregate(self, run: _Run, state: OrchestratorState) -> OrchestratorState:
        output_cap = self.ranker.output_cap
        if state.ranked is not None and run.ranked_iteration == state.iteration and len(state.ranked):
            results = list(state.ranked.results)
        else:
            # The last iteration never got ranked: fall back to everything gathered so far.
            results = sorted(state.accumulated_results, key=lambda r: -r.score)[:output_cap]
            if results:
                logger.info(f"Using {len(results)} accumulated results (no ranking for iteration {state.iteration})")

        run.final_results = results
        if self.enricher is not None and results:
            run.final_results = await self.enricher.enrich(results)
        return replace(state, stage=Stage.CITING)

    async def _cite(self, run: _Run, state: OrchestratorState) -> OrchestratorState:
        run.citations = self.citation_extractor.extract(run.final_results)
        return replace(state, stage=Stage.DONE)

    def _build_result(self, run: _Run, state: OrchestratorState) -> EngineResult:
        results = run.final_results
        citations = run.citations
        # Recovery from a failed aggregation: serve the accumulated results.
        if not results and run.errors and state.accumulated_results:
            results = sorted(state.accumulated_results, key=lambda r: -r.score)[:self.ranker.output_cap]
            citations = self.citation_extractor.extract(results)

        metadata = {
            "original_query": state.original_query,
            "final_query": state.current_query,
            "queries_used": list(state.queries_used),
            "terminal_reason": state.terminal_reason,
            "elapsed_ms": state.elapsed_ms,
            "sources": [a.source_tag for a in run.adapters],
            "adapter_failures": [
                str(run_.error) for batch in state.batches for run_ in batch.runs if run_.error is not None
            ],
            "errors": [str(e) for e in run.errors],
        }
        if state.last_verdict is not None:
            metadata["quality_score"] = state.last_verdict.score
            metadata["sufficient"] = state.last_verdict.sufficient
        if run.classification is not None:
            metadata["complexity"] = run.classification.complexity.value
            metadata["time_range_hint"] = run.classification.time_range_hint

        no_data = not results
        if no_data:
            logger.info(f"No data found for '{state.original_query}'")
        return EngineResult(
            query=state.original_query,
            results=results,
            citations=citations,
            iterations_used=state.iteration,
            no_data_found=no_data,
            message=NO_DATA_MESSAGE if no_data else None,
            metadata=metadata,
        )


async def run_search(
    query: str,
    adapters: list[SourceAdapter],
    max_iterations: int = 3,
    **engine_kwargs,
) -> EngineResult:
    """
    Convenience function: build an engine, enter its adapters and run one search.

    Args:
        query: The user query
        adapters: Source adapters in priority order
        max_iterations: Iteration budget
        **engine_kwargs: Further ``SearchEngine`` arguments (ranker, quality_gate, ...)

    Returns:
        EngineResult
    """
    async with SearchEngine(adapters=adapters, max_iterations=max_iterations, **engine_kwargs) as engine:
        return await engine.run(query)
