"""State and result models for the search engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from ..sources.models import AdapterError, SearchResult, SourceQuery


class Stage(str, Enum):
    """Orchestrator stages, in the order they are normally visited."""

    CLASSIFYING = "classifying"
    DISPATCHING = "dispatching"
    RANKING = "ranking"
    QUALITY_CHECKING = "quality_checking"
    AGGREGATING = "aggregating"
    CITING = "citing"
    DONE = "done"


class Complexity(str, Enum):
    """Rough query complexity, used to size the search."""

    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


@dataclass(frozen=True)
class Classification:
    """Output of the classifying stage."""

    search_query: str
    time_range_hint: str | None = None
    complexity: Complexity = Complexity.MODERATE


@dataclass(frozen=True)
class AdapterRun:
    """Bookkeeping for one (query, adapter) pair of a dispatch."""

    query_id: str
    source_tag: str
    ok: bool
    result_count: int
    error: AdapterError | None = None
    elapsed_ms: int = 0


@dataclass(frozen=True)
class DispatchBatch:
    """Merged output of one dispatch. Never mutated after creation."""

    iteration: int
    queries: tuple[SourceQuery, ...]
    results: tuple[SearchResult, ...]
    runs: tuple[AdapterRun, ...] = ()

    @property
    def failed_runs(self) -> list[AdapterRun]:
        return [run for run in self.runs if not run.ok]


@dataclass(frozen=True)
class RankedSet:
    """Ordered, length-bounded results after scoring and diversification."""

    results: tuple[SearchResult, ...] = ()
    scored_by_oracle: bool = False

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self):
        return iter(self.results)


@dataclass(frozen=True)
class QualityVerdict:
    """Sufficiency judgement for a ranked set."""

    score: int = 3
    sufficient: bool = True
    refined_query: str | None = None
    skipped: bool = False
    reason: str = ""

    @classmethod
    def skip(cls, reason: str) -> QualityVerdict:
        return cls(score=3, sufficient=True, skipped=True, reason=reason)

    @classmethod
    def fail_open(cls, reason: str) -> QualityVerdict:
        return cls(score=3, sufficient=True, reason=reason)


@dataclass(frozen=True)
class OrchestratorState:
    """Snapshot of a run. Replaced, never mutated, on every transition."""

    original_query: str
    current_query: str
    max_iterations: int
    iteration: int = 0
    stage: Stage = Stage.CLASSIFYING
    accumulated_results: tuple[SearchResult, ...] = ()
    batches: tuple[DispatchBatch, ...] = ()
    ranked: RankedSet | None = None
    last_verdict: QualityVerdict | None = None
    queries_used: tuple[str, ...] = ()
    time_range_hint: str | None = None
    elapsed_ms: int = 0
    terminal_reason: str | None = None


class Citation(BaseModel):
    """A citation pointing from answer text (or rank) back to a source."""

    index: str
    cited_text: str
    document_title: str
    document_id: str | None = None
    source_url: str | None = None
    similarity_score: float | None = None
    chunk_index: int | None = None
    filename: str | None = None
    source_tag: str | None = None


class DocumentMetadata(BaseModel):
    """Metadata attached to a numbered context entry."""

    document_id: str | None = None
    similarity_score: float | None = None
    chunk_index: int | None = None
    filename: str | None = None
    source_tag: str | None = None


class DocumentContext(BaseModel):
    """One numbered entry of the context handed to the answer LLM."""

    title: str
    content: str
    url: str | None = None
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)


class EngineEvent(BaseModel):
    """Progress event emitted by the orchestrator."""

    type: str
    iteration: int = 0
    data: dict[str, Any] = Field(default_factory=dict)


class EngineResult(BaseModel):
    """What a caller receives from a run. Always returned, never raised."""

    query: str
    results: list[SearchResult] = Field(default_factory=list)
    citations: list[Citation] = Field(default_factory=list)
    iterations_used: int = 0
    no_data_found: bool = False
    message: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def document_context(self) -> list[DocumentContext]:
        """Numbered context entries for the final answer prompt."""
        from .citations import build_document_context

        return build_document_context(self.results)


NO_DATA_MESSAGE = "no data found"
