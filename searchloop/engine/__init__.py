"""Search engine: classification, dispatch, ranking, quality loop and citations."""

from .citations import CitationExtractor, CitedAnswer, build_document_context, cited_indices
from .classifier import classify
from .dispatcher import Dispatcher
from .enricher import ContentEnricher, HttpPageFetcher
from .events import EventCollector
from .expander import QueryExpander
from .models import (
    Citation,
    DispatchBatch,
    DocumentContext,
    EngineEvent,
    EngineResult,
    OrchestratorState,
    QualityVerdict,
    RankedSet,
    Stage,
)
from .oracle import LLMOracle
from .orchestrator import SearchEngine, run_search
from .parsing import parse_oracle_json
from .protocols import EventListener, ExpansionOracle, PageFetcher, RelevanceOracle, SufficiencyOracle
from .quality_gate import QualityGate
from .ranker import RelevanceRanker, mmr_select

__all__ = [
    # Orchestration
    "SearchEngine",
    "run_search",
    "Stage",
    "OrchestratorState",
    "EngineResult",
    "EngineEvent",
    "EventCollector",
    "EventListener",
    # Stages
    "classify",
    "QueryExpander",
    "Dispatcher",
    "DispatchBatch",
    "RelevanceRanker",
    "RankedSet",
    "mmr_select",
    "QualityGate",
    "QualityVerdict",
    "ContentEnricher",
    "HttpPageFetcher",
    "PageFetcher",
    # Citations
    "Citation",
    "CitationExtractor",
    "CitedAnswer",
    "DocumentContext",
    "build_document_context",
    "cited_indices",
    # Oracles
    "LLMOracle",
    "RelevanceOracle",
    "SufficiencyOracle",
    "ExpansionOracle",
    "parse_oracle_json",
]
