"""Factory functions to create the engine and its backends from configuration."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from ..errors import ConfigError

if TYPE_CHECKING:
    from ..engine.oracle import LLMOracle
    from ..engine.orchestrator import SearchEngine
    from ..engine.protocols import EventListener
    from ..llm.protocols import LLMProvider
    from ..sources.protocols import SourceAdapter
    from .loader import OracleConfig, ProfileConfig, SourceConfig

logger = logging.getLogger(__name__)

# One object that satisfies the score, sufficiency and expansion schemas.
MOCK_ORACLE_RESPONSE = json.dumps({
    "scores": [],
    "score": 4,
    "sufficient": True,
    "refined_query": None,
    "reason": "mock",
    "queries": [],
})


class MockLLMProvider:
    """Mock LLM provider for testing.

    Returns queued responses in order, then ``default_response``.
    """

    def __init__(self, responses: list[str] | None = None, default_response: str = MOCK_ORACLE_RESPONSE):
        self.model = "mock"
        self.responses = list(responses or [])
        self.default_response = default_response
        self.prompts: list[str] = []

    async def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float = 0.0,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> str:
        """Return the next queued completion."""
        self.prompts.append(prompt)
        if self.responses:
            return self.responses.pop(0)
        return self.default_response

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        pass


def create_llm_provider(config: OracleConfig) -> LLMProvider:
    """Create an LLM provider from configuration.

    Args:
        config: Oracle configuration

    Returns:
        LLMProvider instance (OpenRouterAdapter, AnthropicAdapter, or Mock)

    Raises:
        ConfigError: If the backend is unsupported or lacks an API key
    """
    if config.backend == "openrouter":
        from ..llm import OpenRouterAdapter

        if not config.api_key:
            raise ConfigError("OpenRouter backend requires api_key")
        return OpenRouterAdapter(api_key=config.api_key, model=config.model, base_url=config.base_url)

    elif config.backend == "anthropic":
        from ..llm import AnthropicAdapter

        if not config.api_key:
            raise ConfigError("Anthropic backend requires api_key")
        return AnthropicAdapter(api_key=config.api_key, model=config.model)

    elif config.backend == "mock":
        return MockLLMProvider()

    raise ConfigError(f"Unsupported oracle backend: {config.backend}")


def create_oracle(llm_provider: LLMProvider, profile: ProfileConfig) -> LLMOracle:
    """Create the LLM oracle used for scoring, sufficiency and expansion."""
    from ..engine.oracle import LLMOracle

    return LLMOracle(
        llm_provider,
        temperature=profile.oracle.temperature,
        max_tokens=profile.oracle.max_tokens,
        max_variants=profile.expander.max_variants,
    )


def create_adapter(config: SourceConfig) -> SourceAdapter:
    """Create one source adapter from configuration.

    Raises:
        ConfigError: If required options are missing
    """
    options = dict(config.options)
    if config.source_tag:
        options["source_tag"] = config.source_tag

    if config.kind == "searxng":
        from ..sources.web import SearxngAdapter

        return SearxngAdapter(**options)

    elif config.kind == "semantic_scholar":
        from ..sources.semantic_scholar import SemanticScholarAdapter

        return SemanticScholarAdapter(**options)

    elif config.kind == "arxiv":
        from ..sources.arxiv import ArxivAdapter

        return ArxivAdapter(**options)

    elif config.kind == "documents":
        from ..sources.documents import DocumentIndexAdapter, KeywordDocumentIndex, load_documents

        path = options.pop("path", None)
        if not path:
            raise ConfigError("Documents source requires a 'path' option")
        index = KeywordDocumentIndex(load_documents(path))
        return DocumentIndexAdapter(index, **options)

    raise ConfigError(f"Unsupported source kind: {config.kind}")


def create_adapters(profile: ProfileConfig, source_selection: list[str] | None = None) -> list[SourceAdapter]:
    """Create the enabled adapters of a profile, in priority order.

    Args:
        profile: Profile configuration
        source_selection: Optional source tags or kinds to keep

    Returns:
        Adapters sorted by priority (stable for equal priorities)
    """
    adapters = []
    for source in sorted(profile.sources, key=lambda s: s.priority):
        if not source.enabled:
            continue
        tag = source.source_tag or source.kind
        if source_selection and tag not in source_selection and source.kind not in source_selection:
            continue
        adapters.append(create_adapter(source))

    logger.info(f"Created {len(adapters)} adapters: {[a.source_tag for a in adapters]}")
    return adapters


def create_engine(
    profile: ProfileConfig,
    adapters: list[SourceAdapter] | None = None,
    llm_provider: LLMProvider | None = None,
    listener: EventListener | None = None,
) -> SearchEngine:
    """Create a complete search engine from a profile.

    This is the main factory function. The returned engine must be used as
    an async context manager so the adapters and the LLM client are opened.

    Args:
        profile: Profile configuration
        adapters: Adapters to use instead of the profile's sources
        llm_provider: LLM provider to use instead of the profile's oracle backend
        listener: Optional progress event listener

    Returns:
        SearchEngine
    """
    from ..engine.citations import CitationExtractor
    from ..engine.dispatcher import Dispatcher
    from ..engine.enricher import ContentEnricher, HttpPageFetcher
    from ..engine.expander import QueryExpander
    from ..engine.orchestrator import SearchEngine
    from ..engine.quality_gate import QualityGate
    from ..engine.ranker import RelevanceRanker

    llm = llm_provider or create_llm_provider(profile.oracle)
    oracle = create_oracle(llm, profile)
    timeout = profile.oracle.timeout
    resources = [llm]

    enricher = None
    if profile.enricher.enabled:
        fetcher = HttpPageFetcher(timeout=profile.enricher.timeout)
        resources.append(fetcher)
        enricher = ContentEnricher(
            fetcher,
            top_n=profile.enricher.top_n,
            max_chars=profile.enricher.max_chars,
            timeout=profile.enricher.timeout,
        )

    return SearchEngine(
        adapters=adapters if adapters is not None else create_adapters(profile),
        dispatcher=Dispatcher(
            per_adapter_limit=profile.dispatcher.per_adapter_limit,
            adapter_timeout=profile.dispatcher.adapter_timeout,
            similarity_threshold=profile.dispatcher.similarity_threshold,
        ),
        ranker=RelevanceRanker(
            oracle,
            candidate_cap=profile.ranker.candidate_cap,
            output_cap=profile.ranker.output_cap,
            lambda_=profile.ranker.mmr_lambda,
            min_relevance=profile.ranker.min_relevance,
            timeout=timeout,
        ),
        quality_gate=QualityGate(
            oracle if profile.quality_gate.enabled else None,
            summary_top_n=profile.quality_gate.summary_top_n,
            body_chars=profile.quality_gate.body_chars,
            timeout=timeout,
        ),
        expander=QueryExpander(
            oracle,
            max_variants=profile.expander.max_variants,
            timeout=timeout,
        ) if profile.expander.enabled else None,
        enricher=enricher,
        citation_extractor=CitationExtractor(),
        max_iterations=profile.orchestrator.max_iterations,
        stage_timeout=profile.orchestrator.stage_timeout,
        classify_queries=profile.orchestrator.classify_queries,
        listener=listener,
        resources=resources,
    )
