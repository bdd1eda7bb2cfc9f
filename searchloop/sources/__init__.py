"""Retrieval backends behind a uniform, never-raising search contract."""

from .arxiv import ArxivAdapter
from .base import BaseSourceAdapter
from .deduplication import canonical_url, deduplicate_results
from .documents import DocumentIndexAdapter, KeywordDocumentIndex, StoredDocument, load_documents
from .models import (
    AdapterError,
    AdapterErrorKind,
    AdapterOutcome,
    ContentKind,
    SearchResult,
    SourceQuery,
)
from .protocols import DocumentIndex, SourceAdapter
from .semantic_scholar import SemanticScholarAdapter
from .web import SearxngAdapter

__all__ = [
    "AdapterError",
    "AdapterErrorKind",
    "AdapterOutcome",
    "ArxivAdapter",
    "BaseSourceAdapter",
    "ContentKind",
    "DocumentIndex",
    "DocumentIndexAdapter",
    "KeywordDocumentIndex",
    "SearchResult",
    "SearxngAdapter",
    "SemanticScholarAdapter",
    "SourceAdapter",
    "SourceQuery",
    "StoredDocument",
    "canonical_url",
    "deduplicate_results",
    "load_documents",
]
