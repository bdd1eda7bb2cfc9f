"""Document index adapter and a small in-memory keyword index."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from ..errors import ConfigError
from .base import BaseSourceAdapter
from .models import ContentKind, SearchResult, SourceQuery
from .protocols import DocumentIndex

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[^a-zäöüß0-9\s]")


def keyword_tokens(text: str) -> set[str]:
    """Lowercase word tokens of three or more characters."""
    return {t for t in _TOKEN_RE.sub(" ", text.lower()).split() if len(t) >= 3}


class StoredDocument(BaseModel):
    """A document as loaded from a documents file."""

    id: str
    title: str
    content: str
    url: str | None = None
    filename: str | None = None


class DocumentsFile(BaseModel):
    """Root structure of a documents YAML/JSON file."""

    documents: list[StoredDocument] = Field(default_factory=list)


def chunk_text(text: str, chunk_size: int = 800, overlap: int = 100) -> list[str]:
    """
    Split text into overlapping chunks, preferring paragraph boundaries.

    Args:
        text: Text to split
        chunk_size: Target chunk length in characters
        overlap: Characters carried over from the previous chunk

    Returns:
        List of non-empty chunks

    Raises:
        ValueError: If overlap is negative or not smaller than chunk_size
    """
    if chunk_size <= 0 or not 0 <= overlap < chunk_size:
        raise ValueError(f"overlap must be in [0, chunk_size), got overlap={overlap}, chunk_size={chunk_size}")

    paragraphs = [p.strip() for p in re.split(r"\n\s*\n", text) if p.strip()]
    chunks: list[str] = []
    current = ""

    for paragraph in paragraphs:
        if current and len(current) + len(paragraph) + 2 > chunk_size:
            chunks.append(current)
            current = current[-overlap:] if overlap else ""
        current = f"{current}\n\n{paragraph}".strip() if current else paragraph
        while len(current) > chunk_size:
            chunks.append(current[:chunk_size])
            current = current[chunk_size - overlap:] if overlap else current[chunk_size:]

    if current:
        chunks.append(current)
    return chunks


class KeywordDocumentIndex:
    """
    In-memory keyword index over chunked documents.

    Scores a chunk by the fraction of query tokens it contains, with a small
    bonus for tokens that also appear in the document title. Stands in for a
    vector store in local runs and tests.
    """

    def __init__(self, documents: list[StoredDocument], chunk_size: int = 800, overlap: int = 100):
        self.documents = documents
        self._chunks: list[dict[str, Any]] = []
        for doc in documents:
            title_tokens = keyword_tokens(doc.title)
            for chunk_index, chunk in enumerate(chunk_text(doc.content, chunk_size, overlap)):
                self._chunks.append({
                    "document_id": doc.id,
                    "title": doc.title,
                    "url": doc.url,
                    "filename": doc.filename,
                    "chunk_index": chunk_index,
                    "content": chunk,
                    "tokens": keyword_tokens(chunk),
                    "title_tokens": title_tokens,
                })
        logger.info(f"Indexed {len(documents)} documents into {len(self._chunks)} chunks")

    async def query(self, text: str, limit: int) -> list[dict[str, Any]]:
        query_tokens = keyword_tokens(text)
        if not query_tokens:
            return []

        scored = []
        for chunk in self._chunks:
            hits = len(query_tokens & chunk["tokens"])
            if not hits:
                continue
            title_hits = len(query_tokens & chunk["title_tokens"])
            score = min(1.0, hits / len(query_tokens) + 0.1 * title_hits)
            scored.append((score, chunk))

        # Stable on ties: index order is insertion order.
        scored.sort(key=lambda pair: -pair[0])
        return [
            {
                "content": chunk["content"],
                "score": score,
                "title": chunk["title"],
                "url": chunk["url"],
                "document_id": chunk["document_id"],
                "chunk_index": chunk["chunk_index"],
                "filename": chunk["filename"],
            }
            for score, chunk in scored[:limit]
        ]


def load_documents(path: str | Path) -> list[StoredDocument]:
    """
    Load documents from a YAML or JSON file.

    The file holds a ``documents`` list of ``{id, title, content, url?,
    filename?}`` entries.

    Raises:
        ConfigError: If the file is missing or malformed
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Documents file not found: {path}")

    with open(path, encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            raw = json.load(f)
        else:
            raw = yaml.safe_load(f)

    if isinstance(raw, list):
        raw = {"documents": raw}
    try:
        return DocumentsFile.model_validate(raw or {}).documents
    except ValueError as e:
        raise ConfigError(f"Invalid documents file {path}: {e}") from e


class DocumentIndexAdapter(BaseSourceAdapter):
    """
    Adapter over any ``DocumentIndex`` backend.

    Usage:
        index = KeywordDocumentIndex(load_documents("docs.yaml"))
        adapter = DocumentIndexAdapter(index)
        outcome = await adapter.search(SourceQuery(text="Klimaschutz"))
    """

    def __init__(self, index: DocumentIndex, source_tag: str = "documents"):
        self.index = index
        self.source_tag = source_tag

    async def _search(self, query: SourceQuery, limit: int) -> list[SearchResult]:
        hits = await self.index.query(query.text, limit)
        results = []
        for hit in hits:
            document_id = hit.get("document_id")
            chunk_index = hit.get("chunk_index")
            results.append(
                SearchResult(
                    id=f"{self.source_tag}:{document_id or 'doc'}:{chunk_index if chunk_index is not None else len(results)}",
                    title=hit.get("title") or "Untitled document",
                    body=hit["content"],
                    url=hit.get("url"),
                    source_tag=self.source_tag,
                    score=hit["score"],
                    content_kind=ContentKind.DOCUMENT_CHUNK,
                    document_id=document_id,
                    chunk_index=chunk_index,
                )
            )
        logger.info(f"Document index returned {len(results)} chunks for '{query.text}'")
        return results
