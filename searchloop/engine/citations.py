"""
Citation extraction.

Two modes:
- direct: one citation per ranked result, numbered by rank
- annotated text: parse ``[n] "quote"`` style references out of an answer
  written against a numbered document context
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

from pydantic import BaseModel, Field

from ..sources.models import SearchResult
from .models import Citation, DocumentContext, DocumentMetadata, RankedSet

logger = logging.getLogger(__name__)

# Applied in order; an index keeps the citation from the first pattern that produced it.
CITATION_PATTERNS = [
    re.compile(r'\[(\d+)\]\s*"([^"]+)"\s*\(Dokument:\s*([^)]+)\)'),  # [1] "text" (Dokument: title)
    re.compile(r'\[(\d+)\]\s*"([^"]+)"'),  # [1] "text"
    re.compile(r'\[(\d+)\]\s*„([^“”"]+)[“”"]'),  # [1] „text“ (German quotes)
    re.compile(r"\[(\d+)\]\s*'([^']+)'"),  # [1] 'text'
    re.compile(r'>\s*\[(\d+)\]\s*"([^"]+)"'),  # > [1] "text" (blockquote)
]
REFERENCE_RE = re.compile(r"\[(\d+)\]")
QUOTE_LINE_RE = re.compile(r'\[\d+\]\s*"[^"]*"(?:\s*\([^)]*\))?')

CITATION_SECTION_PATTERNS = [
    re.compile(r"Hier sind die relevanten Zitate.*?:\s*\n\n([\s\S]*?)\n\nAntwort:", re.IGNORECASE),
    re.compile(r"Relevante Zitate.*?:\s*\n\n([\s\S]*?)\n\nAntwort:", re.IGNORECASE),
    re.compile(r"Zitate.*?:\s*\n\n([\s\S]*?)\n\nAntwort:", re.IGNORECASE),
]
ANSWER_RE = re.compile(r"\nAntwort:\s*([\s\S]*)$", re.IGNORECASE)

# Characters of a quote used to find its document when the index is out of range.
QUOTE_PREFIX_CHARS = 20


def build_document_context(results: Iterable[SearchResult]) -> list[DocumentContext]:
    """
    Turn ranked results into the numbered context given to the answer LLM.

    Entry ``n`` of the context is what ``[n]`` refers to in the answer.
    """
    return [
        DocumentContext(
            title=result.title or "Untitled",
            content=result.text,
            url=result.url,
            metadata=DocumentMetadata(
                document_id=result.document_id or result.id,
                similarity_score=result.score,
                chunk_index=result.chunk_index,
                source_tag=result.source_tag,
            ),
        )
        for result in results
    ]


def format_document_context(context: list[DocumentContext], max_chars: int = 1500) -> str:
    """Render a document context as numbered prompt text."""
    blocks = []
    for n, doc in enumerate(context, start=1):
        source = f" ({doc.url})" if doc.url else ""
        blocks.append(f"[{n}] {doc.title}{source}\n{doc.content[:max_chars]}")
    return "\n\n".join(blocks)


def cited_indices(text: str) -> list[str]:
    """Distinct ``[n]`` references in a text, in order of first appearance."""
    seen: list[str] = []
    for match in REFERENCE_RE.finditer(text):
        if match.group(1) not in seen:
            seen.append(match.group(1))
    return seen


def _citation(index: str, cited_text: str, doc: DocumentContext, title: str | None = None) -> Citation:
    return Citation(
        index=index,
        cited_text=cited_text,
        document_title=title or doc.title,
        document_id=doc.metadata.document_id,
        source_url=doc.url,
        similarity_score=doc.metadata.similarity_score,
        chunk_index=doc.metadata.chunk_index,
        filename=doc.metadata.filename,
        source_tag=doc.metadata.source_tag,
    )


class CitedAnswer(BaseModel):
    """An answer split from its citation section, with resolved citations."""

    answer: str
    citations: list[Citation] = Field(default_factory=list)


class CitationExtractor:
    """Builds citations from ranked results or from annotated answer text."""

    def __init__(self, excerpt_chars: int = 300):
        self.excerpt_chars = excerpt_chars

    def extract(self, ranked: RankedSet | Iterable[SearchResult]) -> list[Citation]:
        """
        One citation per result in rank order, numbered from 1 without gaps.

        Args:
            ranked: Ranked results

        Returns:
            Citations with ``index`` "1".."N"
        """
        context = build_document_context(ranked)
        citations = []
        for n, doc in enumerate(context, start=1):
            excerpt = " ".join(doc.content.split())[:self.excerpt_chars]
            citations.append(_citation(str(n), excerpt, doc))
        return citations

    def extract_from_annotated_text(self, text: str, context: list[DocumentContext]) -> list[Citation]:
        """
        Resolve ``[n]`` references in text against a numbered context.

        Args:
            text: Answer (or citation section) written by the LLM
            context: Document context the LLM was given; ``[n]`` is entry n-1

        Returns:
            Citations deduplicated by index, first occurrence wins
        """
        extracted: list[Citation] = []

        for pattern in CITATION_PATTERNS:
            for match in pattern.finditer(text):
                number = match.group(1)
                position = int(number) - 1
                cited_text = match.group(2).strip()
                title = match.group(3).strip() if pattern.groups >= 3 and match.group(3) else None

                if 0 <= position < len(context):
                    extracted.append(_citation(number, cited_text, context[position], title))
                    continue

                logger.warning(f"Citation [{number}] out of range (1-{len(context)})")
                if position < 0:
                    continue
                prefix = match.group(2)[:QUOTE_PREFIX_CHARS]
                best = next((doc for doc in context if prefix in doc.content), None)
                if best is not None:
                    logger.debug(f"Matched out-of-range citation [{number}] by quoted text")
                    extracted.append(_citation(number, cited_text, best))

        found = {c.index for c in extracted}
        for number in cited_indices(text):
            if number in found:
                continue
            position = int(number) - 1
            if 0 <= position < len(context):
                doc = context[position]
                extracted.append(_citation(number, f"Reference from {doc.title}", doc))
            elif position >= 0 and context:
                doc = context[-1]
                extracted.append(_citation(number, f"Reference to additional content from {doc.title}", doc))

        unique: list[Citation] = []
        seen: set[str] = set()
        for citation in extracted:
            if citation.index not in seen:
                unique.append(citation)
                seen.add(citation.index)

        logger.info(f"Extracted {len(unique)} citations: {[c.index for c in unique]}")
        return unique

    def process_answer(self, response: str, context: list[DocumentContext]) -> CitedAnswer:
        """
        Split an LLM response into answer text and citations.

        Responses of the form "Relevante Zitate: ... Antwort: ..." have their
        citation section parsed separately; otherwise citations are taken from
        the whole response and quote lines are removed from the answer.
        """
        for pattern in CITATION_SECTION_PATTERNS:
            match = pattern.search(response)
            if match:
                answer = response[response.index("Antwort:") + len("Antwort:"):].strip()
                return CitedAnswer(
                    answer=answer,
                    citations=self.extract_from_annotated_text(match.group(1), context),
                )

        citations = self.extract_from_annotated_text(response, context)
        answer = response
        if citations:
            answer_match = ANSWER_RE.search(response)
            answer = answer_match.group(1).strip() if answer_match else QUOTE_LINE_RE.sub("", response).strip()
        return CitedAnswer(answer=answer, citations=citations)
