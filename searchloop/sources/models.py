"""Data models shared by source adapters and the engine."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ContentKind(str, Enum):
    """Kind of content a result points at."""

    WEB_PAGE = "web_page"
    DOCUMENT_CHUNK = "document_chunk"
    PAPER = "paper"
    NEWS = "news"


class SearchResult(BaseModel):
    """One retrieved item.

    ``url`` is the deduplication key when present. ``score`` always lies in
    ``[0, 1]``; values outside the range are clamped on construction.
    """

    id: str
    title: str = ""
    body: str = ""
    url: str | None = None
    source_tag: str
    score: float = 0.0
    content_kind: ContentKind | None = None
    document_id: str | None = None
    chunk_index: int | None = None
    crawled_body: str | None = None

    model_config = ConfigDict(frozen=True)

    @field_validator("score", mode="before")
    @classmethod
    def _clamp_score(cls, value: float | None) -> float:
        if value is None:
            return 0.0
        return min(1.0, max(0.0, float(value)))

    @property
    def text(self) -> str:
        """Best available text for this result."""
        return self.crawled_body or self.body

    def with_score(self, score: float) -> SearchResult:
        """Return a copy carrying a new (clamped) score."""
        return self.model_copy(update={"score": min(1.0, max(0.0, score))})


class SourceQuery(BaseModel):
    """A query as handed to source adapters. Immutable once created."""

    text: str
    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    variant_of: str | None = None
    time_range_hint: str | None = None  # "day", "week", "month", "year" or "YYYY"

    model_config = ConfigDict(frozen=True)

    @field_validator("text")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("query text must not be empty")
        return value

    def variant(self, text: str) -> SourceQuery:
        """Create a variant query derived from this one."""
        return SourceQuery(text=text, variant_of=self.id, time_range_hint=self.time_range_hint)


class AdapterErrorKind(str, Enum):
    """Why an adapter call produced no results."""

    TIMEOUT = "timeout"
    MALFORMED_RESPONSE = "malformed_response"
    BACKEND_ERROR = "backend_error"
    NOT_READY = "not_ready"


@dataclass(frozen=True)
class AdapterError:
    """A failed adapter call, returned as a value rather than raised."""

    source_tag: str
    kind: AdapterErrorKind
    message: str

    def __str__(self) -> str:
        return f"[{self.source_tag}] {self.kind.value}: {self.message}"


@dataclass(frozen=True)
class AdapterOutcome:
    """Result of one adapter call: either results or an error."""

    source_tag: str
    results: tuple[SearchResult, ...] = field(default_factory=tuple)
    error: AdapterError | None = None
    elapsed_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, source_tag: str, results: list[SearchResult], elapsed_ms: int = 0) -> AdapterOutcome:
        return cls(source_tag=source_tag, results=tuple(results), elapsed_ms=elapsed_ms)

    @classmethod
    def failure(
        cls,
        source_tag: str,
        kind: AdapterErrorKind,
        message: str,
        elapsed_ms: int = 0,
    ) -> AdapterOutcome:
        return cls(
            source_tag=source_tag,
            error=AdapterError(source_tag=source_tag, kind=kind, message=message),
            elapsed_ms=elapsed_ms,
        )
