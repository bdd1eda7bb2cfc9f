"""
LLM-backed oracles for relevance scoring, sufficiency and query expansion.

One ``LLMOracle`` implements all three oracle protocols on top of an
``LLMProvider``. Every method raises ``OracleError`` when the call fails or
the answer cannot be used; the components calling it decide the fallback.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import OracleError
from .models import QualityVerdict
from .parsing import parse_oracle_json

if TYPE_CHECKING:
    from ..llm.protocols import LLMProvider
    from ..sources.models import SearchResult

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """Du bist ein Recherche-Assistent, der Suchergebnisse bewertet.
Antworte immer nur mit einem einzigen JSON-Objekt ohne weiteren Text."""


class ScoreEntry(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    index: int
    score: float


class ScoreResponse(BaseModel):
    """Relevance scores keyed by 1-based candidate number."""

    scores: list[ScoreEntry] = Field(default_factory=list)


class SufficiencyResponse(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    score: float
    sufficient: bool
    refined_query: str | None = None
    reason: str = ""

    @field_validator("refined_query")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()


class ExpansionResponse(BaseModel):
    queries: list[str] = Field(default_factory=list)


def format_candidates(candidates: list[SearchResult], body_chars: int = 300) -> str:
    """Number candidates 1..N with title and a body excerpt."""
    lines = []
    for i, result in enumerate(candidates, start=1):
        body = " ".join(result.text.split())[:body_chars]
        lines.append(f"[{i}] {result.title}\n{body}")
    return "\n\n".join(lines)


class LLMOracle:
    """
    Oracle backed by an LLM provider.

    Usage:
        async with OpenRouterAdapter() as llm:
            oracle = LLMOracle(llm)
            scores = await oracle.score("Bahnausbau", candidates)
    """

    def __init__(
        self,
        llm_provider: LLMProvider,
        temperature: float = 0.0,
        max_tokens: int = 512,
        max_variants: int = 3,
    ):
        """
        Initialize the oracle.

        Args:
            llm_provider: LLM provider used for every judgement
            temperature: Sampling temperature (0 keeps rankings stable)
            max_tokens: Maximum tokens per answer
            max_variants: Number of variants requested from the expansion prompt
        """
        self.llm = llm_provider
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_variants = max_variants

    async def _ask(self, operation: str, prompt: str) -> str:
        try:
            return await self.llm.complete(
                prompt=prompt,
                system_prompt=SYSTEM_PROMPT,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                json_mode=True,
            )
        except Exception as e:
            raise OracleError(operation, f"{type(e).__name__}: {e}") from e

    async def score(self, query: str, candidates: list[SearchResult]) -> dict[int, float]:
        """Score candidates 1-5; keys are 0-based candidate positions."""
        if not candidates:
            return {}

        prompt = f"""Bewerte, wie relevant jedes Suchergebnis für die Anfrage ist.

Anfrage: "{query}"

Suchergebnisse:
{format_candidates(candidates)}

Vergib für jedes Ergebnis eine Punktzahl von 1 (irrelevant) bis 5 (beantwortet die Anfrage direkt).
Antwortformat: {{"scores": [{{"index": 1, "score": 4}}, ...]}}"""

        response = await self._ask("score", prompt)
        parsed = parse_oracle_json(response, ScoreResponse, default=None)
        if parsed is None:
            raise OracleError("score", "unparseable response")

        scores = {}
        for entry in parsed.scores:
            position = entry.index - 1
            if 0 <= position < len(candidates) and 1.0 <= entry.score <= 5.0:
                scores[position] = entry.score
            else:
                logger.debug(f"Ignoring out-of-range score entry {entry}")
        logger.info(f"Oracle scored {len(scores)}/{len(candidates)} candidates")
        return scores

    async def assess_sufficiency(self, query: str, summary: str) -> QualityVerdict:
        """Judge whether the summarized results answer the query."""
        prompt = f"""Prüfe, ob die folgenden Suchergebnisse ausreichen, um die Anfrage fundiert zu beantworten.

Anfrage: "{query}"

Ergebnisse:
{summary}

Antwortformat:
{{"score": <1-5>, "sufficient": <true|false>, "refined_query": "<bessere Suchanfrage oder null>", "reason": "<kurze Begründung>"}}

Gib nur dann eine refined_query an, wenn die Ergebnisse nicht ausreichen."""

        response = await self._ask("assess_sufficiency", prompt)
        parsed = parse_oracle_json(response, SufficiencyResponse, default=None)
        if parsed is None:
            raise OracleError("assess_sufficiency", "unparseable response")

        return QualityVerdict(
            score=round(parsed.score),
            sufficient=parsed.sufficient,
            refined_query=parsed.refined_query,
            reason=parsed.reason,
        )

    async def expand_query(self, query: str) -> list[str]:
        """Propose alternative search queries."""
        prompt = f"""Formuliere bis zu {self.max_variants} alternative Suchanfragen, die andere Aspekte
oder Formulierungen der folgenden Anfrage abdecken.

Anfrage: "{query}"

Antwortformat: {{"queries": ["...", "..."]}}"""

        response = await self._ask("expand_query", prompt)
        parsed = parse_oracle_json(response, ExpansionResponse, default=None)
        if parsed is None:
            raise OracleError("expand_query", "unparseable response")
        return [q.strip() for q in parsed.queries if q and q.strip()]
