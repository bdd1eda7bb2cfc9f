"""
Relevance ranking: oracle scoring followed by MMR diversification.

Maximal marginal relevance picks, at every step, the candidate with the best
trade-off between its own relevance and its similarity to what has already
been picked, so near-identical results do not crowd out other angles.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import TYPE_CHECKING

from ..errors import OracleError
from ..sources.models import SearchResult
from .models import RankedSet

if TYPE_CHECKING:
    from .protocols import RelevanceOracle

logger = logging.getLogger(__name__)

_NON_WORD_RE = re.compile(r"[^a-zäöüß0-9\s]")


def tokenize(text: str) -> set[str]:
    """Lowercase word tokens of length >= 4, umlauts kept."""
    return {t for t in _NON_WORD_RE.sub(" ", text.lower()).split() if len(t) >= 4}


def jaccard(a: set[str], b: set[str]) -> float:
    """Jaccard similarity of two token sets (0.0 when both are empty)."""
    if not a and not b:
        return 0.0
    return len(a & b) / len(a | b)


def normalize_oracle_score(score: float) -> float:
    """Map an oracle score on the 1-5 scale into [0, 1]."""
    return min(1.0, max(0.0, (score - 1.0) / 4.0))


def mmr_select(
    candidates: list[SearchResult],
    lambda_: float = 0.7,
    output_cap: int = 8,
    min_relevance: float = 0.2,
) -> list[SearchResult]:
    """
    Greedy maximal-marginal-relevance selection.

    Args:
        candidates: Candidates with relevance in ``score``
        lambda_: Weight of relevance against diversity
        output_cap: Maximum number of results
        min_relevance: Candidates below this relevance are never selected

    Returns:
        Selected results in selection order. Ties are broken by the lower
        candidate index, so the output is fully deterministic.
    """
    tokens = [tokenize(f"{c.title} {c.text}") for c in candidates]
    remaining = [i for i, c in enumerate(candidates) if c.score >= min_relevance]
    selected: list[int] = []

    while remaining and len(selected) < output_cap:
        best_index = None
        best_value = float("-inf")
        for i in remaining:
            max_sim = max((jaccard(tokens[i], tokens[j]) for j in selected), default=0.0)
            value = lambda_ * candidates[i].score - (1.0 - lambda_) * max_sim
            if value > best_value:
                best_index, best_value = i, value
        selected.append(best_index)
        remaining.remove(best_index)

    return [candidates[i] for i in selected]


class RelevanceRanker:
    """
    Scores candidates with the relevance oracle, then diversifies with MMR.

    Oracle failures are not errors: the input order is kept (truncated to the
    output cap) and the batch continues.
    """

    def __init__(
        self,
        oracle: RelevanceOracle | None,
        candidate_cap: int = 12,
        output_cap: int = 8,
        lambda_: float = 0.7,
        min_relevance: float = 0.2,
        timeout: float = 3.0,
    ):
        """
        Initialize the ranker.

        Args:
            oracle: Relevance oracle; None disables oracle scoring
            candidate_cap: Candidates sent to the oracle
            output_cap: Maximum size of the ranked set
            lambda_: MMR relevance weight
            min_relevance: MMR relevance floor
            timeout: Seconds the oracle may take
        """
        self.oracle = oracle
        self.candidate_cap = candidate_cap
        self.output_cap = output_cap
        self.lambda_ = lambda_
        self.min_relevance = min_relevance
        self.timeout = timeout

    async def _oracle_scores(self, query: str, candidates: list[SearchResult]) -> dict[int, float] | None:
        if self.oracle is None:
            return None
        try:
            return await asyncio.wait_for(self.oracle.score(query, candidates), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Relevance scoring timed out after {self.timeout}s, keeping input order")
        except OracleError as e:
            logger.warning(f"Relevance scoring failed, keeping input order: {e}")
        except Exception as e:
            logger.error(f"Relevance oracle raised {type(e).__name__}, keeping input order: {e}")
        return None

    async def rank(self, query: str, results: list[SearchResult]) -> RankedSet:
        """
        Rank results for a query.

        Args:
            query: The query the results answer
            results: Candidates in heuristic order

        Returns:
            RankedSet of at most ``output_cap`` results with scores in [0, 1]
        """
        if not results:
            return RankedSet()

        head = results[:self.candidate_cap]
        tail = results[self.candidate_cap:]
        scores = await self._oracle_scores(query, head)

        if scores is None:
            return RankedSet(results=tuple(results[:self.output_cap]), scored_by_oracle=False)

        scored = []
        for position, result in enumerate(head):
            raw = scores.get(position)
            if raw is None or not 1.0 <= raw <= 5.0:
                scored.append(result)  # keeps its heuristic score
            else:
                scored.append(result.with_score(normalize_oracle_score(raw)))

        selected = mmr_select(
            scored + tail,
            lambda_=self.lambda_,
            output_cap=self.output_cap,
            min_relevance=self.min_relevance,
        )
        logger.info(f"Ranked {len(results)} candidates into {len(selected)} results")
        return RankedSet(results=tuple(selected), scored_by_oracle=True)
