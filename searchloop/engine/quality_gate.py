"""Sufficiency check deciding whether another search iteration is needed."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from ..errors import BUDGET_EXCEEDED, OracleError
from .models import QualityVerdict, RankedSet

if TYPE_CHECKING:
    from .protocols import SufficiencyOracle

logger = logging.getLogger(__name__)


def summarize_results(ranked: RankedSet, top_n: int = 5, body_chars: int = 200) -> str:
    """Compact numbered summary of the top results for the oracle prompt."""
    lines = []
    for i, result in enumerate(ranked.results[:top_n], start=1):
        body = " ".join(result.text.split())[:body_chars]
        lines.append(f"{i}. {result.title} [{result.source_tag}]: {body}")
    return "\n".join(lines)


class QualityGate:
    """
    Judges whether the ranked results suffice, failing open.

    The gate is stateless; everything it needs is passed to ``assess``.
    """

    def __init__(
        self,
        oracle: SufficiencyOracle | None,
        summary_top_n: int = 5,
        body_chars: int = 200,
        timeout: float = 3.0,
    ):
        self.oracle = oracle
        self.summary_top_n = summary_top_n
        self.body_chars = body_chars
        self.timeout = timeout

    async def assess(
        self,
        query: str,
        ranked: RankedSet,
        iteration: int,
        max_iterations: int,
    ) -> QualityVerdict:
        """
        Assess a ranked set.

        Args:
            query: The query used for this iteration
            ranked: Ranked results of this iteration
            iteration: Current iteration (1-based)
            max_iterations: Iteration budget

        Returns:
            QualityVerdict with score clamped to 1..5
        """
        if iteration >= max_iterations:
            logger.info(f"Quality check skipped: iteration budget spent ({iteration}/{max_iterations})")
            return QualityVerdict.skip(BUDGET_EXCEEDED)
        if len(ranked) < 2:
            logger.info(f"Quality check skipped: only {len(ranked)} results")
            return QualityVerdict.skip("too_few_results")
        if self.oracle is None:
            return QualityVerdict.skip("no_oracle")

        summary = summarize_results(ranked, self.summary_top_n, self.body_chars)
        try:
            verdict = await asyncio.wait_for(
                self.oracle.assess_sufficiency(query, summary), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"Quality check timed out after {self.timeout}s, treating results as sufficient")
            return QualityVerdict.fail_open("oracle_timeout")
        except OracleError as e:
            logger.warning(f"Quality check failed, treating results as sufficient: {e}")
            return QualityVerdict.fail_open("oracle_error")
        except Exception as e:
            logger.error(f"Sufficiency oracle raised {type(e).__name__}, treating results as sufficient: {e}")
            return QualityVerdict.fail_open("oracle_error")

        refined = verdict.refined_query
        if refined and refined.strip().lower() == query.strip().lower():
            logger.debug("Dropping refined query identical to the current query")
            refined = None

        result = QualityVerdict(
            score=min(5, max(1, int(verdict.score))),
            sufficient=verdict.sufficient,
            refined_query=refined,
            reason=verdict.reason,
        )
        logger.info(
            f"Quality check: score={result.score}, sufficient={result.sufficient}, "
            f"refined_query={result.refined_query!r}"
        )
        return result
