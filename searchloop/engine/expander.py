"""Query expansion through the expansion oracle."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from ..errors import OracleError

if TYPE_CHECKING:
    from .protocols import ExpansionOracle

logger = logging.getLogger(__name__)


def _normalize(text: str) -> str:
    return " ".join(text.lower().split())


class QueryExpander:
    """
    Produces alternative phrasings of a query.

    Never fails: oracle errors and timeouts yield an empty list, and the
    search continues with the original query only.
    """

    def __init__(
        self,
        oracle: ExpansionOracle | None,
        max_variants: int = 2,
        timeout: float = 3.0,
    ):
        self.oracle = oracle
        self.max_variants = max_variants
        self.timeout = timeout

    async def expand(self, query: str) -> list[str]:
        """
        Return 0..max_variants alternatives distinct from ``query`` and each other.

        Args:
            query: The query to expand

        Returns:
            Alternative queries, in oracle order
        """
        if self.oracle is None or self.max_variants <= 0:
            return []

        try:
            proposals = await asyncio.wait_for(self.oracle.expand_query(query), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Query expansion timed out after {self.timeout}s")
            return []
        except OracleError as e:
            logger.warning(f"Query expansion failed: {e}")
            return []
        except Exception as e:
            logger.error(f"Expansion oracle raised {type(e).__name__}: {e}")
            return []

        seen = {_normalize(query)}
        variants: list[str] = []
        for proposal in proposals:
            key = _normalize(proposal)
            if not key or key in seen:
                continue
            seen.add(key)
            variants.append(proposal.strip())
            if len(variants) >= self.max_variants:
                break

        logger.info(f"Expanded query into {len(variants)} variants")
        return variants
