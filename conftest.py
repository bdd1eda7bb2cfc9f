"""Shared fakes for the engine tests: scripted adapters and oracles."""

import asyncio

import pytest

from searchloop.engine.models import QualityVerdict
from searchloop.errors import OracleError
from searchloop.sources.base import BaseSourceAdapter
from searchloop.sources.models import SearchResult


def make_result(source_tag, n, url=None, body=None, score=0.5, title=None):
    """Build a result with predictable id, title and body."""
    return SearchResult(
        id=f"{source_tag}:{n}",
        title=title or f"{source_tag} result {n}",
        body=body if body is not None else f"Body text {n} from {source_tag}",
        url=url,
        source_tag=source_tag,
        score=score,
    )


class FakeAdapter(BaseSourceAdapter):
    """
    Adapter returning scripted results.

    ``results`` may be a list (returned for every query) or a dict mapping
    query text to a list. ``error`` is raised from ``_search`` and turned
    into an AdapterError by the base class.
    """

    def __init__(self, source_tag, results=None, delay=0.0, error=None):
        self.source_tag = source_tag
        self.results = results if results is not None else []
        self.delay = delay
        self.error = error
        self.queries = []
        self.entered = False
        self.exited = False

    async def __aenter__(self):
        self.entered = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.exited = True

    async def _search(self, query, limit):
        self.queries.append(query.text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if isinstance(self.results, dict):
            return list(self.results.get(query.text, []))
        return list(self.results)


class FakeOracle:
    """
    Oracle implementing all three oracle protocols from scripted answers.

    Args:
        scores: dict of position -> 1..5 score, or a callable(query, candidates)
        verdicts: QualityVerdicts handed out in order (the last one repeats)
        expansions: list of alternative queries
        fail: names of operations that fail
        error: exception raised by failing operations (OracleError when None)
        delay: seconds every call sleeps first
    """

    def __init__(self, scores=None, verdicts=None, expansions=None, fail=(), delay=0.0, error=None):
        self.scores = scores
        self.verdicts = list(verdicts or [QualityVerdict(score=4, sufficient=True)])
        self.expansions = expansions or []
        self.fail = set(fail)
        self.error = error
        self.delay = delay
        self.calls = []

    async def _enter(self, operation):
        self.calls.append(operation)
        if self.delay:
            await asyncio.sleep(self.delay)
        if operation in self.fail:
            if self.error is not None:
                raise self.error
            raise OracleError(operation, "scripted failure")

    async def score(self, query, candidates):
        await self._enter("score")
        if callable(self.scores):
            return self.scores(query, candidates)
        if self.scores is None:
            return {i: 3.0 for i in range(len(candidates))}
        return dict(self.scores)

    async def assess_sufficiency(self, query, summary):
        await self._enter("assess_sufficiency")
        if len(self.verdicts) > 1:
            return self.verdicts.pop(0)
        return self.verdicts[0]

    async def expand_query(self, query):
        await self._enter("expand_query")
        return list(self.expansions)


@pytest.fixture
def fake_adapter():
    """Factory for scripted adapters."""
    return FakeAdapter


@pytest.fixture
def fake_oracle():
    """Factory for scripted oracles."""
    return FakeOracle


@pytest.fixture
def result_factory():
    """Factory for search results."""
    return make_result
