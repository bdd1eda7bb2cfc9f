"""
Dispatcher Tests

Tests for the parallel fan-out: merging, deduplication, failure isolation
and the result ceiling.
"""

import pytest

from searchloop.engine.dispatcher import Dispatcher, heuristic_score
from searchloop.sources.models import AdapterErrorKind, SourceQuery


class ContractBreakingAdapter:
    """Adapter that raises from search() instead of returning an error."""

    source_tag = "broken"

    async def search(self, query, limit=10, timeout=4.0):
        raise RuntimeError("adapter bug")


async def test_two_adapters_with_overlapping_url(fake_adapter, result_factory):
    """Two adapters x three results sharing one URL give five results."""
    print("\n" + "=" * 60)
    print("Testing merge and deduplication")
    print("=" * 60)

    web = fake_adapter("web", [
        result_factory("web", 0, url="https://example.org/a"),
        result_factory("web", 1, url="https://example.org/b"),
        result_factory("web", 2, url="https://example.org/c"),
    ])
    docs = fake_adapter("docs", [
        result_factory("docs", 0, url="https://www.example.org/c/"),
        result_factory("docs", 1, url="https://example.org/d"),
        result_factory("docs", 2, url="https://example.org/e"),
    ])

    batch = await Dispatcher(per_adapter_limit=5).dispatch([SourceQuery(text="Bahnausbau")], [web, docs])

    assert len(batch.results) == 5
    # Higher-priority adapter keeps the shared URL
    assert [r.id for r in batch.results] == ["web:0", "web:1", "web:2", "docs:1", "docs:2"]
    assert batch.failed_runs == []
    assert all(0.0 <= r.score <= 1.0 for r in batch.results)
    print(f"[PASS] {len(batch.results)} unique results")


async def test_failing_adapter_is_isolated(fake_adapter, result_factory):
    ok = fake_adapter("web", [result_factory("web", i, url=f"https://example.org/{i}") for i in range(3)])
    failing = fake_adapter("papers", error=ConnectionError("backend down"))

    batch = await Dispatcher().dispatch([SourceQuery(text="Wärmepumpen")], [failing, ok])

    assert [r.source_tag for r in batch.results] == ["web", "web", "web"]
    assert len(batch.failed_runs) == 1
    failed = batch.failed_runs[0]
    assert failed.source_tag == "papers"
    assert failed.error.kind == AdapterErrorKind.BACKEND_ERROR


async def test_slow_adapter_times_out(fake_adapter, result_factory):
    fast = fake_adapter("web", [result_factory("web", 0, url="https://example.org/0")])
    slow = fake_adapter("slow", [result_factory("slow", 0, url="https://example.org/slow")], delay=1.0)

    batch = await Dispatcher(adapter_timeout=0.05).dispatch([SourceQuery(text="Mieten")], [slow, fast])

    assert [r.id for r in batch.results] == ["web:0"]
    assert batch.failed_runs[0].error.kind == AdapterErrorKind.TIMEOUT


async def test_contract_breaking_adapter_is_contained(fake_adapter, result_factory):
    """An adapter that raises is recorded as a failure, not propagated."""
    ok = fake_adapter("web", [result_factory("web", 0, url="https://example.org/0")])

    batch = await Dispatcher().dispatch([SourceQuery(text="Mieten")], [ContractBreakingAdapter(), ok])

    assert len(batch.results) == 1
    assert batch.failed_runs[0].source_tag == "broken"
    assert "adapter bug" in batch.failed_runs[0].error.message


async def test_merge_order_ignores_completion_order(fake_adapter, result_factory):
    """Results of a slower, higher-priority adapter still come first."""
    first = fake_adapter("first", [result_factory("first", 0, url="https://a.example/0")], delay=0.05)
    second = fake_adapter("second", [result_factory("second", 0, url="https://b.example/0")])

    batch = await Dispatcher().dispatch([SourceQuery(text="Rente")], [first, second])

    assert [r.source_tag for r in batch.results] == ["first", "second"]


async def test_result_ceiling(fake_adapter, result_factory):
    """Never more than adapters x per-adapter limit results, even with variants."""
    web = fake_adapter("web", {
        "Rente": [result_factory("web", i, url=f"https://example.org/r{i}") for i in range(3)],
        "Rentenniveau": [result_factory("web", 10 + i, url=f"https://example.org/n{i}") for i in range(3)],
    })
    original = SourceQuery(text="Rente")
    queries = [original, original.variant("Rentenniveau")]

    batch = await Dispatcher(per_adapter_limit=3).dispatch(queries, [web])

    assert len(batch.results) == 3
    assert sorted(web.queries) == ["Rente", "Rentenniveau"]
    assert len(batch.runs) == 2


async def test_per_adapter_limit_override(fake_adapter, result_factory):
    web = fake_adapter("web", [result_factory("web", i, url=f"https://example.org/{i}") for i in range(5)])

    batch = await Dispatcher(per_adapter_limit=5).dispatch([SourceQuery(text="Mieten")], [web], per_adapter_limit=2)

    assert len(batch.results) == 2


async def test_no_adapters():
    batch = await Dispatcher().dispatch([SourceQuery(text="Mieten")], [], iteration=2)

    assert batch.results == ()
    assert batch.iteration == 2


def test_heuristic_score_prefers_priority_and_position():
    assert heuristic_score(0, 0.5, 0) > heuristic_score(1, 0.5, 0)
    assert heuristic_score(0, 0.5, 0) > heuristic_score(0, 0.5, 1)
    assert heuristic_score(0, 1.0, 0) == pytest.approx(1.0)
