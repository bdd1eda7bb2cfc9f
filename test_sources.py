"""
Source Adapter Tests

Tests for the adapter boundary, the concrete adapters (against mocked
transports, no network) and cross-source deduplication.
"""

import asyncio
import json
from datetime import datetime
from types import SimpleNamespace

import httpx

from searchloop.sources.base import BaseSourceAdapter
from searchloop.sources.models import AdapterErrorKind, SearchResult, SourceQuery


SEARXNG_PAYLOAD = {
    "query": "Mietpreisbremse",
    "number_of_results": 3,
    "results": [
        {
            "url": "https://www.bundestag.de/mietpreisbremse",
            "title": "Mietpreisbremse verlängert",
            "content": "Der Bundestag hat die Verlängerung beschlossen.",
            "engine": "duckduckgo",
            "category": "general",
        },
        {
            "url": "https://example.org/news/mieten",
            "title": "Mieten steigen weiter",
            "content": "Neue Zahlen zu Mieten in Großstädten.",
            "engine": "bing",
            "category": "news",
            "publishedDate": "2025-03-01T10:00:00",
        },
        {
            "url": "https://example.org/faq",
            "title": None,
            "content": None,
            "engine": "bing",
        },
    ],
}


def searxng_transport(payload=None, status_code=200, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if payload is None:
            return httpx.Response(status_code, text="not json")
        return httpx.Response(status_code, json=payload)

    return httpx.MockTransport(handler)


class SlowAdapter(BaseSourceAdapter):
    source_tag = "slow"

    async def _search(self, query, limit):
        await asyncio.sleep(1.0)
        return []


class ExplodingAdapter(BaseSourceAdapter):
    source_tag = "boom"

    async def _search(self, query, limit):
        raise ZeroDivisionError("backend bug")


class ListAdapter(BaseSourceAdapter):
    source_tag = "list"

    def __init__(self, count):
        self.count = count

    async def _search(self, query, limit):
        return [
            SearchResult(id=f"r{i}", title=f"Result {i}", source_tag=self.source_tag, score=0.5)
            for i in range(self.count)
        ]


async def test_searxng_maps_results():
    """SearxNG hits become tagged results with position-decayed scores."""
    from searchloop.sources.models import ContentKind
    from searchloop.sources.web import SearxngAdapter

    seen = []
    async with SearxngAdapter(base_url="http://searx.test", transport=searxng_transport(SEARXNG_PAYLOAD, seen=seen)) as web:
        outcome = await web.search(SourceQuery(text="Mietpreisbremse", time_range_hint="2025"), limit=10)

    assert outcome.ok
    assert [r.url for r in outcome.results] == [
        "https://www.bundestag.de/mietpreisbremse",
        "https://example.org/news/mieten",
        "https://example.org/faq",
    ]
    assert all(r.source_tag == "web" for r in outcome.results)
    assert outcome.results[0].score == 1.0
    assert outcome.results[1].score == 0.5
    assert outcome.results[1].content_kind == ContentKind.NEWS
    # Missing title falls back to the URL
    assert outcome.results[2].title == "https://example.org/faq"

    params = seen[0].url.params
    assert params["q"] == "Mietpreisbremse"
    assert params["format"] == "json"
    assert params["time_range"] == "year"
    print("[PASS] SearxNG results mapped")


async def test_searxng_respects_limit():
    from searchloop.sources.web import SearxngAdapter

    async with SearxngAdapter(base_url="http://searx.test", transport=searxng_transport(SEARXNG_PAYLOAD)) as web:
        outcome = await web.search(SourceQuery(text="Mieten"), limit=2)

    assert outcome.ok
    assert len(outcome.results) == 2


async def test_searxng_http_error_becomes_backend_error():
    from searchloop.sources.web import SearxngAdapter

    async with SearxngAdapter(base_url="http://searx.test", transport=searxng_transport({}, status_code=404)) as web:
        outcome = await web.search(SourceQuery(text="Mieten"))

    assert not outcome.ok
    assert outcome.results == ()
    assert outcome.error.kind == AdapterErrorKind.BACKEND_ERROR
    assert outcome.error.source_tag == "web"


async def test_searxng_malformed_response():
    """Invalid JSON and schema mismatches are reported as malformed."""
    from searchloop.sources.web import SearxngAdapter

    async with SearxngAdapter(base_url="http://searx.test", transport=searxng_transport(None)) as web:
        outcome = await web.search(SourceQuery(text="Mieten"))
    assert outcome.error.kind == AdapterErrorKind.MALFORMED_RESPONSE

    bad_payload = {"results": [{"title": "no url here"}]}
    async with SearxngAdapter(base_url="http://searx.test", transport=searxng_transport(bad_payload)) as web:
        outcome = await web.search(SourceQuery(text="Mieten"))
    assert outcome.error.kind == AdapterErrorKind.MALFORMED_RESPONSE


async def test_adapter_outside_context_is_not_ready():
    from searchloop.sources.web import SearxngAdapter

    web = SearxngAdapter(base_url="http://searx.test", transport=searxng_transport(SEARXNG_PAYLOAD))
    outcome = await web.search(SourceQuery(text="Mieten"))

    assert outcome.error.kind == AdapterErrorKind.NOT_READY


async def test_adapter_timeout():
    outcome = await SlowAdapter().search(SourceQuery(text="langsam"), timeout=0.05)

    assert not outcome.ok
    assert outcome.error.kind == AdapterErrorKind.TIMEOUT
    assert "0.05" in outcome.error.message


async def test_adapter_never_raises():
    outcome = await ExplodingAdapter().search(SourceQuery(text="kaputt"))

    assert not outcome.ok
    assert outcome.error.kind == AdapterErrorKind.BACKEND_ERROR
    assert "ZeroDivisionError" in outcome.error.message


async def test_adapter_truncates_to_limit():
    outcome = await ListAdapter(count=7).search(SourceQuery(text="viele"), limit=3)

    assert outcome.ok
    assert len(outcome.results) == 3


async def test_semantic_scholar_adapter():
    from searchloop.sources.semantic_scholar import SemanticScholarAdapter

    payload = {
        "total": 2,
        "offset": 0,
        "data": [
            {
                "paperId": "abc123",
                "title": "Heat pumps in existing buildings",
                "abstract": "We measure seasonal performance.",
                "year": 2023,
                "url": "https://www.semanticscholar.org/paper/abc123",
                "authors": [{"authorId": "1", "name": "A. Müller"}],
            },
            {"paperId": "def456", "title": None, "abstract": None, "authors": []},
        ],
    }
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=payload)

    adapter = SemanticScholarAdapter(api_key="key", base_url="http://s2.test", transport=httpx.MockTransport(handler))
    async with adapter:
        outcome = await adapter.search(SourceQuery(text="heat pumps", time_range_hint="2023"))

    assert outcome.ok
    first, second = outcome.results
    assert first.id == "semantic_scholar:abc123"
    assert first.body.startswith("A. Müller (2023).")
    assert second.title == "Untitled"
    assert second.url == "https://www.semanticscholar.org/paper/def456"
    assert seen[0].headers["x-api-key"] == "key"
    assert seen[0].url.params["year"] == "2023-"


async def test_arxiv_adapter_with_fake_client():
    from searchloop.sources.arxiv import ArxivAdapter

    paper = SimpleNamespace(
        title="Attention\n  Is All You Need",
        summary="The dominant   sequence models...",
        authors=["Ashish Vaswani", "Noam Shazeer"],
        published=datetime(2017, 6, 12),
        entry_id="http://arxiv.org/abs/1706.03762v7",
        get_short_id=lambda: "1706.03762v7",
    )
    searches = []

    class FakeClient:
        def results(self, search):
            searches.append(search)
            return iter([paper])

    adapter = ArxivAdapter(rate_limit_seconds=0, categories=["cs.CL"], client=FakeClient())
    outcome = await adapter.search(SourceQuery(text="transformer"))

    assert outcome.ok
    result = outcome.results[0]
    assert result.title == "Attention Is All You Need"
    assert result.body == "Ashish Vaswani, Noam Shazeer (2017). The dominant sequence models..."
    assert result.url == "http://arxiv.org/abs/1706.03762v7"
    assert searches[0].query == "(transformer) AND (cat:cs.CL)"


def test_canonical_url():
    from searchloop.sources.deduplication import canonical_url

    assert canonical_url("https://www.Example.org/a/?utm_source=x#top") == "https://example.org/a"
    assert canonical_url("https://example.org/a?id=1&utm_medium=mail") == "https://example.org/a?id=1"
    assert canonical_url("https://example.org/a/") == canonical_url("https://example.org/a")


def test_deduplicate_first_seen_wins():
    from searchloop.sources.deduplication import deduplicate_results

    results = [
        SearchResult(id="1", title="A", url="https://example.org/a", source_tag="web", score=0.2),
        SearchResult(id="2", title="B", url="https://example.org/b", source_tag="web"),
        SearchResult(id="3", title="A again", url="https://www.example.org/a/", source_tag="papers", score=0.9),
        SearchResult(id="4", title="Kein Link", body="Gleicher Inhalt ohne URL", source_tag="documents"),
        SearchResult(id="5", title="Kein Link", body="Gleicher Inhalt ohne URL", source_tag="documents"),
        SearchResult(id="6", title="Ganz anders", body="Etwas völlig anderes", source_tag="documents"),
    ]

    unique = deduplicate_results(results)

    assert [r.id for r in unique] == ["1", "2", "4", "6"]
    urls = [r.url for r in unique if r.url]
    assert len(urls) == len(set(urls))


async def test_keyword_document_index_and_loading(tmp_path):
    from searchloop.sources.documents import KeywordDocumentIndex, chunk_text, load_documents

    docs_file = tmp_path / "docs.json"
    docs_file.write_text(json.dumps({
        "documents": [
            {"id": "gp", "title": "Grundsatzprogramm", "content": "Klimaschutz ist zentral.\n\nWir fördern Wärmepumpen."},
            {"id": "wp", "title": "Wahlprogramm", "content": "Bezahlbare Mieten für alle."},
        ]
    }), encoding="utf-8")

    documents = load_documents(docs_file)
    assert [d.id for d in documents] == ["gp", "wp"]

    index = KeywordDocumentIndex(documents)
    hits = await index.query("Klimaschutz und Wärmepumpen", limit=5)
    assert hits[0]["document_id"] == "gp"
    assert hits[0]["chunk_index"] == 0
    assert 0 < hits[0]["score"] <= 1.0

    chunks = chunk_text("a" * 50 + "\n\n" + "b" * 50, chunk_size=60, overlap=0)
    assert chunks == ["a" * 50, "b" * 50]


def test_load_documents_missing_file(tmp_path):
    import pytest

    from searchloop.errors import ConfigError
    from searchloop.sources.documents import load_documents

    with pytest.raises(ConfigError):
        load_documents(tmp_path / "missing.yaml")


def test_chunk_text_rejects_overlap_not_below_chunk_size():
    import pytest

    from searchloop.sources.documents import chunk_text

    text = "x" * 200
    for overlap in (50, 80, -1):
        with pytest.raises(ValueError):
            chunk_text(text, chunk_size=50, overlap=overlap)

    chunks = chunk_text(text, chunk_size=50, overlap=49)
    assert chunks[0] == "x" * 50
    assert all(len(chunk) <= 50 for chunk in chunks)


async def test_document_index_adapter():
    from searchloop.sources.documents import DocumentIndexAdapter, KeywordDocumentIndex, StoredDocument

    index = KeywordDocumentIndex([
        StoredDocument(id="gp", title="Grundsatzprogramm", content="Klimaschutz ist zentral für unsere Politik."),
    ])
    adapter = DocumentIndexAdapter(index)
    outcome = await adapter.search(SourceQuery(text="Klimaschutz"))

    assert outcome.ok
    result = outcome.results[0]
    assert result.source_tag == "documents"
    assert result.document_id == "gp"
    assert result.chunk_index == 0
    assert result.url is None
