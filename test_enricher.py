"""
Content Enrichment Tests
"""

import asyncio

from searchloop.engine.enricher import ContentEnricher, extract_text
from searchloop.sources.models import ContentKind, SearchResult


class FakeFetcher:
    def __init__(self, pages, delay=0.0):
        self.pages = pages
        self.delay = delay
        self.fetched = []

    async def fetch(self, url):
        self.fetched.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        page = self.pages[url]
        if isinstance(page, Exception):
            raise page
        return page


def web_result(n, kind=ContentKind.WEB_PAGE, url=True):
    return SearchResult(
        id=f"web:{n}",
        title=f"Seite {n}",
        body=f"Snippet {n}",
        url=f"https://example.org/{n}" if url else None,
        source_tag="web",
        content_kind=kind,
    )


def test_extract_text_drops_boilerplate():
    html = """
    <html><head><style>body {}</style><script>var x = 1;</script></head>
    <body><nav>Menü</nav><h1>Mietpreisbremse</h1><p>Der Bundestag hat   entschieden.</p>
    <footer>Impressum</footer></body></html>
    """

    text = extract_text(html)

    assert text == "Mietpreisbremse\nDer Bundestag hat   entschieden."


async def test_enriches_top_web_results():
    results = [
        web_result(0),
        web_result(1, kind=ContentKind.DOCUMENT_CHUNK),
        web_result(2, url=False),
        web_result(3),
        web_result(4),
    ]
    fetcher = FakeFetcher({
        "https://example.org/0": "Volltext null",
        "https://example.org/3": "Volltext drei " * 10,
    })

    enriched = await ContentEnricher(fetcher, top_n=2, max_chars=20).enrich(results)

    assert fetcher.fetched == ["https://example.org/0", "https://example.org/3"]
    assert [r.id for r in enriched] == [r.id for r in results]
    assert enriched[0].crawled_body == "Volltext null"
    assert enriched[0].text == "Volltext null"
    assert len(enriched[3].crawled_body) == 20
    assert enriched[4].crawled_body is None


async def test_fetch_failures_leave_results_unchanged():
    results = [web_result(0), web_result(1)]
    fetcher = FakeFetcher({
        "https://example.org/0": ConnectionError("refused"),
        "https://example.org/1": None,
    })

    enriched = await ContentEnricher(fetcher).enrich(results)

    assert enriched == results


async def test_fetch_timeout():
    results = [web_result(0)]
    fetcher = FakeFetcher({"https://example.org/0": "spät"}, delay=1.0)

    enriched = await ContentEnricher(fetcher, timeout=0.05).enrich(results)

    assert enriched[0].crawled_body is None


async def test_no_fetcher():
    results = [web_result(0)]

    assert await ContentEnricher(None).enrich(results) == results
