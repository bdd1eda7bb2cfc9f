"""
Citation Extraction Tests

Tests for direct (rank-numbered) citations and for parsing annotated
answers written against a numbered document context.
"""

from searchloop.engine.citations import (
    CitationExtractor,
    build_document_context,
    cited_indices,
    format_document_context,
)
from searchloop.engine.models import DocumentContext, DocumentMetadata, RankedSet
from searchloop.sources.models import SearchResult


def context():
    return [
        DocumentContext(
            title="Grundsatzprogramm",
            content="Klimaschutz ist zentral für unsere Politik. Wir fördern Wärmepumpen.",
            metadata=DocumentMetadata(document_id="gp", chunk_index=0, similarity_score=0.9),
        ),
        DocumentContext(
            title="Wahlprogramm",
            content="Bezahlbare Mieten für alle. Wir stärken den sozialen Wohnungsbau.",
            url="https://example.org/wahlprogramm",
            metadata=DocumentMetadata(document_id="wp"),
        ),
    ]


def test_quote_with_document_title():
    """[n] "quote" (Dokument: title) resolves to entry n."""
    print("\n" + "=" * 60)
    print("Testing annotated citation extraction")
    print("=" * 60)

    text = 'Die Partei betont: [1] "Klimaschutz ist zentral" (Dokument: Grundsatzprogramm)'

    citations = CitationExtractor().extract_from_annotated_text(text, context())

    assert len(citations) == 1
    citation = citations[0]
    assert citation.index == "1"
    assert citation.cited_text == "Klimaschutz ist zentral"
    assert citation.document_title == "Grundsatzprogramm"
    assert citation.document_id == "gp"
    assert citation.chunk_index == 0
    print(f"[PASS] [{citation.index}] {citation.document_title}: {citation.cited_text}")


def test_german_quotes():
    text = "Im Programm steht [2] „Bezahlbare Mieten für alle“."

    citations = CitationExtractor().extract_from_annotated_text(text, context())

    assert [(c.index, c.cited_text) for c in citations] == [("2", "Bezahlbare Mieten für alle")]
    assert citations[0].source_url == "https://example.org/wahlprogramm"


def test_out_of_range_quote_matched_by_text():
    text = '[5] "Wir fördern Wärmepumpen in jedem Haushalt"'

    citations = CitationExtractor().extract_from_annotated_text(text, context())

    assert len(citations) == 1
    assert citations[0].index == "5"
    assert citations[0].document_id == "gp"


def test_bare_references():
    """Bare [n] without a quote still produces a citation."""
    text = "Mieten sollen bezahlbar bleiben [2], siehe auch [7]."

    citations = CitationExtractor().extract_from_annotated_text(text, context())

    by_index = {c.index: c for c in citations}
    assert by_index["2"].cited_text == "Reference from Wahlprogramm"
    assert by_index["7"].cited_text == "Reference to additional content from Wahlprogramm"


def test_citations_deduplicated_by_index():
    text = '[1] "Klimaschutz ist zentral" und nochmal [1] "Wir fördern Wärmepumpen" [1]'

    citations = CitationExtractor().extract_from_annotated_text(text, context())

    assert len(citations) == 1
    assert citations[0].cited_text == "Klimaschutz ist zentral"


def test_no_citations_without_context():
    assert CitationExtractor().extract_from_annotated_text("Siehe [3].", []) == []


def test_process_answer_with_citation_section():
    response = (
        "Hier sind die relevanten Zitate aus den Dokumenten:\n\n"
        '[1] "Klimaschutz ist zentral" (Dokument: Grundsatzprogramm)\n\n'
        "Antwort: Klimaschutz steht im Mittelpunkt [1]."
    )

    cited = CitationExtractor().process_answer(response, context())

    assert cited.answer == "Klimaschutz steht im Mittelpunkt [1]."
    assert [c.index for c in cited.citations] == ["1"]


def test_process_answer_strips_quote_lines():
    response = 'Klimaschutz ist wichtig [1].\n[2] "Bezahlbare Mieten für alle"'

    cited = CitationExtractor().process_answer(response, context())

    assert cited.answer == "Klimaschutz ist wichtig [1]."
    assert sorted(c.index for c in cited.citations) == ["1", "2"]


def test_direct_citations_follow_rank():
    results = [
        SearchResult(id="web:a", title="Erster Treffer", body="Text  eins", url="https://a.example", source_tag="web", score=0.9),
        SearchResult(id="docs:gp:0", title="Zweiter Treffer", body="Text zwei", source_tag="docs", document_id="gp", chunk_index=0, score=0.6),
    ]

    citations = CitationExtractor().extract(RankedSet(results=tuple(results)))

    assert [c.index for c in citations] == ["1", "2"]
    assert citations[0].cited_text == "Text eins"
    assert citations[0].document_id == "web:a"
    assert citations[0].source_url == "https://a.example"
    assert citations[1].document_id == "gp"
    assert citations[1].source_tag == "docs"


def test_document_context_round_trip():
    results = [SearchResult(id="web:a", title="", body="Inhalt", url="https://a.example", source_tag="web")]

    ctx = build_document_context(results)
    rendered = format_document_context(ctx)

    assert ctx[0].title == "Untitled"
    assert rendered.startswith("[1] Untitled (https://a.example)\nInhalt")


def test_cited_indices_in_order():
    assert cited_indices("a [2] b [1] c [2]") == ["2", "1"]
