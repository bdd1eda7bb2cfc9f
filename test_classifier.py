"""
Query Classification Tests
"""

import pytest

from searchloop.engine.classifier import classify, detect_complexity, detect_time_range, extract_search_topic
from searchloop.engine.models import Complexity


def test_strips_writing_task_prefix():
    query = "Schreib mir bitte eine Pressemitteilung zum Thema Mietpreisbremse"

    assert extract_search_topic(query) == "Mietpreisbremse"


def test_keeps_plain_queries():
    assert extract_search_topic("  Mietpreisbremse Verlängerung ") == "Mietpreisbremse Verlängerung"


@pytest.mark.parametrize("query, expected", [
    ("Vergleich der Rentenkonzepte von SPD und CDU", Complexity.COMPLEX),
    ("Was ist das Bürgergeld?", Complexity.SIMPLE),
    ("Hallo, kannst du mir etwas über die Bahnreform erzählen", Complexity.SIMPLE),
    ("Welche Maßnahmen plant die Regierung zur Senkung der Energiepreise", Complexity.MODERATE),
])
def test_detect_complexity(query, expected):
    assert detect_complexity(query) == expected


@pytest.mark.parametrize("query, expected", [
    ("Was ist heute im Bundestag passiert", "day"),
    ("Debatte letzte Woche im Landtag", "week"),
    ("Aktuelle Nachrichten zur Bahn", "year"),
    ("Bundeshaushalt 2024", "2024"),
    ("Mietpreisbremse", None),
])
def test_detect_time_range(query, expected):
    assert detect_time_range(query) == expected


def test_classify():
    classification = classify("Erstelle einen Artikel über aktuelle Wärmepumpen Förderung")

    assert classification.search_query == "aktuelle Wärmepumpen Förderung"
    assert classification.time_range_hint == "year"
