"""Query classification: strips task phrasing and derives search hints."""

import logging
import re

from .models import Classification, Complexity

logger = logging.getLogger(__name__)

# "Schreib mir bitte eine kurze Pressemitteilung zum Thema ..." -> "..."
TASK_PREFIX_RE = re.compile(
    r"^(schreib|erstell|formulier|verfass|generier|mach|bereite|entwirf|erstelle|schreibe|formuliere|verfasse)[etn]*\s*"
    r"(mir\s+)?(bitte\s+)?(eine?[nrms]?\s+)?"
    r"(kurze[nrms]?\s+|lange[nrms]?\s+|ausführliche[nrms]?\s+)?"
    r"(pressemitteilung|pressemeldung|pm|artikel|beitrag|blogpost|rede|ansprache|statement|argumentation|"
    r"argumente|faktencheck|analyse|bericht|report|text|entwurf|zusammenfassung|post|tweet)\s*"
    r"(über das thema|zu dem thema|zum thema|bezüglich|betreffend|über|zum|zur|zu)?\s*",
    re.IGNORECASE,
)

COMPLEX_PATTERNS = [
    re.compile(r"\b(vergleich|unterschied|pro\s+und\s+contra|gegenüber|im\s+vergleich|versus|vs\.?)\b", re.IGNORECASE),
    re.compile(r"\b(detailliert|ausführlich|umfassend|gründlich|tiefgehend|vollständig)\b", re.IGNORECASE),
    re.compile(r"\b(einerseits|andererseits|sowohl|als\s+auch)\b", re.IGNORECASE),
]
GREETING_RE = re.compile(r"^(hallo|hi|hey|guten|servus|moin|danke)", re.IGNORECASE)
LOOKUP_RE = re.compile(r"^(was ist|wer ist|wo ist|wann)\b", re.IGNORECASE)

# Checked in order; the first match decides the hint.
TIME_RANGE_PATTERNS = [
    ("day", re.compile(r"\b(heute|gestern|heutige[nrms]?)\b", re.IGNORECASE)),
    ("week", re.compile(r"\b(diese[rn]? woche|letzte[rn]? woche|vorige[rn]? woche)\b", re.IGNORECASE)),
    ("month", re.compile(r"\b(diese[nm]? monat|letzte[nm]? monat)\b", re.IGNORECASE)),
    ("year", re.compile(r"\b(aktuell\w*|neueste[nrms]?|kürzlich|news|nachrichten?|dieses jahr)\b", re.IGNORECASE)),
]
YEAR_RE = re.compile(r"\b(20\d{2})\b")


def extract_search_topic(query: str) -> str:
    """
    Strip writing-task phrasing from a query, keeping the topic.

    The stripped text is only used when it is non-trivial (more than three
    characters) and noticeably shorter than the input.
    """
    stripped = TASK_PREFIX_RE.sub("", query.strip(), count=1).strip()
    if 3 < len(stripped) < len(query.strip()) * 0.9:
        return stripped
    return query.strip()


def detect_complexity(query: str) -> Complexity:
    """Classify a query as simple, moderate or complex."""
    q = query.strip().lower()
    if any(pattern.search(q) for pattern in COMPLEX_PATTERNS):
        return Complexity.COMPLEX
    if len(q) < 30 or GREETING_RE.match(q) or LOOKUP_RE.match(q):
        return Complexity.SIMPLE
    return Complexity.MODERATE


def detect_time_range(query: str) -> str | None:
    """Derive a time range hint ("day", "week", "month", "year" or a year)."""
    for hint, pattern in TIME_RANGE_PATTERNS:
        if pattern.search(query):
            return hint
    match = YEAR_RE.search(query)
    return match.group(1) if match else None


def classify(query: str) -> Classification:
    """Classify a user query for searching."""
    classification = Classification(
        search_query=extract_search_topic(query),
        time_range_hint=detect_time_range(query),
        complexity=detect_complexity(query),
    )
    logger.info(
        f"Classified query: topic='{classification.search_query}', "
        f"time_range={classification.time_range_hint}, complexity={classification.complexity.value}"
    )
    return classification
