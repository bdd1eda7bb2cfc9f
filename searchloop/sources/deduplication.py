"""Cross-source result deduplication."""

import logging
import re
from difflib import SequenceMatcher
from urllib.parse import urlsplit, urlunsplit

from .models import SearchResult

logger = logging.getLogger(__name__)

# Query parameters that only track the visitor and never change the page.
TRACKING_PARAMS = ("utm_", "fbclid", "gclid", "mc_cid", "mc_eid")

_WS_RE = re.compile(r"\s+")


def canonical_url(url: str) -> str:
    """
    Normalize a URL for use as a deduplication key.

    Lowercases scheme and host, drops ``www.``, fragments, tracking
    parameters and a trailing slash.
    """
    parts = urlsplit(url.strip())
    host = parts.netloc.lower().removeprefix("www.")
    query = "&".join(
        p for p in parts.query.split("&")
        if p and not p.lower().startswith(TRACKING_PARAMS)
    )
    path = parts.path.rstrip("/")
    return urlunsplit(((parts.scheme or "http").lower(), host, path, query, ""))


def normalize_text(text: str) -> str:
    """Normalize text for comparison."""
    return _WS_RE.sub(" ", text.lower()).strip()


def content_key(result: SearchResult, prefix_chars: int = 200) -> str:
    """Title plus body prefix, used when a result has no URL."""
    return normalize_text(f"{result.title} {result.body[:prefix_chars]}")


def content_similarity(a: SearchResult, b: SearchResult) -> float:
    """Compute content similarity ratio (0.0 to 1.0)."""
    return SequenceMatcher(None, content_key(a), content_key(b)).ratio()


def is_duplicate(
    result: SearchResult,
    existing: SearchResult,
    similarity_threshold: float = 0.92,
) -> bool:
    """
    Determine if two results are duplicates.

    Matching criteria:
    1. Both have URLs: canonical URLs are equal
    2. Otherwise: same document chunk, or content similarity >= threshold
    """
    if result.url and existing.url:
        return canonical_url(result.url) == canonical_url(existing.url)

    if (
        result.document_id
        and result.document_id == existing.document_id
        and result.chunk_index == existing.chunk_index
    ):
        return True

    return content_similarity(result, existing) >= similarity_threshold


def deduplicate_results(
    results: list[SearchResult],
    similarity_threshold: float = 0.92,
) -> list[SearchResult]:
    """
    Deduplicate results from multiple sources. The first occurrence wins.

    Args:
        results: Results in priority order (potentially with duplicates)
        similarity_threshold: Content similarity at which URL-less results
            are treated as the same item

    Returns:
        Deduplicated list, order preserved
    """
    unique: list[SearchResult] = []
    seen_urls: set[str] = set()

    for result in results:
        if result.url:
            key = canonical_url(result.url)
            if key in seen_urls:
                logger.debug(f"Dropped duplicate URL: {result.url}")
                continue
            seen_urls.add(key)
            unique.append(result)
            continue

        if any(is_duplicate(result, existing, similarity_threshold) for existing in unique if not existing.url):
            logger.debug(f"Dropped duplicate content: {result.title[:50] or 'untitled'}")
            continue
        unique.append(result)

    if len(unique) != len(results):
        logger.info(f"Deduplicated {len(results)} results to {len(unique)}")
    return unique
