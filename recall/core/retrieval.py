"""
recall Entry Retrieval

Vector search over stored entry embeddings, a lexical keyword scorer, and
the hybrid ranker that fuses both with mode-dependent weights.
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, asdict
from typing import Optional, Union

from recall.core.candidates import Scope, SearchFilters, get_candidates
from recall.core.embeddings import EmbeddingError, get_query_embedding
from recall.core.vectors import cosine_similarity, decode_vector
from recall.utils import truncate_text

logger = logging.getLogger(__name__)

WILDCARD_QUERY = "*"

# (vector weight, keyword weight) per hybrid mode
HYBRID_MODE_WEIGHTS = {
    "semantic": (1.0, 0.3),
    "keyword": (0.3, 1.0),
    "balanced": (0.7, 0.7),
}

# Keyword scoring: full-query substring hits per field, plus per-word credit
FULL_QUERY_WEIGHTS = {
    "title": 0.5,
    "content": 0.4,
    "searchable_text": 0.2,
}
WORD_MATCH_WEIGHT = 0.3
MAX_KEYWORD_SCORE = 1.0


@dataclass
class SearchResult:
    """One ranked entry. `similarity` is only comparable within one ranking run."""
    entry_id: str
    similarity: float
    snippet: str
    match_reason: str
    title: Optional[str] = None
    created_at: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def build_snippet(entry: dict, length: Optional[int] = None) -> str:
    """Snippet from searchable text (falling back to raw content)."""
    if length is None:
        import recall
        length = recall.get_config().snippet_length
    text = entry.get("searchable_text") or entry.get("content") or ""
    return truncate_text(text, length)


def default_threshold(scope: Union[Scope, str]) -> float:
    """Search-page scopes use the strict cutoff, the feed the loose one."""
    import recall
    config = recall.get_config()
    if Scope(scope) == Scope.FEED:
        return config.feed_threshold
    return config.search_threshold


def is_wildcard(query: str) -> bool:
    return (query or "").strip() == WILDCARD_QUERY


# ============================================================================
# VECTOR SEARCH
# ============================================================================

def vector_search(
    query: str,
    user_id: str,
    *,
    scope: Union[Scope, str] = Scope.OWN,
    limit: int = 10,
    threshold: Optional[float] = None,
    filters: Optional[SearchFilters] = None,
    include_own: bool = False,
) -> list[SearchResult]:
    """
    Rank entries with stored embeddings by cosine similarity to the query.

    Results below `threshold` are dropped, except for the wildcard query "*"
    with at least one structural filter active: there the filters alone
    define relevance and every candidate is kept.

    Raises EmbeddingError if the query cannot be embedded.
    """
    filters = filters or SearchFilters()
    if threshold is None:
        threshold = default_threshold(scope)
    bypass_threshold = is_wildcard(query) and filters.has_structural()

    candidates = get_candidates(
        user_id, scope, filters,
        include_own=include_own,
        require_embedding=True,
    )
    if not candidates:
        logger.debug("Vector search: no candidates for %r", query)
        return []

    query_embedding = get_query_embedding(query)

    results: list[SearchResult] = []
    for entry in candidates:
        try:
            entry_embedding = decode_vector(entry.get("content_embedding") or "")
            if not entry_embedding:
                continue
            similarity = cosine_similarity(query_embedding, entry_embedding)
        except ValueError:
            # Includes DimensionMismatch (stale vector from an older model)
            logger.warning(
                "Failed to process embedding for entry %s", entry["id"], exc_info=True
            )
            continue

        if similarity < threshold and not bypass_threshold:
            continue

        results.append(SearchResult(
            entry_id=entry["id"],
            similarity=similarity,
            snippet=build_snippet(entry),
            title=entry.get("title") or None,
            created_at=entry.get("created_at"),
            match_reason=f"Vector similarity: {similarity * 100:.1f}%",
        ))

    results.sort(key=lambda r: r.similarity, reverse=True)
    results = results[:limit]

    logger.debug(
        "Vector search: query_len=%d searched=%d results=%d top=%.3f bypass=%s",
        len(query), len(candidates), len(results),
        results[0].similarity if results else 0.0, bypass_threshold,
    )
    return results


# ============================================================================
# KEYWORD SEARCH
# ============================================================================

def keyword_score(query: str, entry: dict) -> tuple[float, list[str]]:
    """
    Lexical score of an entry for a query, capped at MAX_KEYWORD_SCORE.

    Returns (score, matched field names).
    """
    query_lower = query.lower().strip()
    words = [w for w in re.split(r"\s+", query_lower) if w]
    if not query_lower:
        return 0.0, []

    fields = {
        "title": (entry.get("title") or "").lower(),
        "content": (entry.get("content") or "").lower(),
        "searchable_text": (entry.get("searchable_text") or "").lower(),
    }

    score = 0.0
    matched: list[str] = []
    for name, text in fields.items():
        if text and query_lower in text:
            score += FULL_QUERY_WEIGHTS[name]
            matched.append(name)

    combined = " ".join(fields.values())
    for word in words:
        if word in combined:
            score += WORD_MATCH_WEIGHT
            if "words" not in matched:
                matched.append("words")

    return min(score, MAX_KEYWORD_SCORE), matched


def keyword_search(
    query: str,
    user_id: str,
    *,
    scope: Union[Scope, str] = Scope.OWN,
    limit: int = 10,
    filters: Optional[SearchFilters] = None,
    include_own: bool = False,
) -> list[SearchResult]:
    """Lexical fallback over title, content and searchable text."""
    if not query or not query.strip() or is_wildcard(query):
        return []

    candidates = get_candidates(user_id, scope, filters, include_own=include_own)

    results: list[SearchResult] = []
    for entry in candidates:
        score, matched = keyword_score(query, entry)
        if score <= 0:
            continue
        results.append(SearchResult(
            entry_id=entry["id"],
            similarity=score,
            snippet=build_snippet(entry),
            title=entry.get("title") or None,
            created_at=entry.get("created_at"),
            match_reason=f"Keyword matches: {', '.join(matched)}",
        ))

    results.sort(key=lambda r: r.similarity, reverse=True)
    return results[:limit]


# ============================================================================
# HYBRID RANKER
# ============================================================================

def merge_hybrid(
    vector_results: list[SearchResult],
    keyword_results: list[SearchResult],
    mode: str = "balanced",
) -> list[SearchResult]:
    """
    Fuse vector and keyword results by entry id.

    Each source is scaled by its mode weight. An entry found by both gets its
    weighted vector score plus half its weighted keyword score, so entries
    confirmed by two signals outrank single-signal matches.
    """
    if mode not in HYBRID_MODE_WEIGHTS:
        raise ValueError(
            f"Unknown hybrid mode {mode!r}. Use one of: {', '.join(HYBRID_MODE_WEIGHTS)}"
        )
    vector_weight, keyword_weight = HYBRID_MODE_WEIGHTS[mode]

    combined: dict[str, SearchResult] = {}
    for result in vector_results:
        combined[result.entry_id] = SearchResult(
            entry_id=result.entry_id,
            similarity=result.similarity * vector_weight,
            snippet=result.snippet,
            title=result.title,
            created_at=result.created_at,
            match_reason=f"Vector: {result.match_reason}",
        )

    for result in keyword_results:
        existing = combined.get(result.entry_id)
        if existing:
            existing.similarity += result.similarity * keyword_weight * 0.5
            existing.match_reason = f"{existing.match_reason} + Keyword: {result.match_reason}"
        else:
            combined[result.entry_id] = SearchResult(
                entry_id=result.entry_id,
                similarity=result.similarity * keyword_weight,
                snippet=result.snippet,
                title=result.title,
                created_at=result.created_at,
                match_reason=f"Keyword: {result.match_reason}",
            )

    return sorted(combined.values(), key=lambda r: r.similarity, reverse=True)


def hybrid_search(
    query: str,
    user_id: str,
    *,
    scope: Union[Scope, str] = Scope.OWN,
    limit: int = 10,
    mode: str = "balanced",
    threshold: Optional[float] = None,
    filters: Optional[SearchFilters] = None,
    include_own: bool = False,
) -> list[SearchResult]:
    """
    Vector + keyword search with weighted fusion.

    Both legs run concurrently against twice the final limit. If the query
    cannot be embedded the result degrades to keyword matches only.
    """
    import recall
    if threshold is None:
        threshold = recall.get_config().hybrid_threshold
    wide_limit = limit * 2

    with ThreadPoolExecutor(max_workers=2) as pool:
        vector_future = pool.submit(
            vector_search, query, user_id,
            scope=scope, limit=wide_limit, threshold=threshold,
            filters=filters, include_own=include_own,
        )
        keyword_future = pool.submit(
            keyword_search, query, user_id,
            scope=scope, limit=wide_limit,
            filters=filters, include_own=include_own,
        )
        keyword_results = keyword_future.result()
        try:
            vector_results = vector_future.result()
        except EmbeddingError:
            logger.warning(
                "Hybrid search falling back to keyword-only for %r", query, exc_info=True
            )
            vector_results = []

    final = merge_hybrid(vector_results, keyword_results, mode)[:limit]

    logger.debug(
        "Hybrid search: vector=%d keyword=%d combined=%d mode=%s",
        len(vector_results), len(keyword_results), len(final), mode,
    )
    return final
