"""
recall Search Orchestrator

One entry point for the search page and the feed:
    query -> (temporal window) -> vector | keyword | hybrid -> feed ranking -> clustering
or, in conversational mode, the RAG engine.
"""

import logging
import time
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional

from recall.core.candidates import CONTEXT_SCOPES, SearchFilters
from recall.core.conversation import converse
from recall.core.db import utcnow
from recall.core.ranking import cluster_results, rank_feed
from recall.core.retrieval import hybrid_search, keyword_search, vector_search
from recall.core.temporal import is_temporal_query

logger = logging.getLogger(__name__)

SEARCH_MODES = ("vector", "keyword", "hybrid", "conversational")
SEARCH_CONTEXTS = tuple(CONTEXT_SCOPES)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def search(
    query: str,
    user_id: str,
    *,
    mode: str = "hybrid",
    limit: int = 10,
    threshold: Optional[float] = None,
    context: str = "search",
    hybrid_mode: str = "balanced",
    filters: Optional[SearchFilters] = None,
    previous_messages: Optional[list[dict]] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Search a user's journal.

    Args:
        query: Free text, or "*" to list everything matching `filters`
        user_id: The querying user
        mode: vector, keyword, hybrid or conversational
        limit: Maximum results returned
        threshold: Similarity cutoff (defaults per context)
        context: "search" covers the user's own entries, "feed" other
            people's visible entries plus the user's own, "shared" entries
            other people shared with the user
        hybrid_mode: semantic, keyword or balanced weighting
        filters: Tags, people, date range and privacy constraints (not
            accepted in conversational mode)
        previous_messages: Conversation history (conversational mode only)

    Returns:
        Dict with results and timing; conversational mode returns the answer,
        cited entries and confidence instead of results.

    Raises:
        ValueError: Unknown mode, context or hybrid mode, or a threshold or
            filters given in conversational mode
        EmbeddingError: The query could not be embedded (vector mode)
    """
    if mode not in SEARCH_MODES:
        raise ValueError(f"Unknown search mode {mode!r}. Use one of: {', '.join(SEARCH_MODES)}")
    if context not in SEARCH_CONTEXTS:
        raise ValueError(f"Unknown search context {context!r}. Use one of: {', '.join(SEARCH_CONTEXTS)}")
    if mode == "conversational" and (threshold is not None or (filters and not filters.is_empty())):
        # Grounding uses its own thresholds and no structured filters
        raise ValueError("Conversational mode does not accept a threshold or filters")

    import recall
    config = recall.get_config()
    started = time.perf_counter()
    now = now or utcnow()

    if mode == "conversational":
        answer = converse(query, user_id, previous_messages, context=context, now=now)
        return {
            "query": query,
            "mode": mode,
            **answer.to_dict(),
            "execution_time_ms": _elapsed_ms(started),
        }

    feed = context == "feed"
    scope = CONTEXT_SCOPES[context]
    filters = filters or SearchFilters()

    # Temporal feed questions without explicit dates look at recent entries only
    if feed and not (filters.date_from or filters.date_to) and is_temporal_query(query):
        window_start = (now - timedelta(days=config.recent_window_days)).date()
        filters = replace(filters, date_from=window_start)
        logger.debug("Temporal feed query %r restricted to entries since %s", query, window_start)

    wide_limit = limit * 2
    if mode == "vector":
        results = vector_search(
            query, user_id,
            scope=scope, limit=wide_limit, threshold=threshold,
            filters=filters, include_own=feed,
        )
    elif mode == "keyword":
        results = keyword_search(
            query, user_id,
            scope=scope, limit=wide_limit, filters=filters, include_own=feed,
        )
    else:
        results = hybrid_search(
            query, user_id,
            scope=scope, limit=wide_limit, mode=hybrid_mode, threshold=threshold,
            filters=filters, include_own=feed,
        )

    if feed:
        results = rank_feed(results, user_id, now=now)
    results = cluster_results(results)[:limit]

    elapsed = _elapsed_ms(started)
    logger.info(
        "Search: mode=%s context=%s results=%d time=%dms",
        mode, context, len(results), elapsed,
    )
    return {
        "query": query,
        "mode": mode,
        "results": [r.to_dict() for r in results],
        "total_results": len(results),
        "execution_time_ms": elapsed,
    }
