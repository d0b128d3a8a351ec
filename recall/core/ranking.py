"""
Post-retrieval ranking: feed re-scoring and near-duplicate clustering.

Feed ranking reorders hybrid results by freshness and social signal; it never
drops a result. Clustering collapses same-timeframe near-duplicates.
"""

import logging
import re
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional

from recall.core.db import parse_timestamp, utcnow
from recall.core.retrieval import SearchResult

logger = logging.getLogger(__name__)

RECENCY_DECAY_PER_DAY = 0.1
RECENCY_FLOOR = 0.1
LIKE_WEIGHT = 0.1
COMMENT_WEIGHT = 0.2
MAX_ENGAGEMENT = 2.0
MIN_CLUSTER_INPUT = 3
SIGNIFICANT_WORD_LENGTH = 3


# ============================================================================
# FEED RANKER
# ============================================================================

def recency_factor(created_at: Optional[datetime], now: datetime) -> float:
    """1 / (1 + days * 0.1), floored at 0.1. Unknown age counts as brand new."""
    if created_at is None:
        return 1.0
    days = max(0.0, (now - created_at).total_seconds() / 86400)
    return max(RECENCY_FLOOR, 1.0 / (1.0 + days * RECENCY_DECAY_PER_DAY))


def engagement_factor(likes: int, comments: int) -> float:
    return min(MAX_ENGAGEMENT, 1.0 + likes * LIKE_WEIGHT + comments * COMMENT_WEIGHT)


def feed_score(
    similarity: float,
    created_at: Optional[datetime],
    likes: int,
    comments: int,
    interacted: bool,
    now: datetime,
    interaction_boost: float = 1.3,
) -> float:
    user_context = interaction_boost if interacted else 1.0
    return (
        similarity
        * recency_factor(created_at, now)
        * engagement_factor(likes, comments)
        * user_context
    )


def rank_feed(
    results: list[SearchResult],
    user_id: str,
    now: Optional[datetime] = None,
) -> list[SearchResult]:
    """Re-score feed results by recency, engagement and the user's own interactions."""
    if not results:
        return []

    import recall
    from recall.core.store import get_engagement, get_recent_interactions

    config = recall.get_config()
    now = now or utcnow()
    entry_ids = [r.entry_id for r in results]

    engagement = get_engagement(entry_ids)
    interacted = get_recent_interactions(
        user_id, entry_ids, since=now - timedelta(days=config.interaction_window_days)
    )

    ranked = []
    for result in results:
        likes, comments = engagement.get(result.entry_id, (0, 0))
        score = feed_score(
            result.similarity,
            parse_timestamp(result.created_at),
            likes,
            comments,
            result.entry_id in interacted,
            now,
            interaction_boost=config.interaction_boost,
        )
        ranked.append(replace(result, similarity=score))

    ranked.sort(key=lambda r: r.similarity, reverse=True)
    logger.debug("Feed ranking applied to %d results (%d interacted)", len(ranked), len(interacted))
    return ranked


# ============================================================================
# CLUSTERING / DEDUP
# ============================================================================

def _significant_words(title: Optional[str]) -> set[str]:
    return {w for w in re.findall(r"\w+", (title or "").lower()) if len(w) > SIGNIFICANT_WORD_LENGTH}


def title_overlap(candidate_title: Optional[str], kept_title: Optional[str]) -> float:
    """Share of the candidate's significant title words also in the kept title."""
    candidate_words = _significant_words(candidate_title)
    if not candidate_words:
        return 0.0
    return len(candidate_words & _significant_words(kept_title)) / len(candidate_words)


def cluster_results(
    results: list[SearchResult],
    max_results: Optional[int] = None,
    window_hours: Optional[float] = None,
    overlap_threshold: Optional[float] = None,
    score_ratio: Optional[float] = None,
) -> list[SearchResult]:
    """
    Collapse near-duplicate results created close together in time.

    Walks results best-first. Each kept result consumes any other result
    created within the window whose title overlaps it by more than the
    overlap threshold, or whose score is within `score_ratio` of it.
    Stops once min(len(results), max_results) results are kept.
    Inputs of three or fewer results are returned unchanged.
    """
    if len(results) <= MIN_CLUSTER_INPUT:
        return list(results)

    if None in (max_results, window_hours, overlap_threshold, score_ratio):
        import recall
        config = recall.get_config()
        if max_results is None:
            max_results = config.cluster_max_results
        if window_hours is None:
            window_hours = config.cluster_window_hours
        if overlap_threshold is None:
            overlap_threshold = config.cluster_title_overlap
        if score_ratio is None:
            score_ratio = config.cluster_score_ratio

    ordered = sorted(results, key=lambda r: r.similarity, reverse=True)
    created = [parse_timestamp(r.created_at) for r in ordered]
    window = timedelta(hours=window_hours)
    target = min(len(ordered), max_results)

    kept: list[SearchResult] = []
    consumed: set[int] = set()

    for i, result in enumerate(ordered):
        if i in consumed:
            continue
        kept.append(result)
        consumed.add(i)
        if len(kept) >= target:
            break

        if created[i] is None:
            continue
        for j in range(i + 1, len(ordered)):
            if j in consumed or created[j] is None:
                continue
            if abs(created[j] - created[i]) > window:
                continue
            other = ordered[j]
            similar_title = title_overlap(other.title, result.title) > overlap_threshold
            similar_score = other.similarity >= result.similarity * score_ratio
            if similar_title or similar_score:
                consumed.add(j)

    logger.debug("Clustering: %d -> %d results", len(results), len(kept))
    return kept
