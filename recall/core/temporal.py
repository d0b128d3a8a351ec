"""Heuristic detection of queries that ask about recent activity.

Only the feed context uses this. Standalone search skips temporal bias so
older matches are not penalized.
"""

import re

TEMPORAL_KEYWORDS = (
    "recent",
    "recently",
    "latest",
    "lately",
    "today",
    "tonight",
    "yesterday",
    "this morning",
    "this afternoon",
    "this evening",
    "this week",
    "this weekend",
    "this month",
    "last week",
    "last night",
    "past week",
    "past few days",
    "currently",
    "right now",
    "these days",
    "what's new",
    "whats new",
    "what is new",
    "anything new",
)

TEMPORAL_PATTERNS = [
    re.compile(r"\b(in|over|during) the (last|past) (\d+|few|couple(?: of)?) (hours?|days?|weeks?|months?)\b"),
    re.compile(r"\b(last|past) \d+ (hours?|days?|weeks?|months?)\b"),
    re.compile(r"\bsince (yesterday|last \w+|monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b"),
    re.compile(r"\b\d+ (hours?|days?|weeks?) ago\b"),
    re.compile(r"\bso far (this|today)\b"),
]

_KEYWORD_RES = [re.compile(r"\b" + re.escape(k) + r"\b") for k in TEMPORAL_KEYWORDS]


def is_temporal_query(query: str) -> bool:
    """True if the query contains a recency keyword or matches a recency pattern."""
    text = (query or "").strip().lower()
    if not text:
        return False
    if any(k.search(text) for k in _KEYWORD_RES):
        return True
    return any(p.search(text) for p in TEMPORAL_PATTERNS)
