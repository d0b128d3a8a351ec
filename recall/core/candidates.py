"""
Candidate retrieval: entries visible to a user under a scope, narrowed by
structured filters (tags, tagged people, calendar-day date range, privacy).

Filters are conjunctive. A tag or person that matches nothing yields an
empty candidate set; there is no fallback to the unfiltered set.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional, Union

from recall.core.db import _db, _row_to_entry, format_timestamp, utcnow

logger = logging.getLogger(__name__)

PRIVACY_LEVELS = ("private", "shared", "public")


class Scope(str, Enum):
    OWN = "own"
    FEED = "feed"
    SHARED = "shared"


# Caller-facing search contexts
CONTEXT_SCOPES = {
    "search": Scope.OWN,
    "feed": Scope.FEED,
    "shared": Scope.SHARED,
}


@dataclass
class SearchFilters:
    """Structured search constraints. Empty lists and None mean 'no constraint'."""
    tags: list[str] = field(default_factory=list)
    people: list[str] = field(default_factory=list)
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    privacy: Optional[str] = None

    def __post_init__(self):
        self.tags = [t.strip() for t in self.tags if t and t.strip()]
        self.people = [p.strip() for p in self.people if p and p.strip()]
        if isinstance(self.date_from, datetime):
            self.date_from = self.date_from.date()
        if isinstance(self.date_to, datetime):
            self.date_to = self.date_to.date()
        if self.privacy is not None and self.privacy not in PRIVACY_LEVELS:
            raise ValueError(f"Unknown privacy level {self.privacy!r}")

    def has_structural(self) -> bool:
        """True when tags, people or a date bound constrain the result."""
        return bool(self.tags or self.people or self.date_from or self.date_to)

    def is_empty(self) -> bool:
        return not (self.has_structural() or self.privacy)


def _scope_clause(user_id: str, scope: Scope, include_own: bool) -> tuple[str, list]:
    if scope == Scope.OWN:
        return "e.user_id = ?", [user_id]

    if scope == Scope.SHARED:
        return (
            "e.privacy = 'shared' AND EXISTS "
            "(SELECT 1 FROM json_each(e.shared_with) WHERE value = ?)",
            [user_id],
        )

    # Feed: other people's public entries and entries shared with the user
    visible = (
        "(e.user_id != ? AND (e.privacy = 'public' OR EXISTS "
        "(SELECT 1 FROM json_each(e.shared_with) WHERE value = ?)))"
    )
    params = [user_id, user_id]
    if include_own:
        visible = f"({visible} OR e.user_id = ?)"
        params.append(user_id)
    return visible, params


def _filter_clauses(user_id: str, filters: SearchFilters) -> tuple[list[str], list]:
    clauses: list[str] = []
    params: list = []

    for tag in filters.tags:
        clauses.append("EXISTS (SELECT 1 FROM json_each(e.tags) WHERE value = ?)")
        params.append(tag)

    # Person tags only count when the person belongs to the querying user
    for name in filters.people:
        clauses.append("""
            EXISTS (
                SELECT 1 FROM entry_person_tags t
                JOIN people p ON p.id = t.person_id
                WHERE t.entry_id = e.id
                AND p.user_id = ?
                AND (LOWER(p.first_name) = ?
                     OR LOWER(TRIM(p.first_name || ' ' || COALESCE(p.last_name, ''))) = ?)
            )
        """)
        lowered = " ".join(name.lower().split())
        params.extend([user_id, lowered, lowered])

    if filters.date_from:
        clauses.append("e.created_at >= ?")
        params.append(f"{filters.date_from.isoformat()} 00:00:00")
    if filters.date_to:
        # Inclusive through end-of-day
        clauses.append("e.created_at < ?")
        params.append(f"{(filters.date_to + timedelta(days=1)).isoformat()} 00:00:00")

    if filters.privacy:
        clauses.append("e.privacy = ?")
        params.append(filters.privacy)

    return clauses, params


def get_candidates(
    user_id: str,
    scope: Union[Scope, str] = Scope.OWN,
    filters: Optional[SearchFilters] = None,
    *,
    include_own: bool = False,
    require_embedding: bool = False,
    since: Optional[datetime] = None,
    limit: Optional[int] = None,
    newest_first: bool = False,
) -> list[dict]:
    """
    Fetch entries visible to `user_id` under `scope` that satisfy every filter.

    Args:
        user_id: The querying user
        scope: own (user's entries), feed (others' public/shared-with-user),
            shared (privacy=shared and shared with the user)
        filters: Structured constraints, all of which must hold
        include_own: Feed scope only: also include the user's own entries
        require_embedding: Only entries with a stored embedding
        since: Only entries created at or after this instant
        limit: Maximum rows (unbounded when None)
        newest_first: Order by creation time descending
    """
    scope = Scope(scope)
    filters = filters or SearchFilters()

    scope_sql, params = _scope_clause(user_id, scope, include_own)
    clauses = [scope_sql]

    filter_sql, filter_params = _filter_clauses(user_id, filters)
    clauses.extend(filter_sql)
    params.extend(filter_params)

    if require_embedding:
        clauses.append("e.content_embedding IS NOT NULL")
    if since is not None:
        clauses.append("e.created_at >= ?")
        params.append(format_timestamp(since))

    query = "SELECT e.* FROM entries e WHERE " + " AND ".join(f"({c})" for c in clauses)
    if newest_first:
        query += " ORDER BY e.created_at DESC"
    if limit is not None:
        query += " LIMIT ?"
        params.append(limit)

    with _db() as db:
        rows = db.execute(query, params).fetchall()

    logger.debug(
        "Candidates for user=%s scope=%s: %d (filters=%s)",
        user_id, scope.value, len(rows), filters,
    )
    return [_row_to_entry(row) for row in rows]


def get_recent_entries(
    user_id: str,
    scope: Union[Scope, str] = Scope.OWN,
    *,
    days: int,
    limit: int,
    filters: Optional[SearchFilters] = None,
    include_own: bool = False,
    now: Optional[datetime] = None,
) -> list[dict]:
    """Newest entries created within the last `days` days."""
    now = now or utcnow()
    return get_candidates(
        user_id,
        scope,
        filters,
        include_own=include_own,
        since=now - timedelta(days=days),
        limit=limit,
        newest_first=True,
    )
