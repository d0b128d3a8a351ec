"""
recall Entry Store (boundary)

The minimal read/write surface the retrieval core needs from the journal
store: entry lookup, embedding-field updates, embedding coverage, and the
likes/comments/person-tag rows read by filters and feed ranking.
Database infra lives in db.py, retrieval in retrieval.py.
"""

import json
import logging
import uuid
from datetime import datetime
from typing import Iterable, Optional

from recall.core.db import _db, _row_to_entry, format_timestamp, utcnow
from recall.core.embeddings import EmbeddingError, get_embedding
from recall.core.vectors import encode_vector

logger = logging.getLogger(__name__)

# Public API input limits
MAX_CONTENT_LENGTH = 50_000
MAX_TITLE_LENGTH = 255


def create_entry(
    user_id: str,
    content: str,
    title: Optional[str] = None,
    tags: Optional[list[str]] = None,
    privacy: str = "private",
    shared_with: Optional[list[str]] = None,
    created_at: Optional[datetime] = None,
    ai_insights: Optional[dict] = None,
    embed: bool = True,
) -> str:
    """
    Store a journal entry and, best-effort, its embedding.

    Embedding failure does not fail the write: the entry is stored without a
    vector and can be picked up later by the missing-embeddings sweep.

    Returns:
        Entry ID
    """
    from recall.core.insights import build_searchable_text

    if len(content) > MAX_CONTENT_LENGTH:
        content = content[:MAX_CONTENT_LENGTH]
    if title and len(title) > MAX_TITLE_LENGTH:
        title = title[:MAX_TITLE_LENGTH]

    entry_id = str(uuid.uuid4())
    tags = list(tags or [])
    created = format_timestamp(created_at or utcnow())
    searchable_text = build_searchable_text(title, content, tags, ai_insights)

    with _db() as db:
        db.execute("""
            INSERT INTO entries (id, user_id, title, content, tags, privacy, shared_with,
                                 ai_insights, searchable_text, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            entry_id,
            user_id,
            title,
            content,
            json.dumps(tags),
            privacy,
            json.dumps(list(shared_with or [])),
            json.dumps(ai_insights) if ai_insights else None,
            searchable_text,
            created,
            created,
        ))
        db.commit()

    if embed:
        try:
            embedding = get_embedding(searchable_text)
            update_entry_embedding(entry_id, embedding, searchable_text)
        except EmbeddingError:
            logger.warning("Stored entry %s without embedding", entry_id, exc_info=True)

    return entry_id


def update_entry_text(
    entry_id: str,
    content: Optional[str] = None,
    title: Optional[str] = None,
    tags: Optional[list[str]] = None,
) -> bool:
    """
    Change an entry's text and clear its embedding fields.

    A stored vector must always describe the current searchable text, so the
    old one is dropped here; callers re-queue the entry for embedding.
    """
    from recall.core.insights import build_searchable_text

    entry = get_entry(entry_id)
    if entry is None:
        return False

    new_content = content if content is not None else entry["content"]
    new_title = title if title is not None else entry.get("title")
    new_tags = list(tags) if tags is not None else entry["tags"]
    searchable_text = build_searchable_text(new_title, new_content, new_tags, entry.get("ai_insights"))

    with _db() as db:
        db.execute("""
            UPDATE entries
            SET content = ?, title = ?, tags = ?, searchable_text = ?,
                content_embedding = NULL, last_embedding_update = NULL,
                updated_at = ?
            WHERE id = ?
        """, (
            new_content, new_title, json.dumps(new_tags), searchable_text,
            format_timestamp(utcnow()), entry_id,
        ))
        db.commit()
    return True


def get_entry(entry_id: str) -> Optional[dict]:
    with _db() as db:
        row = db.execute("SELECT * FROM entries WHERE id = ?", (entry_id,)).fetchone()
    return _row_to_entry(row) if row else None


def get_entries_by_ids(entry_ids: list[str]) -> dict[str, dict]:
    """Fetch entries keyed by id. Missing ids are simply absent."""
    if not entry_ids:
        return {}
    placeholders = ",".join("?" * len(entry_ids))
    with _db() as db:
        rows = db.execute(
            f"SELECT * FROM entries WHERE id IN ({placeholders})", list(entry_ids)
        ).fetchall()
    return {row["id"]: _row_to_entry(row) for row in rows}


def update_entry_embedding(
    entry_id: str,
    embedding: list[float],
    searchable_text: str,
    ai_insights: Optional[dict] = None,
    version: Optional[str] = None,
    source: Optional[dict] = None,
) -> bool:
    """
    Write the derived fields: vector, version, update time, searchable text, insights.

    When `source` (the entry as read before embedding) is given, the write only
    lands if the entry's title, content and tags are still the ones read.

    Returns:
        False if the entry's text changed since `source` was read

    Raises:
        LookupError: Unknown entry
    """
    import recall

    if version is None:
        version = recall.get_config().embedding_version
    now = format_timestamp(utcnow())

    assignments = [
        "content_embedding = ?", "embedding_version = ?", "last_embedding_update = ?",
        "searchable_text = ?", "updated_at = ?",
    ]
    params: list = [encode_vector(embedding), version, now, searchable_text, now]
    if ai_insights is not None:
        assignments.append("ai_insights = ?")
        params.append(json.dumps(ai_insights))

    query = f"UPDATE entries SET {', '.join(assignments)} WHERE id = ?"
    params.append(entry_id)
    if source is not None:
        # Text edited mid-embed: the vector describes old text
        query += " AND title IS ? AND content IS ? AND tags IS ?"
        params += [source.get("title"), source.get("content"), json.dumps(source.get("tags") or [])]

    with _db() as db:
        updated = db.execute(query, params).rowcount
        db.commit()

    if updated:
        return True
    if get_entry(entry_id) is None:
        raise LookupError(f"Entry not found: {entry_id}")
    logger.info("Entry %s changed while embedding, discarding stale vector", entry_id)
    return False


def find_entries_missing_embeddings(user_id: Optional[str] = None, limit: int = 10) -> list[str]:
    """Ids of entries with no vector or no recorded embedding time."""
    query = """
        SELECT id FROM entries
        WHERE (content_embedding IS NULL OR last_embedding_update IS NULL)
    """
    params: list = []
    if user_id:
        query += " AND user_id = ?"
        params.append(user_id)
    query += " ORDER BY created_at DESC LIMIT ?"
    params.append(limit)

    with _db() as db:
        rows = db.execute(query, params).fetchall()
    return [row["id"] for row in rows]


def list_entry_ids(user_id: Optional[str] = None) -> list[str]:
    query = "SELECT id FROM entries"
    params: list = []
    if user_id:
        query += " WHERE user_id = ?"
        params.append(user_id)
    query += " ORDER BY created_at DESC"
    with _db() as db:
        rows = db.execute(query, params).fetchall()
    return [row["id"] for row in rows]


def embedding_status(user_id: str) -> dict:
    """Embedding coverage for one user's entries."""
    with _db() as db:
        row = db.execute("""
            SELECT
                COUNT(*) AS total,
                SUM(CASE WHEN content_embedding IS NOT NULL
                          AND last_embedding_update IS NOT NULL THEN 1 ELSE 0 END) AS embedded
            FROM entries
            WHERE user_id = ?
        """, (user_id,)).fetchone()

    total = row["total"] or 0
    embedded = row["embedded"] or 0
    return {
        "total_entries": total,
        "with_embeddings": embedded,
        "needs_processing": total - embedded,
        "coverage_percent": round(embedded / total * 100, 1) if total else 0.0,
    }


# ============================================================================
# ENGAGEMENT AND PERSON TAGS
# ============================================================================

def add_like(entry_id: str, user_id: str, created_at: Optional[datetime] = None) -> bool:
    """Like an entry. Returns False if the user already liked it."""
    with _db() as db:
        cursor = db.execute(
            "INSERT OR IGNORE INTO likes (id, entry_id, user_id, created_at) VALUES (?, ?, ?, ?)",
            (str(uuid.uuid4()), entry_id, user_id, format_timestamp(created_at or utcnow())),
        )
        inserted = cursor.rowcount
        db.commit()
    return inserted > 0


def add_comment(entry_id: str, user_id: str, content: str, created_at: Optional[datetime] = None) -> str:
    comment_id = str(uuid.uuid4())
    with _db() as db:
        db.execute(
            "INSERT INTO comments (id, entry_id, user_id, content, created_at) VALUES (?, ?, ?, ?, ?)",
            (comment_id, entry_id, user_id, content, format_timestamp(created_at or utcnow())),
        )
        db.commit()
    return comment_id


def create_person(user_id: str, first_name: str, last_name: Optional[str] = None) -> str:
    person_id = str(uuid.uuid4())
    with _db() as db:
        db.execute(
            "INSERT INTO people (id, user_id, first_name, last_name) VALUES (?, ?, ?, ?)",
            (person_id, user_id, first_name, last_name),
        )
        db.commit()
    return person_id


def tag_person(entry_id: str, person_id: str) -> None:
    with _db() as db:
        db.execute(
            "INSERT OR IGNORE INTO entry_person_tags (id, entry_id, person_id) VALUES (?, ?, ?)",
            (str(uuid.uuid4()), entry_id, person_id),
        )
        db.commit()


def get_engagement(entry_ids: Iterable[str]) -> dict[str, tuple[int, int]]:
    """Map entry id -> (like count, comment count)."""
    entry_ids = list(entry_ids)
    if not entry_ids:
        return {}
    placeholders = ",".join("?" * len(entry_ids))
    counts: dict[str, tuple[int, int]] = {eid: (0, 0) for eid in entry_ids}

    with _db() as db:
        like_rows = db.execute(
            f"SELECT entry_id, COUNT(*) AS n FROM likes WHERE entry_id IN ({placeholders}) GROUP BY entry_id",
            entry_ids,
        ).fetchall()
        comment_rows = db.execute(
            f"SELECT entry_id, COUNT(*) AS n FROM comments WHERE entry_id IN ({placeholders}) GROUP BY entry_id",
            entry_ids,
        ).fetchall()

    for row in like_rows:
        counts[row["entry_id"]] = (row["n"], counts[row["entry_id"]][1])
    for row in comment_rows:
        counts[row["entry_id"]] = (counts[row["entry_id"]][0], row["n"])
    return counts


def get_recent_interactions(user_id: str, entry_ids: Iterable[str], since: datetime) -> set[str]:
    """Entry ids the user liked or commented on at or after `since`."""
    entry_ids = list(entry_ids)
    if not entry_ids:
        return set()
    placeholders = ",".join("?" * len(entry_ids))
    cutoff = format_timestamp(since)

    with _db() as db:
        rows = db.execute(f"""
            SELECT entry_id FROM likes
            WHERE user_id = ? AND created_at >= ? AND entry_id IN ({placeholders})
            UNION
            SELECT entry_id FROM comments
            WHERE user_id = ? AND created_at >= ? AND entry_id IN ({placeholders})
        """, [user_id, cutoff, *entry_ids, user_id, cutoff, *entry_ids]).fetchall()
    return {row["entry_id"] for row in rows}
