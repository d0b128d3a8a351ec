"""Health and stats endpoints."""

import logging

from fastapi import APIRouter, Depends

from recall.server.auth import require_auth

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
def health():
    """Health check: DB accessible."""
    from recall.core.db import _db

    try:
        with _db() as db:
            db.execute("SELECT 1").fetchone()
        return {"status": "healthy"}
    except Exception:
        logger.exception("Health check failed")
        return {"status": "unhealthy"}


@router.get("/stats", dependencies=[Depends(require_auth)])
def stats():
    """Counts across all journals: entries by privacy, embedding coverage, engagement."""
    import recall
    from recall.core.db import _db
    from recall.lifecycle.embedding_worker import get_embedding_processor

    with _db() as db:
        privacy_rows = db.execute("""
            SELECT privacy, COUNT(*) as count
            FROM entries
            GROUP BY privacy
            ORDER BY count DESC
        """).fetchall()

        total_entries = db.execute("SELECT COUNT(*) FROM entries").fetchone()[0]
        embedded = db.execute(
            "SELECT COUNT(*) FROM entries WHERE content_embedding IS NOT NULL"
        ).fetchone()[0]
        current_version = db.execute(
            "SELECT COUNT(*) FROM entries WHERE embedding_version = ?",
            (recall.get_config().embedding_version,),
        ).fetchone()[0]
        total_likes = db.execute("SELECT COUNT(*) FROM likes").fetchone()[0]
        total_comments = db.execute("SELECT COUNT(*) FROM comments").fetchone()[0]
        total_people = db.execute("SELECT COUNT(*) FROM people").fetchone()[0]

    return {
        "entries": {
            "total": total_entries,
            "by_privacy": {row["privacy"]: row["count"] for row in privacy_rows},
        },
        "embeddings": {
            "with_embeddings": embedded,
            "current_version": current_version,
            "queue_pending": get_embedding_processor().pending_count(),
        },
        "engagement": {
            "likes": total_likes,
            "comments": total_comments,
        },
        "people": total_people,
    }
