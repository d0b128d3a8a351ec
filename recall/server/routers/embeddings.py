"""Embedding maintenance endpoints: batch sweep, queue one entry, coverage."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from recall.server.auth import require_user

router = APIRouter()
logger = logging.getLogger(__name__)


class ProcessRequest(BaseModel):
    limit: int = Field(10, ge=1, le=100, description="Max entries to embed in this sweep")


@router.post("/process")
def process(req: ProcessRequest, user_id: str = Depends(require_user)):
    """Embed the caller's entries that have no embedding yet."""
    from recall.lifecycle.embedding_worker import get_embedding_processor

    return get_embedding_processor().process_missing_embeddings(user_id=user_id, limit=req.limit)


@router.post("/queue/{entry_id}")
def queue_entry(entry_id: str, user_id: str = Depends(require_user)):
    """Queue one of the caller's entries for background re-embedding."""
    from recall.core.store import get_entry
    from recall.lifecycle.embedding_worker import get_embedding_processor

    entry = get_entry(entry_id)
    if entry is None or entry["user_id"] != user_id:
        raise HTTPException(status_code=404, detail=f"Entry {entry_id} not found")

    queued = get_embedding_processor().queue_entry(entry_id)
    return {"entry_id": entry_id, "queued": queued}


@router.get("/status")
def status(user_id: str = Depends(require_user)):
    """Embedding coverage of the caller's entries."""
    from recall.core.store import embedding_status

    return embedding_status(user_id)
