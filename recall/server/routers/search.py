"""Search endpoints: ranked search and grounded conversation."""

import logging
from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, model_validator

from recall.server.auth import require_user

router = APIRouter()
logger = logging.getLogger(__name__)


# --- Request models ---

class Message(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(..., max_length=10000)


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=2000, description="Search query, or * with filters")
    mode: Literal["vector", "keyword", "hybrid", "conversational"] = "hybrid"
    limit: int = Field(10, ge=1, le=50, description="Max results")
    threshold: Optional[float] = Field(None, ge=0.0, le=1.0, description="Similarity cutoff")
    context: Literal["search", "feed", "shared"] = "search"
    hybrid_mode: Literal["semantic", "keyword", "balanced"] = "balanced"
    tags: list[str] = Field(default_factory=list, max_length=20)
    people: list[str] = Field(default_factory=list, max_length=20)
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    privacy: Optional[Literal["private", "shared", "public"]] = None
    previous_messages: list[Message] = Field(default_factory=list, max_length=20)

    @model_validator(mode="after")
    def _date_order(self):
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self


class ConversationRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=2000, description="Question about the journal")
    context: Literal["search", "feed", "shared"] = "search"
    previous_messages: list[Message] = Field(default_factory=list, max_length=20)


# --- Endpoints ---
# Routes use `def` (not `async def`) because they call synchronous recall
# functions. FastAPI runs `def` routes in a threadpool, keeping the event
# loop free for other requests.

@router.post("")
def search(req: SearchRequest, user_id: str = Depends(require_user)):
    """Vector, keyword, hybrid or conversational search over the caller's journal."""
    from recall.core.candidates import SearchFilters
    from recall.core.embeddings import EmbeddingError
    from recall.core.search import search as run_search

    filters = SearchFilters(
        tags=req.tags,
        people=req.people,
        date_from=req.date_from,
        date_to=req.date_to,
        privacy=req.privacy,
    )
    try:
        return run_search(
            req.query,
            user_id,
            mode=req.mode,
            limit=req.limit,
            threshold=req.threshold,
            context=req.context,
            hybrid_mode=req.hybrid_mode,
            filters=filters,
            previous_messages=[m.model_dump() for m in req.previous_messages],
        )
    except EmbeddingError as e:
        logger.error("Search failed, embedding provider unavailable: %s", e)
        raise HTTPException(status_code=502, detail="Embedding provider unavailable")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/conversation")
def conversation(req: ConversationRequest, user_id: str = Depends(require_user)):
    """Answer a question grounded in cited journal entries."""
    from recall.core.search import search as run_search

    return run_search(
        req.query,
        user_id,
        mode="conversational",
        context=req.context,
        previous_messages=[m.model_dump() for m in req.previous_messages],
    )
