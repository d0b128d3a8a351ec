"""
recall Conversational Engine

Retrieval-augmented answers over journal entries:
1. Classify temporality (feed context only)
2. Retrieve grounding entries (recent + relaxed semantic, or semantic only)
3. Build a context block per entry
4. Call the LLM under a factual, non-advisory contract
5. Normalize citation tokens to [entry:<uuid>]
6. Confidence from average grounding similarity
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from recall.core.candidates import CONTEXT_SCOPES, get_recent_entries
from recall.core.db import parse_timestamp
from recall.core.embeddings import EmbeddingError
from recall.core.insights import AiInsights
from recall.core.retrieval import SearchResult, build_snippet, vector_search
from recall.core.temporal import is_temporal_query

logger = logging.getLogger(__name__)

NO_RESULTS_ANSWER = (
    "I couldn't find any relevant entries in your journal related to that query. "
    "Try asking about something else or adding more details to your question."
)
ERROR_ANSWER = (
    "I encountered an error while searching your journal. "
    "Please try again with a different query."
)
EMPTY_REPLY_ANSWER = "I couldn't generate a response based on your journal entries."

NO_RESULTS_CONFIDENCE = 0.1
MAX_CONFIDENCE = 0.95
CONFIDENCE_SCALE = 1.2

SYSTEM_CONTRACT = """You help a user look back over their own journal entries.

Rules:
- Only state what the entries below actually say. Do not speculate or fill gaps.
- Do not give advice, recommendations, diagnoses or instructions of any kind.
- Reflect the entries factually and neutrally; quote or paraphrase their content.
- If the entries do not answer the question, say so plainly.
- Every time you refer to an entry, cite it with a token of the exact form
  [entry:<uuid>] using the id shown for that entry. Never cite by title.

Journal entries:
"""

CITATION_RE = re.compile(r"\[entry:\s*([^\]]*?)\s*\]", re.IGNORECASE)
UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
QUOTE_CHARS = "\"'“”‘’`"


@dataclass
class ConversationAnswer:
    answer: str
    relevant_entries: list[SearchResult] = field(default_factory=list)
    confidence: float = 0.0
    total_results: int = 0

    def to_dict(self) -> dict:
        return {
            "answer": self.answer,
            "relevant_entries": [r.to_dict() for r in self.relevant_entries],
            "confidence": self.confidence,
            "total_results": self.total_results,
        }


def _fallback_answer() -> ConversationAnswer:
    return ConversationAnswer(answer=ERROR_ANSWER, relevant_entries=[], confidence=0.0, total_results=0)


# ============================================================================
# CITATIONS
# ============================================================================

def normalize_citations(answer: str, grounding: list[SearchResult]) -> str:
    """
    Rewrite [entry: ...] tokens to [entry:<uuid>].

    A UUID is re-emitted unquoted. Otherwise the text is matched against
    grounding titles, exactly then case-insensitively. Unmatched citations
    become plain text so no dangling reference reaches the user.
    """
    titled = [(r.title, r.entry_id) for r in grounding if r.title]

    def _replace(match: re.Match) -> str:
        raw = match.group(1).strip().strip(QUOTE_CHARS).strip()
        if UUID_RE.match(raw):
            return f"[entry:{raw}]"
        for title, entry_id in titled:
            if title == raw:
                return f"[entry:{entry_id}]"
        folded = raw.casefold()
        for title, entry_id in titled:
            if title.casefold() == folded:
                return f"[entry:{entry_id}]"
        logger.debug("Demoting unmatched citation: %r", raw)
        return raw

    return CITATION_RE.sub(_replace, answer)


def compute_confidence(grounding: list[SearchResult]) -> float:
    """min(0.95, average similarity * 1.2), never below zero."""
    if not grounding:
        return 0.0
    average = sum(r.similarity for r in grounding) / len(grounding)
    return max(0.0, min(MAX_CONFIDENCE, average * CONFIDENCE_SCALE))


# ============================================================================
# GROUNDING
# ============================================================================

def retrieve_grounding(
    query: str,
    user_id: str,
    context: str = "search",
    now: Optional[datetime] = None,
) -> list[SearchResult]:
    """
    Entries the answer may draw on.

    Temporal feed questions combine the newest entries with semantic matches
    at a relaxed threshold; everything else is a plain vector search at the
    context's threshold. Either way the result is capped.

    Raises EmbeddingError if the query cannot be embedded.
    """
    import recall

    config = recall.get_config()
    feed = context == "feed"
    scope = CONTEXT_SCOPES[context]
    cap = config.max_grounding_entries

    if feed and is_temporal_query(query):
        logger.debug("Temporal query, blending recent entries: %r", query)
        recent = get_recent_entries(
            user_id, scope,
            days=config.recent_window_days,
            limit=config.recent_grounding_entries,
            include_own=True,
            now=now,
        )
        semantic = vector_search(
            query, user_id,
            scope=scope, limit=cap,
            threshold=config.temporal_threshold,
            include_own=True,
        )
        semantic_by_id = {r.entry_id: r for r in semantic}

        grounding: list[SearchResult] = []
        seen: set[str] = set()
        for entry in recent:
            result = semantic_by_id.get(entry["id"]) or SearchResult(
                entry_id=entry["id"],
                similarity=config.temporal_threshold,
                snippet=build_snippet(entry),
                title=entry.get("title") or None,
                created_at=entry.get("created_at"),
                match_reason="Recent entry",
            )
            grounding.append(result)
            seen.add(result.entry_id)
        for result in semantic:
            if result.entry_id not in seen:
                grounding.append(result)
                seen.add(result.entry_id)
        return grounding[:cap]

    threshold = config.conversation_feed_threshold if feed else config.conversation_search_threshold
    return vector_search(
        query, user_id,
        scope=scope, limit=cap, threshold=threshold, include_own=feed,
    )


def build_context(grounding: list[SearchResult], entries: dict[str, dict]) -> str:
    """One text block per grounding entry: id, title, date, tags, relevance, content, summary."""
    blocks = []
    for result in grounding:
        entry = entries.get(result.entry_id)
        if entry is None:
            continue
        created = parse_timestamp(entry.get("created_at"))
        date_text = created.strftime("%a %b %d %Y") if created else "Unknown date"
        tags = ", ".join(entry.get("tags") or [])
        lines = [
            f"[entry:{entry['id']}] \"{entry.get('title') or 'Untitled'}\" "
            f"({date_text}, Relevance: {result.similarity * 100:.1f}%)",
            f"Tags: {tags}",
            f"Content: {entry.get('content', '')}",
        ]
        summary = AiInsights.from_stored(entry.get("ai_insights")).summary
        if summary:
            lines.append(f"Summary: {summary}")
        lines.append("---")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def _history(previous_messages: Optional[list[dict]], keep: int) -> list[dict]:
    history = []
    for message in (previous_messages or [])[-keep:] if keep > 0 else []:
        role = message.get("role")
        content = message.get("content")
        if role in ("user", "assistant") and isinstance(content, str):
            history.append({"role": role, "content": content})
    return history


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

def converse(
    query: str,
    user_id: str,
    previous_messages: Optional[list[dict]] = None,
    *,
    context: str = "search",
    now: Optional[datetime] = None,
) -> ConversationAnswer:
    """
    Answer a question about the user's journal, citing the entries used.

    Never raises for provider failures: embedding or LLM errors produce a
    fixed fallback answer with confidence 0 and no entries.
    """
    import recall
    from recall.core.store import get_entries_by_ids

    config = recall.get_config()

    try:
        grounding = retrieve_grounding(query, user_id, context=context, now=now)
    except EmbeddingError:
        logger.error("Conversational retrieval failed for %r", query, exc_info=True)
        return _fallback_answer()

    if not grounding:
        return ConversationAnswer(
            answer=NO_RESULTS_ANSWER,
            relevant_entries=[],
            confidence=NO_RESULTS_CONFIDENCE,
            total_results=0,
        )

    entries = get_entries_by_ids([r.entry_id for r in grounding])
    messages = [
        {"role": "system", "content": SYSTEM_CONTRACT + build_context(grounding, entries)},
        *_history(previous_messages, config.history_messages),
        {"role": "user", "content": query},
    ]

    logger.debug("Sending RAG request with %d grounding entries", len(grounding))
    try:
        raw = recall.get_llm().call(
            messages,
            model=config.chat_model,
            max_tokens=config.chat_max_tokens,
            source="conversation",
        )
    except Exception:
        logger.error("LLM call failed for conversational query %r", query, exc_info=True)
        return _fallback_answer()

    answer = normalize_citations((raw or "").strip() or EMPTY_REPLY_ANSWER, grounding)
    confidence = compute_confidence(grounding)

    logger.info(
        "Conversational answer: entries=%d confidence=%.3f answer_len=%d",
        len(grounding), confidence, len(answer),
    )
    return ConversationAnswer(
        answer=answer,
        relevant_entries=grounding,
        confidence=confidence,
        total_results=len(grounding),
    )
