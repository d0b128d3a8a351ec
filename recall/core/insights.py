"""
Entry insights and searchable text.

LLM analysis output is loosely typed, so it is validated into AiInsights at
the point it is parsed: unknown fields are ignored and malformed values fall
back to defaults. Media-derived labels and people are carried over from the
stored insights since the retrieval core does not analyze media itself.
"""

import logging
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from recall.utils import parse_llm_json

logger = logging.getLogger(__name__)

MAX_KEYWORDS = 10

ANALYSIS_PROMPT = """Analyze the following personal journal entry and return JSON insights.

Return only valid JSON in this exact format:
{
  "summary": "2-3 sentence factual summary",
  "keywords": ["keyword1", "keyword2"],
  "entities": ["people, places, organizations or things mentioned"],
  "sentiment": "positive" | "negative" | "neutral",
  "themes": ["broader life themes"],
  "emotions": ["specific emotions expressed"]
}

Entry:
"""


class AiInsights(BaseModel):
    """Derived analysis of an entry. Every dimension is optional with a default."""

    model_config = ConfigDict(extra="ignore")

    summary: str = ""
    keywords: list[str] = []
    entities: list[str] = []
    labels: list[str] = []
    people: list[str] = []
    sentiment: Literal["positive", "neutral", "negative"] = "neutral"
    themes: list[str] = []
    emotions: list[str] = []

    @field_validator("keywords", "entities", "labels", "people", "themes", "emotions", mode="before")
    @classmethod
    def _string_list(cls, value):
        if not isinstance(value, list):
            return []
        return [str(v).strip() for v in value if isinstance(v, (str, int, float)) and str(v).strip()]

    @field_validator("summary", mode="before")
    @classmethod
    def _summary(cls, value):
        return value if isinstance(value, str) else ""

    @field_validator("sentiment", mode="before")
    @classmethod
    def _sentiment(cls, value):
        if isinstance(value, str) and value.strip().lower() in ("positive", "neutral", "negative"):
            return value.strip().lower()
        return "neutral"

    @classmethod
    def from_llm(cls, content: str) -> Optional["AiInsights"]:
        """Parse an LLM reply. None when no JSON object can be recovered."""
        data = parse_llm_json(content)
        if not isinstance(data, dict):
            return None
        return cls.model_validate(data)

    @classmethod
    def from_stored(cls, data) -> "AiInsights":
        if isinstance(data, dict):
            return cls.model_validate(data)
        return cls()


def build_searchable_text(
    title: Optional[str],
    content: str,
    tags: Optional[list[str]] = None,
    ai_insights=None,
) -> str:
    """Title, content, tags and media-derived labels/people as one text."""
    text = content or ""
    if title:
        text = f"Title: {title}\n\n{text}"
    if tags:
        text = f"{text}\n\nTags: {', '.join(tags)}"

    insights = ai_insights if isinstance(ai_insights, AiInsights) else AiInsights.from_stored(ai_insights)
    media_text = " ".join(insights.labels + insights.people)
    if media_text.strip():
        text = f"{text} {media_text}"
    return text


def analyze_entry(entry: dict) -> AiInsights:
    """
    Ask the LLM for insights on an entry. Best-effort.

    On any failure the previously stored media labels/people are kept and
    the text dimensions are left empty.
    """
    import recall

    config = recall.get_config()
    stored = AiInsights.from_stored(entry.get("ai_insights"))

    text = build_searchable_text(entry.get("title"), entry.get("content", ""), entry.get("tags"))
    messages = [
        {
            "role": "system",
            "content": "You analyze personal journal entries and answer only with JSON.",
        },
        {"role": "user", "content": ANALYSIS_PROMPT + text},
    ]

    try:
        reply = recall.get_llm().call(
            messages,
            model=config.insights_model,
            max_tokens=config.insights_max_tokens,
            source="entry-insights",
        )
    except Exception:
        logger.warning("Insights analysis failed for entry %s", entry.get("id"), exc_info=True)
        return AiInsights(labels=stored.labels, people=stored.people)

    parsed = AiInsights.from_llm(reply)
    if parsed is None:
        logger.warning("Unparseable insights for entry %s", entry.get("id"))
        return AiInsights(labels=stored.labels, people=stored.people)

    keywords = (parsed.keywords + stored.labels[:3])[:MAX_KEYWORDS]
    return parsed.model_copy(update={
        "keywords": keywords,
        "labels": stored.labels,
        "people": stored.people,
    })
