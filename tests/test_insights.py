"""Tests for entry insights parsing, analysis and searchable text."""

import json

import pytest

from recall.core.insights import AiInsights, analyze_entry, build_searchable_text


def _fenced(**fields) -> str:
    return "```json\n" + json.dumps(fields) + "\n```"


class TestAiInsights:
    def test_from_fenced_reply(self):
        insights = AiInsights.from_llm(_fenced(summary="A run.", keywords=["run"], sentiment="Positive"))
        assert insights.summary == "A run."
        assert insights.keywords == ["run"]
        assert insights.sentiment == "positive"

    def test_unparseable_reply(self):
        assert AiInsights.from_llm("I'd rather not.") is None
        assert AiInsights.from_llm("") is None
        assert AiInsights.from_llm('["not", "an", "object"]') is None

    def test_malformed_fields_fall_back_to_defaults(self):
        insights = AiInsights.from_llm(json.dumps({
            "summary": 42,
            "keywords": "run",
            "entities": ["Park", "", None, 5],
            "sentiment": "ecstatic",
            "mood_score": 9,
        }))
        assert insights.summary == ""
        assert insights.keywords == []
        assert insights.entities == ["Park", "5"]
        assert insights.sentiment == "neutral"

    def test_from_stored(self):
        assert AiInsights.from_stored(None) == AiInsights()
        assert AiInsights.from_stored({"labels": ["dog"]}).labels == ["dog"]


class TestSearchableText:
    def test_full(self):
        text = build_searchable_text(
            "Beach day", "Sun and sand", ["summer", "family"],
            {"labels": ["beach", "dog"], "people": ["Sam"]},
        )
        assert text == "Title: Beach day\n\nSun and sand\n\nTags: summer, family beach dog Sam"

    def test_content_only(self):
        assert build_searchable_text(None, "Just content") == "Just content"


class TestAnalyzeEntry:
    @pytest.fixture
    def entry(self):
        return {
            "id": "entry-1",
            "title": "Beach day",
            "content": "Sun and sand with Sam",
            "tags": ["summer"],
            "ai_insights": {"labels": ["beach", "dog", "sunset", "towel"], "people": ["Sam"]},
        }

    def test_merges_media_labels(self, recall_env, llm, entry):
        llm.reply = _fenced(summary="A beach day with Sam.", keywords=["beach", "sun"], themes=["family"])

        insights = analyze_entry(entry)

        assert insights.summary == "A beach day with Sam."
        assert insights.keywords == ["beach", "sun", "beach", "dog", "sunset"]
        assert insights.labels == ["beach", "dog", "sunset", "towel"]
        assert insights.people == ["Sam"]
        assert llm.calls[0]["source"] == "entry-insights"

    def test_llm_failure_keeps_media_fields(self, recall_env, llm, entry):
        llm.fail = True

        insights = analyze_entry(entry)

        assert insights.summary == ""
        assert insights.labels == ["beach", "dog", "sunset", "towel"]
        assert insights.people == ["Sam"]

    def test_garbage_reply_keeps_media_fields(self, recall_env, llm, entry):
        llm.reply = "Sure! Here are some thoughts."

        insights = analyze_entry(entry)

        assert insights.keywords == []
        assert insights.people == ["Sam"]
