"""Tests for temporal query classification."""

import pytest

from recall.core.temporal import is_temporal_query


@pytest.mark.parametrize("query", [
    "what's new this week",
    "What have my friends been up to lately?",
    "anything from yesterday",
    "latest posts",
    "how was everyone's weekend, this weekend",
    "what happened in the last 3 days",
    "posts from the past few days",
    "since last friday",
    "2 weeks ago",
])
def test_temporal(query):
    assert is_temporal_query(query)


@pytest.mark.parametrize("query", [
    "how did I feel about my new job",
    "morning run",
    "trip to the lake",
    "weekly planning notes",
    "",
    "   ",
])
def test_not_temporal(query):
    assert not is_temporal_query(query)
