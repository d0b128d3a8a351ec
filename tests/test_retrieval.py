"""Tests for vector search, keyword search and the hybrid ranker."""

import pytest
from hypothesis import given, strategies as st

from recall.core.candidates import Scope, SearchFilters
from recall.core.db import _db
from recall.core.embeddings import EmbeddingError
from recall.core.retrieval import (
    SearchResult,
    hybrid_search,
    keyword_score,
    keyword_search,
    merge_hybrid,
    vector_search,
)


def _result(entry_id, similarity, reason="test"):
    return SearchResult(entry_id=entry_id, similarity=similarity, snippet="", match_reason=reason)


@pytest.fixture
def run_entry(make_entry):
    return make_entry(
        "alice", "Went for a 5k run in the park", title="Morning Run", tags=["fitness"],
    )


class TestVectorSearch:
    def test_finds_related_entry(self, run_entry, make_entry):
        make_entry("alice", "Baked sourdough bread", title="Baking")

        results = vector_search("morning run in the park", "alice")

        assert results[0].entry_id == run_entry
        assert results[0].match_reason.startswith("Vector similarity: ")

    def test_results_respect_threshold(self, run_entry, make_entry):
        make_entry("alice", "Baked sourdough bread", title="Baking")
        make_entry("alice", "Run club met in the park", title="Club")

        results = vector_search("park run", "alice", threshold=0.3)

        assert results
        assert all(r.similarity >= 0.3 for r in results)
        assert [r.similarity for r in results] == sorted((r.similarity for r in results), reverse=True)

    def test_wildcard_with_filter_bypasses_threshold(self, run_entry, make_entry):
        make_entry("alice", "Gym session", title="Gym", tags=["fitness"])
        make_entry("alice", "Baked sourdough bread", title="Baking", tags=["food"])

        results = vector_search("*", "alice", threshold=0.9, filters=SearchFilters(tags=["fitness"]))

        assert len(results) == 2

    def test_wildcard_without_filter_keeps_threshold(self, run_entry):
        assert vector_search("*", "alice", threshold=0.3) == []

    def test_unreadable_embedding_is_skipped(self, run_entry, make_entry):
        broken = make_entry("alice", "Another run in the park", title="Evening Run")
        with _db() as db:
            db.execute("UPDATE entries SET content_embedding = ? WHERE id = ?", ("[0.1,0.2]", broken))
            db.commit()

        results = vector_search("run in the park", "alice")

        assert [r.entry_id for r in results] == [run_entry]

    def test_embedding_failure_propagates(self, run_entry, embed):
        embed.fail = True
        with pytest.raises(EmbeddingError):
            vector_search("morning run", "alice")

    def test_wrong_dimension_query_embedding_raises(self, run_entry, embed, recall_env):
        embed.dims = recall_env.embed_dims - 1
        with pytest.raises(EmbeddingError, match="expected"):
            vector_search("morning run", "alice")

    def test_other_users_entries_excluded(self, run_entry, make_entry):
        make_entry("bob", "Went for a run in the park", title="Run", privacy="public")

        own = vector_search("run in the park", "alice")
        feed = vector_search("run in the park", "alice", scope=Scope.FEED)

        assert {r.entry_id for r in own} == {run_entry}
        assert run_entry not in {r.entry_id for r in feed}


class TestKeywordSearch:
    def test_run_matches_morning_run(self, run_entry):
        results = keyword_search("run", "alice")

        assert [r.entry_id for r in results] == [run_entry]
        assert results[0].similarity > 0

    def test_score_components(self):
        entry = {"title": "Morning Run", "content": "Went for a run", "searchable_text": "Title: Morning Run"}
        score, matched = keyword_score("run", entry)
        assert score == pytest.approx(1.0)  # 0.5 + 0.4 + 0.2 + 0.3, capped
        assert matched == ["title", "content", "searchable_text", "words"]

    def test_word_credit_only(self):
        score, matched = keyword_score("park sunrise", {"title": "", "content": "a walk in the park"})
        assert score == pytest.approx(0.3)
        assert matched == ["words"]

    def test_wildcard_and_blank_return_nothing(self, run_entry):
        assert keyword_search("*", "alice") == []
        assert keyword_search("   ", "alice") == []


class TestHybrid:
    def test_both_sources_score(self):
        merged = merge_hybrid([_result("a", 0.8)], [_result("a", 0.6)], mode="balanced")
        assert merged[0].similarity == pytest.approx(0.8 * 0.7 + 0.6 * 0.7 * 0.5)
        assert merged[0].match_reason == "Vector: test + Keyword: test"

    @pytest.mark.parametrize("mode,expected", [
        ("semantic", 0.5 * 1.0),
        ("keyword", 0.5 * 0.3),
        ("balanced", 0.5 * 0.7),
    ])
    def test_mode_weights_vector_only(self, mode, expected):
        merged = merge_hybrid([_result("a", 0.5)], [], mode=mode)
        assert merged[0].similarity == pytest.approx(expected)

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            merge_hybrid([], [], mode="fuzzy")

    def test_agreement_outranks_single_signal(self):
        merged = merge_hybrid(
            [_result("both", 0.6), _result("vector", 0.6)],
            [_result("both", 0.5), _result("keyword", 0.5)],
        )
        assert merged[0].entry_id == "both"

    @given(
        st.floats(min_value=0, max_value=1),
        st.floats(min_value=0, max_value=1),
        st.sampled_from(["semantic", "keyword", "balanced"]),
    )
    def test_keyword_match_never_lowers_score(self, vector_sim, keyword_sim, mode):
        alone = merge_hybrid([_result("a", vector_sim)], [], mode=mode)[0].similarity
        both = merge_hybrid([_result("a", vector_sim)], [_result("a", keyword_sim)], mode=mode)[0].similarity
        assert both >= alone

    def test_hybrid_search_end_to_end(self, run_entry, make_entry):
        make_entry("alice", "Baked sourdough bread", title="Baking")

        results = hybrid_search("morning run", "alice", limit=5)

        assert results[0].entry_id == run_entry
        assert "Keyword" in results[0].match_reason

    def test_degrades_to_keyword_only(self, run_entry, embed):
        embed.fail = True

        results = hybrid_search("run", "alice")

        assert [r.entry_id for r in results] == [run_entry]
        assert results[0].match_reason.startswith("Keyword: ")

    def test_limit(self, make_entry):
        for i in range(6):
            make_entry("alice", f"Run number {i} around the lake", title=f"Run {i}")
        assert len(hybrid_search("run lake", "alice", limit=3)) == 3
