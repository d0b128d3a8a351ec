"""Tests for the embedding maintenance processor."""

import json
import threading

import pytest

from recall.core.store import embedding_status, get_entry, update_entry_text
from recall.lifecycle.embedding_worker import EmbeddingProcessor, get_embedding_processor


@pytest.fixture
def processor(recall_env):
    proc = EmbeddingProcessor()
    yield proc
    proc.stop()


class TestProcessMissing:
    def test_embeds_missing_entries(self, make_entry, processor):
        ids = [make_entry("alice", f"Entry number {i}", embed=False) for i in range(3)]

        result = processor.process_missing_embeddings(user_id="alice")

        assert result == {"processed": 3, "errors": 0, "total_found": 3}
        assert all(get_entry(i)["content_embedding"] for i in ids)
        assert embedding_status("alice")["coverage_percent"] == 100.0

    def test_error_counted_and_loop_continues(self, make_entry, processor, embed):
        bad = make_entry("alice", "poison ivy rash", embed=False)
        good = make_entry("alice", "fine day at the beach", embed=False)
        embed.fail_on = "poison"

        result = processor.process_missing_embeddings(user_id="alice")

        assert result == {"processed": 1, "errors": 1, "total_found": 2}
        assert get_entry(bad)["content_embedding"] is None
        assert get_entry(good)["content_embedding"] is not None

    def test_scoped_to_user_and_limited(self, make_entry, processor):
        for i in range(4):
            make_entry("alice", f"Alice entry {i}", embed=False)
        bob = make_entry("bob", "Bob entry", embed=False)

        result = processor.process_missing_embeddings(user_id="alice", limit=2)

        assert result["total_found"] == 2
        assert embedding_status("alice")["needs_processing"] == 2
        assert get_entry(bob)["content_embedding"] is None

    def test_nothing_to_do(self, make_entry, processor):
        make_entry("alice", "Already embedded")
        assert processor.process_missing_embeddings() == {"processed": 0, "errors": 0, "total_found": 0}


class TestProcessEntry:
    def test_skips_recently_embedded(self, make_entry, processor, embed):
        entry_id = make_entry("alice", "Fresh entry")
        calls = embed.calls

        assert processor.process_entry(entry_id) is False
        assert embed.calls == calls

    def test_new_embedding_version_is_not_skipped(self, make_entry, processor, recall_env):
        entry_id = make_entry("alice", "Fresh entry")
        recall_env.embedding_version = "v2"

        assert processor.process_entry(entry_id) is True
        assert get_entry(entry_id)["embedding_version"] == "v2"

    def test_edit_during_embedding_discards_stale_vector(self, make_entry, processor, embed):
        entry_id = make_entry("alice", "old walk by the river", embed=False)
        embed.on_embed = lambda text: update_entry_text(entry_id, content="new trip to the mountains")

        assert processor.process_entry(entry_id) is False

        entry = get_entry(entry_id)
        assert entry["content_embedding"] is None
        assert "new trip to the mountains" in entry["searchable_text"]

    def test_unknown_entry(self, processor):
        with pytest.raises(LookupError):
            processor.process_entry("missing")

    def test_stores_analysis(self, make_entry, processor, recall_env, llm):
        recall_env.analyze_entries = True
        llm.reply = json.dumps({"summary": "A calm walk.", "keywords": ["walk"], "sentiment": "positive"})
        entry_id = make_entry(
            "alice", "Walked along the river", title="Walk", embed=False,
            ai_insights={"labels": ["river"], "people": ["Sam"]},
        )

        assert processor.process_entry(entry_id) is True

        entry = get_entry(entry_id)
        assert entry["ai_insights"]["summary"] == "A calm walk."
        assert entry["ai_insights"]["keywords"] == ["walk", "river"]
        assert entry["searchable_text"] == "Title: Walk\n\nWalked along the river river Sam"


class TestQueue:
    def test_enqueue_is_idempotent(self, make_entry, processor, embed):
        blocker = make_entry("bob", "blocker entry", embed=False)
        entry_id = make_entry("alice", "Queued entry", embed=False)
        busy = threading.Event()
        release = threading.Event()

        def hold(text):
            if "blocker" in text:
                busy.set()
                release.wait(timeout=5)

        embed.on_embed = hold
        processor.queue_entry(blocker)
        assert busy.wait(timeout=5)

        assert processor.queue_entry(entry_id) is True
        assert processor.queue_entry(entry_id) is False
        assert processor.pending_count() == 1

        release.set()
        processor.join()
        assert processor.pending_count() == 0
        assert get_entry(entry_id)["content_embedding"] is not None

    def test_drains_in_background(self, make_entry, processor):
        entry_id = make_entry("alice", "Queued entry", embed=False)

        assert processor.queue_entry(entry_id) is True
        processor.join()

        assert get_entry(entry_id)["content_embedding"] is not None
        assert processor.pending_count() == 0

    def test_failure_does_not_stop_draining(self, make_entry, processor, embed):
        bad = make_entry("alice", "poison entry", embed=False)
        good = make_entry("alice", "good entry", embed=False)
        embed.fail_on = "poison"

        processor.queue_entry(bad)
        processor.queue_entry(good)
        processor.join()

        assert get_entry(bad)["content_embedding"] is None
        assert get_entry(good)["content_embedding"] is not None

    def test_edit_while_embedding_is_requeued(self, make_entry, processor, embed):
        entry_id = make_entry("alice", "old walk by the river", embed=False)
        requeued = []

        def edit_once(text):
            if "old walk" in text and not requeued:
                update_entry_text(entry_id, content="new trip to the mountains")
                requeued.append(processor.queue_entry(entry_id))

        embed.on_embed = edit_once
        processor.queue_entry(entry_id)
        processor.join()

        entry = get_entry(entry_id)
        assert requeued == [True]
        assert entry["content"] == "new trip to the mountains"
        assert "old walk" not in entry["searchable_text"]
        assert "new trip to the mountains" in entry["searchable_text"]
        assert entry["content_embedding"] is not None

    def test_enqueue_after_stop_restarts(self, make_entry, processor):
        first = make_entry("alice", "First entry", embed=False)
        second = make_entry("alice", "Second entry", embed=False)
        processor.queue_entry(first)
        processor.join()
        processor.stop()

        assert processor.queue_entry(second) is True
        processor.join()

        assert get_entry(second)["content_embedding"] is not None
        assert processor.pending_count() == 0

    def test_reprocess_all(self, make_entry, processor):
        for i in range(3):
            make_entry("alice", f"Entry {i}")
        make_entry("bob", "Bob's entry")

        assert processor.reprocess_all("alice") == 3
        processor.join()
        assert processor.pending_count() == 0


def test_singleton(recall_env):
    assert get_embedding_processor() is get_embedding_processor()
