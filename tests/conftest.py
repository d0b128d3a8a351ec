"""
Shared fixtures: a fresh sqlite journal per test and deterministic mock providers.

No API keys needed. Runs via: pytest tests/ -v
"""

import re
import threading
from datetime import timedelta

import pytest


# ============================================================================
# MOCK PROVIDERS
# ============================================================================

class MockEmbedProvider:
    """Bag-of-words vectors over a growing vocabulary.

    Every new word gets the next dimension, so texts sharing words have
    positive cosine similarity and texts sharing none score exactly zero.
    """

    def __init__(self, dims=256):
        self.dims = dims
        self.calls = 0
        self.fail = False
        self.fail_on = None  # substring that makes embed() raise
        self.on_embed = None  # callable(text) run before each embedding
        self._vocab: dict[str, int] = {}
        self._lock = threading.Lock()

    def embed(self, text: str) -> list[float]:
        if self.on_embed:
            self.on_embed(text)
        if self.fail or (self.fail_on and self.fail_on in text):
            raise ConnectionError("embedding service unavailable")
        vec = [0.0] * self.dims
        with self._lock:
            self.calls += 1
            for word in re.findall(r"[a-z0-9]+", text.lower()):
                index = self._vocab.setdefault(word, len(self._vocab) % self.dims)
                vec[index] += 1.0
        return vec

    def embed_query(self, text: str) -> list[float]:
        return self.embed(text)


class MockLLMProvider:
    """Records every call; replies with `reply` or raises when `fail` is set."""

    def __init__(self, reply="No matching entries."):
        self.reply = reply
        self.fail = False
        self.calls: list[dict] = []

    def call(self, messages, model="", max_tokens=1024, source=""):
        self.calls.append({"messages": messages, "model": model, "source": source})
        if self.fail:
            raise TimeoutError("LLM request timed out")
        return self.reply


# ============================================================================
# FIXTURES
# ============================================================================

def _reset_recall():
    import recall
    from recall.lifecycle import embedding_worker

    if embedding_worker._processor is not None:
        embedding_worker._processor.stop()
        embedding_worker._processor = None

    recall._config = None
    recall._llm = None
    recall._embed = None
    recall._initialized = False


@pytest.fixture
def embed():
    return MockEmbedProvider()


@pytest.fixture
def llm():
    return MockLLMProvider()


@pytest.fixture
def recall_env(tmp_path, llm, embed):
    """recall initialized against a temporary database. Yields the config."""
    import recall
    from recall.config import RecallConfig

    _reset_recall()
    config = RecallConfig(
        db_path=tmp_path / "journal.db",
        embed_dims=embed.dims,
        chat_model="test-model",
        insights_model="test-model",
        analyze_entries=False,
        queue_delay_seconds=0,
        batch_delay_seconds=0,
    )
    recall.init(config=config, llm=llm, embed=embed)
    yield config
    _reset_recall()


@pytest.fixture
def make_entry(recall_env):
    """Factory: create an entry, `days_ago` sets its creation time."""
    from recall.core.db import utcnow
    from recall.core.store import create_entry

    def _make(user_id="alice", content="", title=None, days_ago=0, hours_ago=0, **kwargs):
        created_at = utcnow() - timedelta(days=days_ago, hours=hours_ago)
        return create_entry(user_id, content, title=title, created_at=created_at, **kwargs)

    return _make
