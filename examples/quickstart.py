"""
recall quickstart: write journal entries, search them, ask a grounded question.

This example uses mock providers so you can run it without any API keys or
embedding models. In production, you'd swap these for real providers
(see the EmbedProvider and LLMProvider protocols in recall/protocols.py).

    python examples/quickstart.py
"""

import re
import tempfile
from datetime import timedelta
from pathlib import Path

import recall
from recall.config import RecallConfig


# -- Step 0: Implement the two provider protocols ---------------------------
# recall doesn't bundle an LLM or embedding model. You bring your own.
# These mocks let you run the example without any external dependencies.

class LocalEmbedProvider:
    """Bag-of-words embeddings for demo purposes. Not useful for real retrieval."""

    def __init__(self, dims: int = 256):
        self.dims = dims
        self._vocab: dict[str, int] = {}

    def embed(self, text: str) -> list[float]:
        vec = [0.0] * self.dims
        for word in re.findall(r"[a-z0-9]+", text.lower()):
            vec[self._vocab.setdefault(word, len(self._vocab) % self.dims)] += 1.0
        return vec

    def embed_query(self, text: str) -> list[float]:
        return self.embed(text)


class LocalLLMProvider:
    """Stub LLM that cites the first entry in its context by title."""

    def call(self, messages, model, max_tokens, source=""):
        match = re.search(r'\[entry:[^\]]+\] "([^"]+)"', messages[0]["content"])
        if not match:
            return "{}"
        return f'You wrote about this in [entry: "{match.group(1)}"].'


# -- Step 1: Initialize recall ----------------------------------------------

with tempfile.TemporaryDirectory() as tmp:
    db_path = Path(tmp) / "journal.db"

    config = RecallConfig(
        db_path=db_path,
        embed_dims=256,
        analyze_entries=False,
        batch_delay_seconds=0,
    )

    recall.init(
        config=config,
        llm=LocalLLMProvider(),
        embed=LocalEmbedProvider(dims=256),
    )

    # -- Step 2: Write some entries -----------------------------------------

    from recall.core.db import utcnow
    from recall.core.store import add_like, create_entry

    now = utcnow()
    create_entry("alice", "Went for a 5k run in the park before work", title="Morning Run",
                 tags=["fitness"], created_at=now - timedelta(days=3))
    create_entry("alice", "Swam out to the island and back", title="Trip to the lake",
                 tags=["summer"], created_at=now - timedelta(days=12))
    create_entry("alice", "Finally finished the novel I started in spring", title="Reading",
                 created_at=now - timedelta(days=40))
    pottery = create_entry("bob", "Made my first bowl on the wheel", title="Pottery class",
                           privacy="public", created_at=now - timedelta(days=1))
    add_like(pottery, "carol")

    # Entries can be written before an embedding is available and caught up later
    create_entry("alice", "Quiet evening, tea and rain", title="Evening", embed=False)

    print("Wrote 5 entries.\n")

    # -- Step 3: Catch up missing embeddings --------------------------------

    from recall.lifecycle.embedding_worker import get_embedding_processor
    from recall.core.store import embedding_status

    print("Sweep:", get_embedding_processor().process_missing_embeddings(user_id="alice"))
    print("Coverage:", embedding_status("alice"), "\n")

    # -- Step 4: Search -----------------------------------------------------

    from recall.core.candidates import SearchFilters
    from recall.core.search import search

    for query, kwargs in [
        ("morning run", {}),
        ("run", {"mode": "keyword"}),
        ("*", {"mode": "vector", "filters": SearchFilters(tags=["summer"])}),
        ("what's new this week", {"context": "feed"}),
    ]:
        response = search(query, "alice", **kwargs)
        print(f"Query: {query!r} {kwargs or ''}")
        for result in response["results"]:
            print(f"  {result['similarity']:.3f}  {result['title']}  ({result['match_reason']})")
        print()

    # -- Step 5: Ask a grounded question ------------------------------------

    from recall.core.conversation import converse

    answer = converse("when did I go for a run in the park", "alice")
    print("Answer:", answer.answer)
    print(f"Confidence: {answer.confidence:.2f} from {answer.total_results} entries")

    get_embedding_processor().stop()
