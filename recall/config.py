"""
recall configuration.

All paths, model names, thresholds and tuning parameters are set here.
No hardcoded values in the rest of the package.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass
class RecallConfig:
    """Configuration for the recall retrieval core."""

    # Database
    db_path: Path

    # Embedding
    embed_dims: int = 1536
    embed_model: str = "text-embedding-3-large"
    embedding_version: str = "v1"  # stamped on every stored vector

    # Models (passed to LLMProvider.call, the provider decides how to route)
    chat_model: str = "gpt-4o"
    chat_max_tokens: int = 500
    insights_model: str = "gpt-4o"
    insights_max_tokens: int = 800
    analyze_entries: bool = True  # run LLM insights before (re)embedding

    # Similarity thresholds. Search page is stricter than feed.
    search_threshold: float = 0.3
    feed_threshold: float = 0.15
    hybrid_threshold: float = 0.15
    conversation_search_threshold: float = 0.25
    conversation_feed_threshold: float = 0.15
    temporal_threshold: float = 0.1

    # Snippets
    snippet_length: int = 200

    # Conversational grounding
    max_grounding_entries: int = 8
    recent_grounding_entries: int = 5
    recent_window_days: int = 30
    history_messages: int = 3

    # Feed ranking
    interaction_window_days: int = 7
    interaction_boost: float = 1.3

    # Clustering
    cluster_window_hours: int = 72
    cluster_title_overlap: float = 0.4
    cluster_score_ratio: float = 0.85
    cluster_max_results: int = 10

    # Embedding maintenance processor
    queue_delay_seconds: float = 0.1
    batch_delay_seconds: float = 0.2
    skip_recent_update_hours: float = 1.0
    queue_maxsize: int = 1000
