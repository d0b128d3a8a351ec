"""
recall: retrieval core for a personal journal.

Embeds entries, searches them semantically and lexically, ranks feed results,
collapses near-duplicates, and answers questions grounded in cited entries.

Usage:
    import recall
    from recall.config import RecallConfig

    config = RecallConfig(db_path=Path("data/journal.db"))
    recall.init(config, llm=my_llm_provider, embed=my_embed_provider)

    # Now use recall.core.search, recall.core.conversation, etc.
"""

import logging
import threading

from recall.config import RecallConfig
from recall.protocols import LLMProvider, EmbedProvider

__version__ = "0.1.0"

_log = logging.getLogger(__name__)

_config: RecallConfig | None = None
_llm: LLMProvider | None = None
_embed: EmbedProvider | None = None
_initialized: bool = False
_init_lock = threading.Lock()


def init(
    config: RecallConfig,
    llm: LLMProvider,
    embed: EmbedProvider,
) -> None:
    """
    Initialize recall with configuration and providers.

    Must be called before using any recall functionality.

    Args:
        config: Database path, model names, thresholds and queue tuning
        llm: Provider for LLM calls (conversational answers, entry insights)
        embed: Provider for text embeddings
    """
    global _config, _llm, _embed, _initialized

    with _init_lock:
        _config = config
        _llm = llm
        _embed = embed
        _initialized = True

    _validate_embed(embed, config)

    # Schema setup does its own connection handling
    from recall.core.db import init_db
    init_db()

    _log.info(
        "recall initialized: db=%s, embed_dims=%d, embedding_version=%s",
        config.db_path, config.embed_dims, config.embedding_version,
    )


def _validate_embed(embed: EmbedProvider, config: RecallConfig) -> None:
    """Check that the provider returns vectors matching config expectations."""
    try:
        vec = embed.embed("recall validation")
    except Exception as exc:
        raise RuntimeError(
            f"Embedding provider failed validation call: {exc}"
        ) from exc

    if len(vec) != config.embed_dims:
        raise ValueError(
            f"Embedding dimension mismatch: provider returned {len(vec)}d "
            f"but config.embed_dims={config.embed_dims}. "
            f"Either change config.embed_dims or fix the provider."
        )


def get_config() -> RecallConfig:
    """Get the current config. Raises if not initialized."""
    if not _initialized or _config is None:
        raise RuntimeError("recall not initialized. Call recall.init() first.")
    return _config


def get_llm() -> LLMProvider:
    """Get the LLM provider. Raises if not initialized."""
    if not _initialized or _llm is None:
        raise RuntimeError("recall not initialized. Call recall.init() first.")
    return _llm


def get_embed() -> EmbedProvider:
    """Get the embedding provider. Raises if not initialized."""
    if not _initialized or _embed is None:
        raise RuntimeError("recall not initialized. Call recall.init() first.")
    return _embed
