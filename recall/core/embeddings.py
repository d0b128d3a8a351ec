"""
Embedding client.

Turns text into a fixed-length vector through the configured EmbedProvider.
No retries here: retry/delay policy belongs to the caller.
"""

import logging

logger = logging.getLogger(__name__)


class EmbeddingError(RuntimeError):
    """Embedding could not be generated. Callers must not persist a vector."""


def _checked(vec, text: str) -> list[float]:
    import recall

    if not vec:
        raise EmbeddingError("No embedding returned from provider")
    expected = recall.get_config().embed_dims
    if len(vec) != expected:
        raise EmbeddingError(f"Provider returned {len(vec)}d embedding, expected {expected}d")
    logger.debug("Generated %dd embedding for text length %d", len(vec), len(text))
    return [float(x) for x in vec]


def get_embedding(text: str) -> list[float]:
    """Get embedding vector for an entry's searchable text."""
    import recall

    if not text or not text.strip():
        raise EmbeddingError("Text content is required for embedding generation")
    try:
        vec = recall.get_embed().embed(text.strip())
    except EmbeddingError:
        raise
    except Exception as exc:
        raise EmbeddingError(f"Failed to generate text embedding: {exc}") from exc
    return _checked(vec, text)


def get_query_embedding(text: str) -> list[float]:
    """Get embedding vector for a search query (may use a query input type)."""
    import recall

    if not text or not text.strip():
        raise EmbeddingError("Query text is required for embedding generation")
    try:
        vec = recall.get_embed().embed_query(text.strip())
    except EmbeddingError:
        raise
    except Exception as exc:
        raise EmbeddingError(f"Failed to generate query embedding: {exc}") from exc
    return _checked(vec, text)
