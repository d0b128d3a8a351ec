"""
Provider protocols for dependency injection.

Host applications implement these and pass them to recall.init().
The core never imports LLM or embedding libraries directly; concrete
providers live in recall.server.providers.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class LLMProvider(Protocol):
    """Provider for LLM calls (conversational answers, entry insights)."""

    def call(
        self,
        messages: list[dict],
        model: str,
        max_tokens: int,
        source: str = "",
    ) -> str:
        """
        Call an LLM and return the text response.

        Args:
            messages: Chat messages. The first may carry role "system".
            model: Model identifier (e.g., "gpt-4o")
            max_tokens: Maximum tokens in response
            source: Label for tracking/billing (e.g., "conversation")

        Returns:
            The text content of the LLM response.
        """
        ...


@runtime_checkable
class EmbedProvider(Protocol):
    """Provider for text embeddings (entries and search queries)."""

    def embed(self, text: str) -> list[float]:
        """
        Get embedding vector for an entry's searchable text.

        Args:
            text: The text to embed

        Returns:
            Embedding vector as list of floats
        """
        ...

    def embed_query(self, text: str) -> list[float]:
        """
        Get embedding vector for a search query.

        Some models use different input types for queries vs documents.
        Default implementation falls back to embed().
        """
        return self.embed(text)
