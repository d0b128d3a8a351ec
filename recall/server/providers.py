"""
Provider adapters for the recall server.

Answers come from a chat model and entry/query vectors from an embedding
model. Each adapter satisfies the protocols in recall.protocols; the server
picks one of each from settings via create_llm / create_embed.
"""

import logging

logger = logging.getLogger(__name__)

DEFAULT_CHAT_MODELS = {
    "anthropic": "claude-haiku-4-5-20251001",
    "openai": "gpt-4o",
}
DEFAULT_EMBED_MODELS = {
    "voyage": "voyage-3-lite",
    "openai": "text-embedding-3-large",
}


def _split_system(messages: list[dict]) -> tuple[str, list[dict]]:
    """Separate the grounding contract (system turns) from the chat turns."""
    system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
    return system, [m for m in messages if m["role"] != "system"]


class AnthropicLLM:
    def __init__(self, api_key: str, default_model: str = DEFAULT_CHAT_MODELS["anthropic"]):
        import anthropic
        self._client = anthropic.Anthropic(api_key=api_key)
        self._default_model = default_model

    def call(self, messages: list[dict], model: str = "", max_tokens: int = 1024, source: str = "") -> str:
        model = model or self._default_model
        system, chat = _split_system(messages)
        logger.debug("Anthropic call: source=%s model=%s turns=%d", source, model, len(chat))
        kwargs = {"system": system} if system else {}
        response = self._client.messages.create(model=model, max_tokens=max_tokens, messages=chat, **kwargs)
        return response.content[0].text


class OpenAILLM:
    def __init__(self, api_key: str, default_model: str = DEFAULT_CHAT_MODELS["openai"]):
        from openai import OpenAI
        self._client = OpenAI(api_key=api_key)
        self._default_model = default_model

    def call(self, messages: list[dict], model: str = "", max_tokens: int = 1024, source: str = "") -> str:
        model = model or self._default_model
        logger.debug("OpenAI call: source=%s model=%s turns=%d", source, model, len(messages))
        response = self._client.chat.completions.create(model=model, max_tokens=max_tokens, messages=messages)
        # A refusal or filtered reply has no content
        return response.choices[0].message.content or ""


class VoyageEmbed:
    """Voyage embeddings. Entries and queries use separate input types."""

    def __init__(self, api_key: str, model: str = DEFAULT_EMBED_MODELS["voyage"]):
        import voyageai
        self._client = voyageai.Client(api_key=api_key)
        self._model = model

    def _embed(self, text: str, input_type: str) -> list[float]:
        return self._client.embed([text], model=self._model, input_type=input_type).embeddings[0]

    def embed(self, text: str) -> list[float]:
        return self._embed(text, "document")

    def embed_query(self, text: str) -> list[float]:
        return self._embed(text, "query")


class OpenAIEmbed:
    """OpenAI embeddings shortened to `dims`. Entries and queries share one space."""

    def __init__(self, api_key: str, model: str = DEFAULT_EMBED_MODELS["openai"], dims: int = 1536):
        from openai import OpenAI
        self._client = OpenAI(api_key=api_key)
        self._model = model
        self._dims = dims

    def embed(self, text: str) -> list[float]:
        response = self._client.embeddings.create(
            input=text, model=self._model, dimensions=self._dims, encoding_format="float",
        )
        return response.data[0].embedding

    def embed_query(self, text: str) -> list[float]:
        return self.embed(text)


def create_llm(provider: str, api_key: str, model: str = ""):
    """Build the chat provider named in settings."""
    if provider not in DEFAULT_CHAT_MODELS:
        raise ValueError(f"Unknown LLM provider: {provider}. Use one of: {', '.join(DEFAULT_CHAT_MODELS)}")
    model = model or DEFAULT_CHAT_MODELS[provider]
    if provider == "anthropic":
        return AnthropicLLM(api_key=api_key, default_model=model)
    return OpenAILLM(api_key=api_key, default_model=model)


def create_embed(provider: str, api_key: str = "", model: str = "", dims: int = 1536):
    """Build the embedding provider named in settings. `dims` applies where the model can shorten."""
    if provider not in DEFAULT_EMBED_MODELS:
        raise ValueError(f"Unknown embed provider: {provider}. Use one of: {', '.join(DEFAULT_EMBED_MODELS)}")
    model = model or DEFAULT_EMBED_MODELS[provider]
    if provider == "voyage":
        return VoyageEmbed(api_key=api_key, model=model)
    return OpenAIEmbed(api_key=api_key, model=model, dims=dims)
