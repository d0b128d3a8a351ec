"""Server configuration via environment variables."""

from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """recall-server configuration. All values from env vars or .env file."""

    # Server
    host: str = "127.0.0.1"
    port: int = 18791
    log_level: str = "info"

    # Auth
    api_key: str = ""  # empty = no auth required

    # Journal database
    db_path: str = "recall.db"
    embed_dims: int = 1536

    # LLM provider: "openai" or "anthropic"
    llm_provider: str = "openai"
    llm_api_key: str = ""
    llm_model: str = "gpt-4o"

    # Embedding provider: "openai" or "voyage"
    embed_provider: str = "openai"
    embed_api_key: str = ""
    embed_model: str = "text-embedding-3-large"

    # Retrieval tuning
    search_threshold: float = 0.3
    feed_threshold: float = 0.15
    analyze_entries: bool = True

    model_config = {"env_prefix": "RECALL_", "env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def db_path_resolved(self) -> Path:
        return Path(self.db_path).resolve()


# Singleton: import this everywhere instead of creating new Settings()
settings = Settings()
