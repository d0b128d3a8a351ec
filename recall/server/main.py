"""recall-server: HTTP API for the journal retrieval core."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI

from recall.server.auth import require_auth
from recall.server.config import settings

logger = logging.getLogger("recall_server")


def _init_recall():
    """Initialize recall with configured providers."""
    import recall
    from recall.config import RecallConfig
    from recall.server.providers import create_llm, create_embed

    config = RecallConfig(
        db_path=Path(settings.db_path).resolve(),
        embed_dims=settings.embed_dims,
        embed_model=settings.embed_model,
        chat_model=settings.llm_model,
        insights_model=settings.llm_model,
        analyze_entries=settings.analyze_entries,
        search_threshold=settings.search_threshold,
        feed_threshold=settings.feed_threshold,
    )

    llm = create_llm(settings.llm_provider, settings.llm_api_key, settings.llm_model)
    embed = create_embed(
        settings.embed_provider,
        api_key=settings.embed_api_key,
        model=settings.embed_model,
        dims=settings.embed_dims,
    )

    recall.init(config=config, llm=llm, embed=embed)
    logger.info(
        "recall initialized: db=%s, embed_dims=%d, llm=%s, embed=%s/%s",
        config.db_path, config.embed_dims, settings.llm_provider,
        settings.embed_provider, settings.embed_model,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    _init_recall()
    logger.info("recall-server ready on %s:%d", settings.host, settings.port)
    yield
    from recall.lifecycle.embedding_worker import get_embedding_processor
    get_embedding_processor().stop()
    logger.info("recall-server shutting down")


app = FastAPI(
    title="recall-server",
    description="HTTP API for journal search and grounded conversation",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if not settings.api_key else None,
    openapi_url="/openapi.json" if not settings.api_key else None,
)


# --- Register routers ---

from recall.server.routers import search, embeddings, health  # noqa: E402

# Protected routers: auth enforced via dependency injection
app.include_router(
    search.router, prefix="/v1/search", tags=["search"],
    dependencies=[Depends(require_auth)],
)
app.include_router(
    embeddings.router, prefix="/v1/embeddings", tags=["embeddings"],
    dependencies=[Depends(require_auth)],
)

# Health router: /health is public, /stats is protected at the route level
app.include_router(health.router, prefix="/v1", tags=["health"])


def run():
    """Entry point for `recall-server` CLI command."""
    import uvicorn

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    uvicorn.run(
        "recall.server.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    run()
