"""
FastAPI Application Entry Point

Builds the provider gateway, message store, retrieval engine and stream
orchestrator at startup, and drains every active stream on shutdown so no
placeholder is left in ``streaming`` state across a graceful restart.
"""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from chatstream.api.errors import register_exception_handlers
from chatstream.api.routes.chat import router as chat_router
from chatstream.api.routes.documents import router as documents_router
from chatstream.api.routes.health import router as health_router
from chatstream.core.config.constants import HEADER_REQUEST_ID
from chatstream.core.config.settings import Settings, get_settings
from chatstream.core.logging import clear_request_id, get_logger, set_request_id, setup_logging
from chatstream.core.observability import get_metrics_collector
from chatstream.llm_stream.providers import build_gateway
from chatstream.llm_stream.services import (
    ContextAssembler,
    ContextBudget,
    StreamOrchestrator,
    StreamRegistry,
    TitleGenerator,
)
from chatstream.persistence import InMemoryMessageStore, MessageStore, RedisMessageStore
from chatstream.retrieval import GeminiEmbeddingProvider, InMemoryChunkRepository, RetrievalEngine

logger = get_logger(__name__)


def build_store(settings: Settings) -> MessageStore:
    if settings.STORE_BACKEND == "redis":
        return RedisMessageStore.from_settings(settings)
    return InMemoryMessageStore()


def build_retrieval(settings: Settings) -> RetrievalEngine | None:
    """Retrieval needs Gemini embeddings; without a key, document search is off."""
    if not settings.GEMINI_API_KEY:
        return None
    embedder = GeminiEmbeddingProvider(
        api_key=settings.GEMINI_API_KEY,
        model=settings.GEMINI_EMBEDDING_MODEL,
        max_retries=settings.EMBEDDING_MAX_RETRIES,
        batch_concurrency=settings.EMBEDDING_BATCH_CONCURRENCY,
    )
    return RetrievalEngine(embedder, InMemoryChunkRepository(), top_k=settings.RAG_TOP_K)


def build_orchestrator(settings: Settings) -> StreamOrchestrator:
    """
    Wire the orchestrator and its collaborators from settings.

    Raises:
        ConfigurationError: Unknown provider or missing credentials
    """
    metrics = get_metrics_collector()
    gateway = build_gateway(settings)
    return StreamOrchestrator(
        gateway=gateway,
        store=build_store(settings),
        registry=StreamRegistry(metrics),
        assembler=ContextAssembler(
            ContextBudget(
                max_tokens=settings.MAX_CONTEXT_TOKENS,
                reserve_tokens=settings.RESPONSE_RESERVE_TOKENS,
            )
        ),
        retrieval=build_retrieval(settings),
        title_generator=TitleGenerator(gateway.primary),
        metrics=metrics,
        rag_top_k=settings.RAG_TOP_K,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle (startup and shutdown).

    An orchestrator already placed on ``app.state`` (tests) is used as is.
    """
    settings: Settings = app.state.settings
    setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)

    logger.info(
        "Starting chat stream service",
        environment=settings.app.ENVIRONMENT,
        version=settings.app.APP_VERSION,
        provider=settings.LLM_PROVIDER,
        store=settings.STORE_BACKEND,
    )

    if getattr(app.state, "orchestrator", None) is None:
        app.state.orchestrator = build_orchestrator(settings)
    orchestrator: StreamOrchestrator = app.state.orchestrator
    logger.info("Application startup complete")

    try:
        yield
    finally:
        logger.info("Shutting down application", active_streams=orchestrator.registry.active_count)
        await orchestrator.registry.shutdown()
        await orchestrator.store.close()
        logger.info("Application shutdown complete")


def create_app(
    settings: Settings | None = None,
    orchestrator: StreamOrchestrator | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Defaults to the global settings
        orchestrator: Pre-built orchestrator; built from settings at startup if omitted
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Streaming chat orchestration with provider failover",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[HEADER_REQUEST_ID],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Inject a request ID into every request for log correlation."""
        request_id = request.headers.get(HEADER_REQUEST_ID) or str(uuid.uuid4())
        set_request_id(request_id)
        try:
            response = await call_next(request)
            response.headers.setdefault(HEADER_REQUEST_ID, request_id)
            return response
        finally:
            clear_request_id()

    register_exception_handlers(app)
    app.include_router(health_router)
    app.include_router(chat_router)
    app.include_router(documents_router)

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "chatstream.app:create_app",
        factory=True,
        host=settings.app.API_HOST,
        port=settings.app.API_PORT,
        reload=settings.app.ENVIRONMENT == "development",
        log_level=settings.logging.LOG_LEVEL.lower(),
    )
