"""
Name: FastAPI Application Entry Point

Responsibilities:
  - Build the FastAPI application (create_app) with metadata
  - Configure request-context middleware and exception handlers
  - Mount the chat/documents routers under the /v1 prefix
  - Restore the persisted knowledge-base snapshot on startup
  - Expose the health check endpoint

Collaborators:
  - interfaces.api.http.router: chat and documents endpoints
  - container.get_message_orchestrator: composition root
  - api.exception_handlers: CoreError -> HTTP mapping

Notes:
  - /v1 prefix allows API versioning
  - /healthz follows Kubernetes health check convention
  - Settings are validated in the lifespan, not at import time
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from ..container import get_message_orchestrator
from ..crosscutting.config import get_settings
from ..crosscutting.logger import logger
from ..crosscutting.middleware import RequestContextMiddleware
from ..interfaces.api.http.router import build_router
from .exception_handlers import register_exception_handlers


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle. Validates settings and restores the index."""
    settings = get_settings()
    restored = await get_message_orchestrator().load_index()
    logger.info(
        "Assistant API starting up",
        extra={
            "app_env": settings.app_env,
            "chunk_size": settings.chunk_size,
            "chunk_overlap": settings.chunk_overlap,
            "rag_enabled": settings.rag_enabled,
            "rag_enable_reranking": settings.rag_enable_reranking,
            "fake_llm": settings.fake_llm,
            "fake_embeddings": settings.fake_embeddings,
            "index_restored": restored,
        },
    )
    yield
    logger.info("Assistant API shutting down")


def create_app(*, with_lifespan: bool = True) -> FastAPI:
    app = FastAPI(
        title="Assistant Core API",
        version="0.1.0",
        lifespan=lifespan if with_lifespan else None,
        openapi_tags=[
            {"name": "chat", "description": "Streaming assistant turns (SSE)"},
            {"name": "documents", "description": "Knowledge base management"},
        ],
    )
    app.add_middleware(RequestContextMiddleware)
    register_exception_handlers(app)
    app.include_router(build_router(), prefix="/v1")

    @app.get("/healthz")
    def healthz():
        return {"ok": True, "env": get_settings().app_env}

    return app
