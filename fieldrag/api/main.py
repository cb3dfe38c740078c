"""FastAPI application entrypoint for FieldRAG."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fieldrag.api.middleware.logging import LoggingMiddleware
from fieldrag.api.routes import search
from fieldrag.core.config import settings
from fieldrag.core.exceptions import (
    ApplicationError,
    EmbeddingFailure,
    FieldRAGError,
    QueryEmbeddingFailure,
)
from fieldrag.core.logging import configure_logging
from fieldrag.core.observability import setup_tracing
from fieldrag.knowledge.service import RetrievalService, build_retrieval_service

logger = logging.getLogger(__name__)

_UPSTREAM_FAILURES = (EmbeddingFailure, QueryEmbeddingFailure)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Restore the corpus on startup and flush pending sink writes on shutdown."""

    service: RetrievalService = app.state.retrieval_service
    await service.startup()
    try:
        yield
    finally:
        await service.shutdown()


def create_app(service: Optional[RetrievalService] = None) -> FastAPI:
    configure_logging()
    app = FastAPI(
        title=settings.API_TITLE,
        version=settings.API_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    app.state.retrieval_service = service or build_retrieval_service(settings)

    if settings.ENABLE_TRACING:
        setup_tracing(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    app.include_router(search.router, prefix="/api")

    @app.get("/health")
    async def health() -> dict:
        retrieval: RetrievalService = app.state.retrieval_service
        return {"status": "ok", "documents": retrieval.store.count()}

    @app.exception_handler(ApplicationError)
    async def handle_application_error(_: Request, exc: ApplicationError):
        """Return standardized responses for application layer exceptions."""

        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})

    @app.exception_handler(FieldRAGError)
    async def handle_retrieval_error(_: Request, exc: FieldRAGError):
        status_code = (
            status.HTTP_502_BAD_GATEWAY if isinstance(exc, _UPSTREAM_FAILURES) else status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        logger.warning("Request failed: %s", exc)
        return JSONResponse(
            status_code=status_code,
            content={"detail": exc.message, "code": exc.error_code, "details": exc.details or {}},
        )

    return app


app = create_app()
