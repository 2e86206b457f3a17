"""FastAPI application for the FinChat assistant."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from config.settings import get_settings
from src.api.routes import router
from src.ingestion.pipeline import ensure_documents_loaded
from src.runtime.context import AppContext, build_context

logger = logging.getLogger(__name__)


def create_app(context: AppContext | None = None) -> FastAPI:
    """Build the API app.

    When no context is given, one is built from settings at startup and closed
    at shutdown. Before the first request is served, configured source files
    that are missing from the metadata store are ingested.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = context is None
        ctx = context or build_context(get_settings())
        app.state.context = ctx

        await ctx.metadata_store.create_tables()
        if ctx.settings.finchat_ingest_on_startup:
            await ensure_documents_loaded(ctx)
        logger.info("Application started")

        yield

        logger.info("Application shutting down")
        if owned:
            await ctx.aclose()

    app = FastAPI(
        title="FinChat API",
        description="Financial-services chat assistant with document retrieval",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app
