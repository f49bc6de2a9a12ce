"""
PDF Q&A Service Application Entry Point

This module defines the FastAPI application instance, registers all routers,
configures logging and global exception handling, and provides a
test-friendly application factory.

Design Goals
------------
- Deterministic startup
- Centralized router registration
- Global exception safety net
- Test-friendly via create_app()
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from .config import settings
from .core.errors import PdfQaError, pdf_qa_error_handler, unhandled_exception_handler
from .core.logging_config import configure_logging
from .db.session import async_engine, init_db

from .api import (
    chat_routes,
    document_routes,
    health_routes,
)


logger = logging.getLogger("pdfqa.app")


# ---------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Startup: make sure the documents table exists.
    Shutdown: release pooled database connections.
    """
    logger.info("Starting pdf-qa-server")

    if not settings.gemini_api_key.get_secret_value():
        logger.warning("GEMINI_API_KEY is not set; embedding and generation calls will fail")

    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down pdf-qa-server")
    await async_engine.dispose()


# ---------------------------------------------------------------------
# Application Factory (Test-Friendly)
# ---------------------------------------------------------------------

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    This factory pattern allows:
    - Clean test instantiation
    - Controlled dependency overrides in pytest

    Returns
    -------
    FastAPI
        Fully configured FastAPI application.
    """
    configure_logging(settings.log_level)

    app = FastAPI(
        title="pdf-qa-server",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # --------------------------------------------------------------
    # Global Exception Handling
    # --------------------------------------------------------------

    app.add_exception_handler(PdfQaError, pdf_qa_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # --------------------------------------------------------------
    # Router Registration
    # --------------------------------------------------------------

    app.include_router(health_routes.router)
    app.include_router(document_routes.router)
    app.include_router(chat_routes.router)

    return app


# ---------------------------------------------------------------------
# Default Application Instance (for Uvicorn/Gunicorn)
# ---------------------------------------------------------------------

app = create_app()
