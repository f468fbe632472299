"""
FastAPI application for the domain ingestion API.
"""
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from ..core.config import settings
from ..core.logging import logger
from .dependencies import ServiceContainer
from .exceptions import exception_handlers
from .middleware import add_process_time_header
from .routes import crawl_runs, crawls, domains, health, ingestion, jobs, technologies


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the application.

    Args:
        container: Pre-built services (tests inject one with fake
            capabilities); when omitted, one is built from settings on
            startup and torn down on shutdown
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan context manager."""
        logger.info("Starting Site Ingest API")
        owned = container is None
        if owned:
            app.state.container = ServiceContainer.build()
        yield
        logger.info("Shutting down Site Ingest API")
        if owned:
            await app.state.container.aclose()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Domain ingestion: page discovery, screenshots, colors and technology detection",
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        exception_handlers=exception_handlers
    )
    if container is not None:
        app.state.container = container

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add custom middleware
    app.middleware("http")(add_process_time_header)

    for module, tag in (
        (domains, "domains"),
        (ingestion, "ingestion"),
        (crawl_runs, "crawl-runs"),
        (crawls, "crawls"),
        (technologies, "technologies"),
        (jobs, "jobs"),
        (health, "health"),
    ):
        app.include_router(module.router, prefix=settings.API_V1_PREFIX, tags=[tag])

    # Stored screenshots and sections
    storage_dir = container.storage.base_dir if container is not None else Path(settings.STORAGE_DIR)
    app.mount(
        settings.STORAGE_PUBLIC_PATH,
        StaticFiles(directory=str(storage_dir), check_dir=False),
        name="storage"
    )

    @app.get("/health", tags=["health"])
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "timestamp": time.time(),
            "version": settings.APP_VERSION
        }

    @app.get("/", tags=["root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs": "/docs",
            "health": "/health"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "site_ingest.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
