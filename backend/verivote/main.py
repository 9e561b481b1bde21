"""
FastAPI application entry point.
"""
import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from verivote.core.config import settings
from verivote.core.database import init_db, close_db
from verivote.core.logging import configure_logging
from verivote.services.time_oracle import get_time_oracle
from verivote.api.v1.router import api_router


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan handler for startup and shutdown."""
    # Startup
    configure_logging()
    await init_db()

    ticker = None
    if settings.CLOCK_TICK_SECONDS > 0:
        ticker = asyncio.create_task(get_time_oracle().run(settings.CLOCK_TICK_SECONDS))

    logger.info("%s %s started", settings.APP_NAME, settings.APP_VERSION)
    yield

    # Shutdown
    if ticker is not None:
        ticker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await ticker
    await close_db()


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="""
        Verifiable Remote Voting API

        Ballot lifecycle of a remote election:
        - Certified voter signing keys and a published election key
        - Challenge-response ballot sessions
        - Ballots registered with an independent registration service before storage
        - Revoting: the last stored ballot of a voter is the one that counts
        - Individual verification of a stored ballot within a time window
        - Tally selection of one ciphertext per voter
        """,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url=f"{settings.API_V1_PREFIX}/docs",
        redoc_url=f"{settings.API_V1_PREFIX}/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Gzip compression
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # Include API router
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "tick": get_time_oracle().current_tick(),
        }

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs": f"{settings.API_V1_PREFIX}/docs"
        }

    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "verivote.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=settings.WORKERS if not settings.DEBUG else 1,
    )
