"""
Main FastAPI application for the Climate Feed Monitor.
"""
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from climate_feed.api.routes import router, set_scheduler, set_store
from climate_feed.config import get_settings
from climate_feed.core.logging_config import configure_logging
from climate_feed.models.database import Database
from climate_feed.services.ingestion import (
    IngestionScheduler,
    create_orchestrator,
    get_health_tracker,
)
from climate_feed.services.storage import ArticleStore

settings = get_settings()
configure_logging(settings.log_level, settings.log_format)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - handles startup and shutdown."""
    # Initialize database
    logger.info("Initializing database", url=settings.database_url)
    database = Database(settings.database_url, echo=settings.debug)
    await database.create_tables()
    store = ArticleStore(database)
    if not await store.test_connection():
        logger.warning("Database connection check failed; continuing without guarantees")
    set_store(store)

    # Initialize ingestion pipeline and its schedule (first run fires at startup)
    orchestrator = create_orchestrator(settings, store=store, tracker=get_health_tracker())
    scheduler = IngestionScheduler(
        orchestrator,
        interval_hours=settings.fetch_interval_hours,
        run_on_startup=settings.run_on_startup,
    )
    set_scheduler(scheduler)
    scheduler.start()

    yield

    # Shutdown
    logger.info("Shutting down")
    scheduler.shutdown()
    await database.dispose()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Climate and science news aggregated from institutional RSS feeds.",
    version=settings.app_version,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["Content-Type"],
)

# Include API routes
app.include_router(router, prefix="/api")


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "climate-feed-monitor",
        "version": settings.app_version,
    }


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "endpoints": {
            "articles": "/api/articles",
            "counts": "/api/articles/counts",
            "feed_health": "/api/feed-health",
            "unhealthy_feeds": "/api/unhealthy-feeds",
            "ingestion_status": "/api/ingestion/status",
            "run_ingestion": "/api/admin/run-ingestion",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "climate_feed.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
