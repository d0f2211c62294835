"""
CrowdQA Confusion Tracker
FastAPI Application Entry Point

Instructors run timed sessions; anonymous attendees signal confusion with a
click and an optional note. Schema is managed by Alembic (alembic upgrade head).
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from crowdqa.config import settings
from crowdqa.database import engine
from crowdqa.api.sessions import router as sessions_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("crowdqa")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: log configuration on startup, dispose the engine on shutdown."""
    logger.info(f"Starting {settings.APP_NAME}...")
    logger.info("Skipping create_all; ensure Alembic migrations are applied (alembic upgrade head)")
    logger.info(
        f"Bin width {settings.BIN_WIDTH_MINUTES} min, threshold multiplier "
        f"{settings.CONFUSION_THRESHOLD_MULTIPLIER}, poll interval {settings.POLL_INTERVAL_SECONDS}s"
    )

    yield

    # Shutdown
    logger.info("Shutting down...")
    await engine.dispose()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Anonymous confusion signals, interval aggregation and peak detection for live classroom sessions",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register API routes
app.include_router(sessions_router)


@app.get("/", tags=["Health"])
async def root():
    """Health check endpoint."""
    return {
        "status": "online",
        "app": settings.APP_NAME,
        "version": "1.0.0",
    }


@app.get("/api/v1/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": "1.0.0",
        "poll_interval_seconds": settings.POLL_INTERVAL_SECONDS,
    }
