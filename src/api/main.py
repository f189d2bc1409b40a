"""
FastAPI Application

Main entry point for the Prospect Vetting API.
Handles application lifecycle and router mounting.
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from loguru import logger

from src.core.pipeline import initialize_pipeline, shutdown_pipeline
from src.utils.observability import configure_logging
from src.api.routes import health_router, vetting_router
from src.api.routes.health import API_VERSION


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle: startup and shutdown events.

    Startup:
    - Configure logging
    - Connect to MongoDB, create indexes and build the vetting pipeline

    Shutdown:
    - Disconnect from MongoDB
    """
    configure_logging()
    logger.info("Starting Prospect Vetting API server...")

    app.state.pipeline = await initialize_pipeline()

    logger.info("API server ready to accept intake turns and vetting runs")

    yield

    logger.info("Shutting down API server...")
    await shutdown_pipeline()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Prospect Vetting API",
    description="Conversation intake, multi-signal prospect vetting and readiness snapshots",
    version=API_VERSION,
    lifespan=lifespan
)

# Mount routers
app.include_router(health_router)
app.include_router(vetting_router)
