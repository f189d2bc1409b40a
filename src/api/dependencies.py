"""
FastAPI Dependencies

Reusable dependencies shared by the route modules.
"""
from fastapi import Request, HTTPException, status
from loguru import logger

from src.core.pipeline import VettingPipeline


def get_pipeline(request: Request) -> VettingPipeline:
    """
    Resolve the pipeline built during application startup.

    Raises:
        HTTPException: 503 if the application has not finished starting
    """
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        logger.error("❌ Vetting pipeline requested before initialization")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Vetting pipeline not initialized"
        )
    return pipeline
