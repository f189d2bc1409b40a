"""
Health and Readiness Endpoints

Kubernetes-compatible health probes for load balancers and orchestration.
"""
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from loguru import logger

from src.repositories import db_manager
from src.utils.llm_client import get_circuit_status, is_circuit_open

router = APIRouter(tags=["Health"])

# API version - single source of truth
API_VERSION = "1.0.0"


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint.

    Returns 200 if service is running.
    """
    return {
        "status": "healthy",
        "service": "prospect-vetting",
        "version": API_VERSION
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """
    Readiness probe - checks if service can handle requests.

    Verifies:
    - The vetting pipeline is built
    - MongoDB answers a ping

    An open LLM circuit is reported but does not fail the probe; extraction
    falls back to rules while it is open.

    Returns 200 if ready, 503 if not ready.
    """
    try:
        pipeline = getattr(request.app.state, "pipeline", None)
        if pipeline is None:
            return JSONResponse(
                status_code=503,
                content={
                    "status": "not_ready",
                    "reason": "Pipeline not initialized"
                }
            )

        await db_manager.client.admin.command("ping")

        return {
            "status": "ready",
            "mongodb": "connected",
            "pipeline": "initialized",
            "llm_circuit": get_circuit_status()["state"],
            "llm_available": not is_circuit_open()
        }

    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "not_ready",
                "reason": str(e)
            }
        )


@router.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Prospect Vetting API",
        "version": API_VERSION,
        "endpoints": {
            "health": "/health",
            "ready": "/ready",
            "intake_turn": "/sessions/{session_id}/turns (POST)",
            "close_session": "/sessions/{session_id}/close (POST)",
            "register_prospect": "/prospects/{prospect_id} (PUT)",
            "run_vetting": "/prospects/{prospect_id}/vetting (POST)",
            "latest_snapshot": "/prospects/{prospect_id}/snapshot",
            "snapshot_history": "/prospects/{prospect_id}/snapshots"
        }
    }
