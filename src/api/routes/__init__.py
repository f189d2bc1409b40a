"""
API Routes

Modular route definitions for the Prospect Vetting API.
"""
from src.api.routes.health import router as health_router
from src.api.routes.vetting import router as vetting_router

__all__ = [
    "health_router",
    "vetting_router",
]
