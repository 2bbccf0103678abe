"""Main API router that aggregates all endpoint routers."""

from fastapi import APIRouter

from qbo_mcp.api.endpoints import health
from qbo_mcp.core.config import settings

# Create main API router
api_router = APIRouter()

# Include health router
api_router.include_router(health.router, tags=["Health"])


@api_router.get("/")
async def api_root():
    """API root endpoint."""
    return {
        "message": settings.app_name,
        "endpoints": {
            "mcp": "/mcp",
            "health": "/health",
        },
    }
